"""
API route aggregator: register endpoints and delegate to handlers.
"""

import logging

from fastapi import APIRouter

from interrogator.api.handlers import handle_detail, handle_list, handle_start, handle_stop
from interrogator.core import session_store
from interrogator.schemas.interrogation import (
    InterrogationConfig,
    SessionDetail,
    SessionSummary,
    StartResponse,
    StopResponse,
)
from interrogator.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter()

controller = SessionController(on_progress=session_store.record_progress, on_error=session_store.mark_error)


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Interrogation engine running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True, "active_session_id": controller.active_session_id}


# --- Interrogations ---

@router.post(
    "/interrogations",
    response_model=StartResponse,
    status_code=201,
    tags=["interrogations"],
    summary="Start an interrogation",
    description="Runs in the background; poll GET /interrogations/{id} for progress. 409 if one is already running, 400 on configuration errors.",
)
async def start_interrogation(body: InterrogationConfig) -> StartResponse:
    logger.info("[api:start_interrogation] IN  hypothesis=%r mode=%s", body.hypothesis, body.witness_mode)
    response = await handle_start(controller, body)
    logger.info("[api:start_interrogation] OUT session_id=%s", response.session_id)
    return response


@router.delete(
    "/interrogations/{session_id}",
    response_model=StopResponse,
    tags=["interrogations"],
    summary="Stop the running interrogation",
    description="409 if the given session is not the active one.",
)
async def stop_interrogation(session_id: str) -> StopResponse:
    logger.info("[api:stop_interrogation] IN  session_id=%s", session_id)
    return handle_stop(controller, session_id)


@router.get(
    "/interrogations",
    response_model=list[SessionSummary],
    tags=["interrogations"],
    summary="List interrogations of this process, newest first",
)
def list_interrogations() -> list[SessionSummary]:
    return handle_list()


@router.get(
    "/interrogations/{session_id}",
    response_model=SessionDetail,
    tags=["interrogations"],
    summary="Interrogation detail: status, findings, progress history",
)
def get_interrogation(session_id: str) -> SessionDetail:
    return handle_detail(session_id)
