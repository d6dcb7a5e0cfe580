"""
API handlers: call the session controller and ledger, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import logging

from fastapi import HTTPException

from interrogator.core import session_store
from interrogator.core.errors import ConcurrencyViolationError, ConfigurationError
from interrogator.schemas.interrogation import (
    InterrogationConfig,
    SessionDetail,
    SessionSummary,
    StartResponse,
    StopResponse,
)
from interrogator.services.session_controller import SessionController

logger = logging.getLogger(__name__)


async def handle_start(controller: SessionController, config: InterrogationConfig) -> StartResponse:
    """
    Start an interrogation and register it in the ledger.
    409 if one is already running, 400 if the witness or detective cannot be configured.
    """
    try:
        session_id = await controller.start(config)
    except ConcurrencyViolationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    # The run task has not started yet, so the ledger entry precedes its first event
    session_store.create_session(session_id, config.hypothesis, config.iteration_limit)
    return StartResponse(session_id=session_id)


def handle_stop(controller: SessionController, session_id: str) -> StopResponse:
    try:
        controller.stop(session_id)
    except ConcurrencyViolationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return StopResponse(stopped=True)


def handle_list() -> list[SessionSummary]:
    return session_store.list_sessions()


def handle_detail(session_id: str) -> SessionDetail:
    detail = session_store.get_session(session_id)
    if detail is None:
        raise HTTPException(status_code=404, detail=f"Interrogation not found: {session_id!r}")
    return detail
