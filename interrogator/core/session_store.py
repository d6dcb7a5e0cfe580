"""
In-memory interrogation ledger for list/detail views. Keyed by session_id; not persisted.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from interrogator.schemas.interrogation import InterrogationProgress, SessionDetail, SessionSummary

logger = logging.getLogger(__name__)

_TERMINAL = frozenset({"completed", "limit-reached", "cancelled", "failed"})

# session_id -> record dict
_sessions: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_session(session_id: str, hypothesis: str, total_iterations: int) -> None:
    with _lock:
        _sessions[session_id] = {
            "session_id": session_id,
            "hypothesis": hypothesis,
            "status": "running",
            "current_iteration": 0,
            "total_iterations": total_iterations,
            "started_at": _now(),
            "ended_at": None,
            "findings": [],
            "events": [],
            "error": None,
        }
    logger.info("[session_store:create_session] session_id=%s", session_id[:16])


def record_progress(progress: InterrogationProgress) -> None:
    """Append one progress event and fold it into the session's summary fields."""
    with _lock:
        record = _sessions.get(progress.session_id)
        if record is None:
            logger.info("[session_store:record_progress] skip unknown session_id=%r", progress.session_id)
            return
        record["events"].append(progress)
        record["status"] = progress.status
        if progress.current_iteration:
            record["current_iteration"] = progress.current_iteration
        if progress.findings:
            record["findings"] = list(progress.findings)
        if progress.status in _TERMINAL and record["ended_at"] is None:
            record["ended_at"] = _now()
    logger.info(
        "[session_store:record_progress] session_id=%s iteration=%d status=%s",
        progress.session_id[:16], progress.current_iteration, progress.status,
    )


def mark_error(session_id: str, error: str) -> None:
    with _lock:
        record = _sessions.get(session_id)
        if record is not None:
            record["error"] = error


def list_sessions() -> list[SessionSummary]:
    """Summaries, newest first."""
    with _lock:
        records = [dict(r) for r in _sessions.values()]
    records.sort(key=lambda r: r["started_at"], reverse=True)
    return [SessionSummary(**{k: r[k] for k in SessionSummary.model_fields}) for r in records]


def get_session(session_id: str) -> SessionDetail | None:
    with _lock:
        record = _sessions.get(session_id)
        out = dict(record, events=list(record["events"])) if record else None
    if out is None:
        return None
    return SessionDetail(**out)


def clear_all() -> None:
    with _lock:
        _sessions.clear()
