"""
Session controller: at most one interrogation in flight per process.

Responsibility: Build the witness and detective for a request, run the
interrogation as a background task, translate engine progress into
InterrogationProgress events, and honor stop requests. No HTTP here.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from interrogator.agent.graph import InterrogationEngine, emit_progress
from interrogator.agent.llm import build_generator
from interrogator.agent.strategy import InterrogationResult, ProgressEvent, StopReason
from interrogator.core.concurrency import CancellationToken
from interrogator.core.errors import ConcurrencyViolationError
from interrogator.schemas.interrogation import InterrogationConfig, InterrogationProgress
from interrogator.services.answer_source import AnswerSource, build_answer_source

logger = logging.getLogger(__name__)

ProgressSink = Callable[[InterrogationProgress], Union[None, Awaitable[None]]]
ErrorSink = Callable[[str, str], None]

_FINAL_STATUS = {
    StopReason.COMPLETED: "completed",
    StopReason.LIMIT_REACHED: "limit-reached",
    StopReason.CANCELLED: "cancelled",
}


@dataclass
class Session:
    id: str
    hypothesis: str
    total_iterations: int
    token: CancellationToken = field(default_factory=CancellationToken)
    status: str = "running"
    current_iteration: int = 0
    task: asyncio.Task | None = None
    result: InterrogationResult | None = None
    error: BaseException | None = None


def default_engine(config: InterrogationConfig) -> InterrogationEngine:
    return InterrogationEngine(
        generator=build_generator(config.detective_provider),
        language=config.language,
        initial_strategy=config.initial_strategy,
    )


class SessionController:
    """
    Owns the single active-session slot.

    start() claims the slot with no await between the check and the claim, so
    two concurrent starts cannot both succeed. stop() frees the slot at once
    and only signals the run; the run notices at its next loop-top check.
    """

    def __init__(
        self,
        on_progress: ProgressSink | None = None,
        on_error: ErrorSink | None = None,
        source_factory: Callable[[Any], AnswerSource] = build_answer_source,
        engine_factory: Callable[[Any], InterrogationEngine] = default_engine,
    ) -> None:
        self.on_progress = on_progress
        self.on_error = on_error
        self._source_factory = source_factory
        self._engine_factory = engine_factory
        self._active: Session | None = None
        self._sessions: dict[str, Session] = {}
        self._background: set[asyncio.Task] = set()

    @property
    def active_session_id(self) -> str | None:
        return self._active.id if self._active else None

    def is_active(self, session_id: str) -> bool:
        return self._active is not None and self._active.id == session_id

    async def start(self, config: InterrogationConfig) -> str:
        """
        Start an interrogation in the background and return its session id.

        Raises:
            ConcurrencyViolationError: another interrogation is running (nothing is built).
            ConfigurationError: witness or detective cannot be built; the slot stays free.
        """
        if self._active is not None:
            raise ConcurrencyViolationError(
                f"An interrogation is already running (session {self._active.id})"
            )
        self._prune_finished()
        source = self._source_factory(config)
        engine = self._engine_factory(config)

        session = Session(
            id=uuid.uuid4().hex,
            hypothesis=config.hypothesis,
            total_iterations=config.iteration_limit,
        )
        self._active = session
        self._sessions[session.id] = session
        session.task = asyncio.create_task(self._run(session, source, engine, config))
        logger.info(
            "[controller:start] session_id=%s mode=%s iterations=%d",
            session.id, config.witness_mode, config.iteration_limit,
        )
        return session.id

    def stop(self, session_id: str) -> None:
        """
        Stop the active interrogation. Returns once the slot is free and the
        cancelled event is queued; the run itself winds down on its own.

        Raises:
            ConcurrencyViolationError: session_id is not the active session.
        """
        session = self._active
        if session is None or session.id != session_id:
            raise ConcurrencyViolationError(f"Session {session_id} is not active")
        self._active = None
        session.token.cancel()
        logger.info("[controller:stop] session_id=%s at iteration %d", session_id, session.current_iteration)
        self._publish_soon(self._progress(session, status="cancelled"))

    async def wait(self, session_id: str) -> InterrogationResult | None:
        """
        Await a session's run and release it. Re-raises the run's error; None
        for a run that never produced a result. A session can be waited on
        until the next start() after it finished.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        if session.task is not None:
            await asyncio.shield(session.task)
        self._sessions.pop(session_id, None)
        if session.error is not None:
            raise session.error
        return session.result

    # --- internals ---

    def _prune_finished(self) -> None:
        for session_id in [sid for sid, s in self._sessions.items() if s.task is not None and s.task.done()]:
            del self._sessions[session_id]

    def _progress(self, session: Session, status: str = "running", **fields: Any) -> InterrogationProgress:
        return InterrogationProgress(
            session_id=session.id,
            current_iteration=fields.pop("current_iteration", session.current_iteration),
            total_iterations=session.total_iterations,
            status=status,
            **fields,
        )

    async def _publish(self, progress: InterrogationProgress) -> None:
        await emit_progress(self.on_progress, progress)

    def _publish_soon(self, progress: InterrogationProgress) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[controller:progress] no running loop; dropping %s event", progress.status)
            return
        task = loop.create_task(self._publish(progress))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run(
        self, session: Session, source: AnswerSource, engine: InterrogationEngine, config: InterrogationConfig
    ) -> None:
        async def forward(event: ProgressEvent) -> None:
            if session.token.cancelled:
                # A stop already published the terminal event
                return
            session.current_iteration = event.iteration
            await self._publish(self._progress(
                session,
                current_iteration=event.iteration,
                question=event.question,
                answer=event.answer,
                findings=list(event.findings),
                strategy=event.strategy,
            ))

        try:
            await source.reset_chat()
            if not session.token.cancelled:
                await self._publish(self._progress(session))
            result = await engine.interrogate(
                config.hypothesis,
                source,
                max_iterations=config.iteration_limit,
                cancellation_token=session.token,
                on_progress=forward,
            )
            session.result = result
            cancelled = session.token.cancelled or result.stop_reason is StopReason.CANCELLED
            session.status = "cancelled" if cancelled else "completed"
            logger.info(
                "[controller:run] session_id=%s finished stop_reason=%s turns=%d",
                session.id, result.stop_reason.value, len(result.turns),
            )
            if not session.token.cancelled:
                last = result.turns[-1] if result.turns else None
                await self._publish(self._progress(
                    session,
                    status=_FINAL_STATUS[result.stop_reason],
                    question=last.question if last else "",
                    answer=last.answer if last else "",
                    findings=list(result.findings),
                    strategy=result.final_strategy,
                ))
        except Exception as e:
            session.status = "failed"
            session.error = e
            logger.exception("[controller:run] session_id=%s failed", session.id)
            if self.on_error is not None:
                self.on_error(session.id, str(e))
            if not session.token.cancelled:
                await self._publish(self._progress(session, status="failed"))
        finally:
            if self._active is session:
                self._active = None
            try:
                await source.close()
            except Exception as e:
                logger.warning("[controller:run] closing answer source failed: %s", e)
