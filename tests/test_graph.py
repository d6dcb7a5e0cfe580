"""
Tests for the interrogation engine: strategy cycle, follow-ups, stuck detection,
budget, cancellation, progress delivery, error propagation.

Generator and answer source are in-memory fakes; no LLM or network.
"""

import pytest

from interrogator.agent.graph import InterrogationEngine
from interrogator.agent.strategy import ProgressEvent, StopReason, Strategy
from interrogator.core.concurrency import CancellationToken
from interrogator.core.errors import TransportError

ABSENT = "That is not in the document."


class FakeSource:
    """Answers every question with answer_fn(question) and records what was asked."""

    def __init__(self, answer_fn=lambda q: "Plain answer.") -> None:
        self.answer_fn = answer_fn
        self.questions: list[str] = []

    async def ask(self, question: str) -> str:
        self.questions.append(question)
        return self.answer_fn(question)

    async def reset_chat(self) -> None:
        pass


class ScriptedGenerator:
    """Returns `question` for question prompts and `analysis` for analysis prompts."""

    def __init__(self, question: str = "Generated question?", analysis: str = "FINDINGS:\n- fact") -> None:
        self.question = question
        self.analysis = analysis
        self.prompts: list[str] = []

    async def generate(self, prompt: str, max_tokens: int = 256, temperature=None) -> str:
        self.prompts.append(prompt)
        if "Question asked:" in prompt:
            return self.analysis
        return self.question


class ExplodingGenerator:
    async def generate(self, prompt: str, max_tokens: int = 256, temperature=None) -> str:
        raise AssertionError("generator must not be called")


class TestStrategyCycle:
    @pytest.mark.asyncio
    async def test_full_cycle_without_follow_ups_completes(self) -> None:
        source = FakeSource()
        engine = InterrogationEngine(initial_strategy=Strategy.BROAD_OVERVIEW)
        result = await engine.interrogate("Onboarding", source, max_iterations=10)

        assert result.stop_reason is StopReason.COMPLETED
        assert [t.strategy for t in result.turns] == [
            Strategy.BROAD_OVERVIEW,
            Strategy.DEEP_DIVE,
            Strategy.FACT_CHECK,
            Strategy.TIMELINE,
        ]
        assert result.final_strategy is Strategy.TIMELINE
        assert source.questions == [
            "What are the main aspects of this topic?",
            "What exactly does the document say about Onboarding?",
            "What specific facts are mentioned about this?",
            "What is the sequence or process described?",
        ]

    @pytest.mark.asyncio
    async def test_cycle_starts_and_ends_at_initial_strategy(self) -> None:
        engine = InterrogationEngine(initial_strategy=Strategy.FACT_CHECK)
        result = await engine.interrogate("Onboarding", FakeSource(), max_iterations=10)
        assert [t.strategy for t in result.turns] == [
            Strategy.FACT_CHECK,
            Strategy.TIMELINE,
            Strategy.BROAD_OVERVIEW,
            Strategy.DEEP_DIVE,
        ]
        assert result.stop_reason is StopReason.COMPLETED

    @pytest.mark.asyncio
    async def test_follow_ups_keep_strategy_until_budget(self) -> None:
        source = FakeSource(lambda q: "It was delayed because of the weather.")
        engine = InterrogationEngine()
        result = await engine.interrogate("Shipping", source, max_iterations=5)

        assert result.stop_reason is StopReason.LIMIT_REACHED
        assert len(result.turns) == 5
        assert {t.strategy for t in result.turns} == {Strategy.BROAD_OVERVIEW}
        assert source.questions[1:] == ["What exactly causes this?"] * 4
        assert result.findings == ["Answer names a cause or reason"] * 5

    @pytest.mark.asyncio
    async def test_stuck_overrides_follow_ups(self) -> None:
        generator = ScriptedGenerator(analysis="FINDINGS:\n- nothing found\nFOLLOW-UP:\n- Is there more?")
        source = FakeSource(lambda q: ABSENT)
        engine = InterrogationEngine(generator=generator)
        result = await engine.interrogate("Onboarding", source, max_iterations=10)

        # Turn 1 follows up; from turn 2 on the last two answers are absent, so the strategy is forced on
        assert [t.strategy for t in result.turns] == [
            Strategy.BROAD_OVERVIEW,
            Strategy.BROAD_OVERVIEW,
            Strategy.DEEP_DIVE,
            Strategy.FACT_CHECK,
            Strategy.TIMELINE,
        ]
        assert source.questions[:2] == ["Generated question?", "Is there more?"]
        assert result.stop_reason is StopReason.COMPLETED

    @pytest.mark.asyncio
    async def test_findings_accumulate_without_dedup(self) -> None:
        generator = ScriptedGenerator(analysis="FINDINGS:\n- same fact")
        engine = InterrogationEngine(generator=generator)
        result = await engine.interrogate("Onboarding", FakeSource(), max_iterations=10)
        assert result.findings == ["same fact"] * 4


class TestQuestionGeneration:
    @pytest.mark.asyncio
    async def test_deep_dive_asks_question_hypothesis_verbatim(self) -> None:
        engine = InterrogationEngine(generator=ExplodingGenerator())
        question = await engine.generate_initial_question("How does onboarding work?", Strategy.DEEP_DIVE)
        assert question == "How does onboarding work?"

    @pytest.mark.asyncio
    async def test_deep_dive_run_starts_with_hypothesis(self) -> None:
        source = FakeSource()
        engine = InterrogationEngine(initial_strategy=Strategy.DEEP_DIVE)
        await engine.interrogate("How does onboarding work?", source, max_iterations=5)
        assert source.questions[0] == "How does onboarding work?"

    @pytest.mark.asyncio
    async def test_empty_generation_falls_back_to_fixed_question(self) -> None:
        engine = InterrogationEngine(generator=ScriptedGenerator(question="   "))
        question = await engine.generate_initial_question("Onboarding", Strategy.TIMELINE)
        assert question == "What is the sequence or process described?"

    @pytest.mark.asyncio
    async def test_german_fixed_questions(self) -> None:
        engine = InterrogationEngine(language="de")
        question = await engine.generate_initial_question("Einarbeitung", Strategy.DEEP_DIVE)
        assert question == "Was genau steht im Dokument über Einarbeitung?"

    @pytest.mark.asyncio
    async def test_unstructured_analysis_uses_heuristics(self) -> None:
        engine = InterrogationEngine(generator=ScriptedGenerator(analysis="I think it is fine."))
        findings, follow_ups = await engine.analyze_answer("Why?", "Because of the budget.")
        assert findings == ["Answer names a cause or reason"]
        assert follow_ups == ["What exactly causes this?"]


class TestCancellationAndBudget:
    @pytest.mark.asyncio
    async def test_cancel_stops_at_next_loop_top(self) -> None:
        token = CancellationToken()

        def answer(question: str) -> str:
            if len(source.questions) == 2:
                token.cancel()
            return "It failed because of the weather."

        source = FakeSource(answer)
        engine = InterrogationEngine()
        result = await engine.interrogate("Shipping", source, max_iterations=10, cancellation_token=token)

        # The in-flight turn still completes
        assert len(result.turns) == 2
        assert result.stop_reason is StopReason.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_before_start_asks_nothing(self) -> None:
        token = CancellationToken()
        token.cancel()
        source = FakeSource()
        result = await InterrogationEngine().interrogate("Topic", source, cancellation_token=token)
        assert result.turns == []
        assert source.questions == []
        assert result.stop_reason is StopReason.CANCELLED

    @pytest.mark.asyncio
    async def test_turns_never_exceed_budget(self) -> None:
        source = FakeSource(lambda q: "It failed because of the weather.")
        result = await InterrogationEngine().interrogate("Shipping", source, max_iterations=1)
        assert len(result.turns) == 1
        assert result.stop_reason is StopReason.LIMIT_REACHED

    @pytest.mark.asyncio
    async def test_empty_hypothesis_rejected(self) -> None:
        with pytest.raises(ValueError):
            await InterrogationEngine().interrogate("  ", FakeSource())


class TestProgressAndErrors:
    @pytest.mark.asyncio
    async def test_progress_after_every_iteration(self) -> None:
        events: list[ProgressEvent] = []

        async def sink(event: ProgressEvent) -> None:
            events.append(event)

        generator = ScriptedGenerator(analysis="FINDINGS:\n- fact")
        await InterrogationEngine(generator=generator).interrogate(
            "Onboarding", FakeSource(), max_iterations=10, on_progress=sink
        )
        assert [e.iteration for e in events] == [1, 2, 3, 4]
        assert all(e.total_iterations == 10 for e in events)
        assert [len(e.findings) for e in events] == [1, 2, 3, 4]
        assert all(e.status == "running" for e in events)

    @pytest.mark.asyncio
    async def test_failing_progress_sink_is_ignored(self) -> None:
        calls: list[int] = []

        def sink(event: ProgressEvent) -> None:
            calls.append(event.iteration)
            raise RuntimeError("sink down")

        result = await InterrogationEngine().interrogate(
            "Onboarding", FakeSource(), max_iterations=10, on_progress=sink
        )
        assert len(result.turns) == 4
        assert calls == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_answer_source_error_propagates(self) -> None:
        def answer(question: str) -> str:
            raise TransportError("Workspace chat request failed", 500)

        with pytest.raises(TransportError):
            await InterrogationEngine().interrogate("Onboarding", FakeSource(answer))

    @pytest.mark.asyncio
    async def test_engine_is_reusable_across_runs(self) -> None:
        engine = InterrogationEngine()
        first = await engine.interrogate("One", FakeSource(), max_iterations=10)
        second = await engine.interrogate("Two", FakeSource(), max_iterations=10)
        assert len(first.turns) == len(second.turns) == 4
