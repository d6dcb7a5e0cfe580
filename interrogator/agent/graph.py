"""
LangGraph detective: check → (generate question) → ask witness → analyze → decide → loop.

The graph state is the run context of one interrogate() call: it is created
fresh per call, so one InterrogationEngine can be reused for many runs.

    check_continue ──► generate_question ──► ask_source ──► analyze_answer ──► decide_next_move
          ▲      └──────────────────────────────►┘                                   │
          └──────────────────────────────────────────────────────────────────────────┘
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Literal, TypedDict, Union

from langgraph.graph import END, StateGraph

from interrogator.agent.analysis import build_analysis_prompt, heuristic_analysis, parse_analysis, reports_absence
from interrogator.agent.llm import TextGenerator
from interrogator.agent.prompts import locale
from interrogator.agent.strategy import (
    ConversationTurn,
    InterrogationResult,
    ProgressEvent,
    StopReason,
    Strategy,
)
from interrogator.core.concurrency import CancellationToken
from interrogator.core.config import ANALYSIS_MAX_TOKENS, QUESTION_MAX_TOKENS

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]

# Upper bound on graph steps per iteration (check, generate, ask, analyze, decide)
_NODES_PER_ITERATION = 5


class RunContext(TypedDict):
    hypothesis: str
    max_iterations: int
    initial_strategy: Strategy
    strategy: Strategy
    next_step: Literal["generate", "ask"]
    question: str
    answer: str
    turns: list
    findings: list
    stop_reason: str | None


async def emit_progress(callback: ProgressCallback | None, event: Any) -> None:
    """Deliver a progress event; a failing sink is logged and ignored."""
    if callback is None:
        return
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("[graph:progress] delivery failed, continuing: %s", e)


def _is_stuck(turns: list[ConversationTurn]) -> bool:
    """Last two turns both say the requested information is not in the source."""
    if len(turns) < 2:
        return False
    return all(reports_absence(t.answer, t.findings) for t in turns[-2:])


class InterrogationEngine:
    """
    Strategy-driven questioner.

    generator: detective LLM; None means fixed per-strategy questions and
    keyword heuristics instead of LLM analysis.
    """

    def __init__(
        self,
        generator: TextGenerator | None = None,
        language: str = "en",
        initial_strategy: Strategy = Strategy.BROAD_OVERVIEW,
    ) -> None:
        self.generator = generator
        self.language = language
        self.initial_strategy = Strategy(initial_strategy)

    async def generate_initial_question(self, hypothesis: str, strategy: Strategy) -> str:
        # Deep-dive on a hypothesis that already is a question: ask it verbatim
        if strategy is Strategy.DEEP_DIVE and "?" in hypothesis:
            return hypothesis
        table = locale(self.language)
        fallback = table["fallback_questions"][strategy].format(hypothesis=hypothesis)
        if self.generator is None:
            return fallback
        prompt = table["question_prompts"][strategy].format(hypothesis=hypothesis)
        question = (await self.generator.generate(prompt, max_tokens=QUESTION_MAX_TOKENS)).strip()
        return question or fallback

    async def analyze_answer(self, question: str, answer: str) -> tuple[list[str], list[str]]:
        if self.generator is None:
            return heuristic_analysis(answer, self.language)
        raw = await self.generator.generate(
            build_analysis_prompt(question, answer, self.language), max_tokens=ANALYSIS_MAX_TOKENS
        )
        parsed = parse_analysis(raw)
        if parsed is None:
            logger.warning("[graph:analyze_answer] unstructured analysis output; using heuristics raw=%r", raw[:200])
            return heuristic_analysis(answer, self.language)
        return parsed

    def _build_graph(
        self,
        answer_source: Any,
        token: CancellationToken,
        on_progress: ProgressCallback | None,
    ):
        async def check_continue(state: RunContext) -> dict:
            done = len(state["turns"])
            if token.cancelled:
                logger.info("[graph:check_continue] cancelled after %d turns", done)
                return {"stop_reason": StopReason.CANCELLED.value}
            if done >= state["max_iterations"]:
                logger.info("[graph:check_continue] iteration budget %d exhausted", state["max_iterations"])
                return {"stop_reason": StopReason.LIMIT_REACHED.value}
            return {"stop_reason": None}

        async def generate_question(state: RunContext) -> dict:
            question = await self.generate_initial_question(state["hypothesis"], state["strategy"])
            logger.info("[graph:generate_question] strategy=%s question=%r", state["strategy"].value, question)
            return {"question": question}

        async def ask_source(state: RunContext) -> dict:
            iteration = len(state["turns"]) + 1
            logger.info(
                "[graph:ask_source] iteration %d/%d strategy=%s question=%r",
                iteration, state["max_iterations"], state["strategy"].value, state["question"],
            )
            answer = await answer_source.ask(state["question"])
            logger.info("[graph:ask_source] answer_len=%d preview=%r", len(answer or ""), (answer or "")[:150])
            return {"answer": answer or ""}

        async def analyze_answer(state: RunContext) -> dict:
            findings, follow_ups = await self.analyze_answer(state["question"], state["answer"])
            turn = ConversationTurn(
                question=state["question"],
                answer=state["answer"],
                strategy=state["strategy"],
                findings=tuple(findings),
                follow_ups=tuple(follow_ups),
            )
            turns = state["turns"] + [turn]
            all_findings = state["findings"] + list(findings)
            logger.info("[graph:analyze_answer] findings=%d follow_ups=%d total_findings=%d",
                        len(findings), len(follow_ups), len(all_findings))
            await emit_progress(on_progress, ProgressEvent(
                iteration=len(turns),
                total_iterations=state["max_iterations"],
                question=turn.question,
                answer=turn.answer,
                findings=tuple(all_findings),
                strategy=turn.strategy,
            ))
            return {"turns": turns, "findings": all_findings}

        async def decide_next_move(state: RunContext) -> dict:
            turns = state["turns"]
            last: ConversationTurn = turns[-1]
            stuck = _is_stuck(turns)
            if not stuck and last.follow_ups:
                logger.info("[graph:decide_next_move] follow-up %r", last.follow_ups[0])
                return {"question": last.follow_ups[0], "next_step": "ask"}
            nxt = state["strategy"].next()
            if nxt is state["initial_strategy"]:
                logger.info("[graph:decide_next_move] strategy cycle complete (stuck=%s)", stuck)
                return {"stop_reason": StopReason.COMPLETED.value}
            logger.info("[graph:decide_next_move] strategy switch %s → %s (stuck=%s)",
                        state["strategy"].value, nxt.value, stuck)
            return {"strategy": nxt, "next_step": "generate"}

        def route_after_check(state: RunContext) -> str:
            if state.get("stop_reason"):
                return END
            return "generate_question" if state["next_step"] == "generate" else "ask_source"

        def route_after_decide(state: RunContext) -> str:
            return END if state.get("stop_reason") else "check_continue"

        graph = StateGraph(RunContext)
        graph.add_node("check_continue", check_continue)
        graph.add_node("generate_question", generate_question)
        graph.add_node("ask_source", ask_source)
        graph.add_node("analyze_answer", analyze_answer)
        graph.add_node("decide_next_move", decide_next_move)

        graph.set_entry_point("check_continue")
        graph.add_conditional_edges(
            "check_continue",
            route_after_check,
            {"generate_question": "generate_question", "ask_source": "ask_source", END: END},
        )
        graph.add_edge("generate_question", "ask_source")
        graph.add_edge("ask_source", "analyze_answer")
        graph.add_edge("analyze_answer", "decide_next_move")
        graph.add_conditional_edges(
            "decide_next_move", route_after_decide, {"check_continue": "check_continue", END: END}
        )
        return graph.compile()

    async def interrogate(
        self,
        hypothesis: str,
        answer_source: Any,
        max_iterations: int = 10,
        cancellation_token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> InterrogationResult:
        """
        Question answer_source about hypothesis until the strategy cycle is
        exhausted, max_iterations turns were taken, or the token is cancelled.

        Generator and answer-source errors propagate unchanged.
        """
        if not hypothesis or not str(hypothesis).strip():
            raise ValueError("hypothesis is required")
        token = cancellation_token or CancellationToken()
        logger.info(
            "[interrogate] START hypothesis=%r max_iterations=%d strategy=%s language=%s",
            hypothesis, max_iterations, self.initial_strategy.value, self.language,
        )
        initial: RunContext = {
            "hypothesis": str(hypothesis).strip(),
            "max_iterations": max_iterations,
            "initial_strategy": self.initial_strategy,
            "strategy": self.initial_strategy,
            "next_step": "generate",
            "question": "",
            "answer": "",
            "turns": [],
            "findings": [],
            "stop_reason": None,
        }
        graph = self._build_graph(answer_source, token, on_progress)
        final = await graph.ainvoke(
            initial, config={"recursion_limit": _NODES_PER_ITERATION * max(1, max_iterations) + 10}
        )
        result = InterrogationResult(
            findings=list(final["findings"]),
            turns=list(final["turns"]),
            final_strategy=final["strategy"],
            stop_reason=StopReason(final["stop_reason"] or StopReason.COMPLETED.value),
        )
        logger.info(
            "[interrogate] END turns=%d findings=%d final_strategy=%s stop_reason=%s",
            len(result.turns), len(result.findings), result.final_strategy.value, result.stop_reason.value,
        )
        return result
