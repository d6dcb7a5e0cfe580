"""Questioning strategies, conversation turns, and run results for the detective."""

from dataclasses import dataclass, field
from enum import Enum


class Strategy(str, Enum):
    """Questioning stance. Members are declared in cycle order."""

    BROAD_OVERVIEW = "broad-overview"
    DEEP_DIVE = "deep-dive"
    FACT_CHECK = "fact-check"
    TIMELINE = "timeline"

    def next(self) -> "Strategy":
        members = list(Strategy)
        return members[(members.index(self) + 1) % len(members)]


class StopReason(str, Enum):
    COMPLETED = "completed"
    LIMIT_REACHED = "limit_reached"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ConversationTurn:
    question: str
    answer: str
    strategy: Strategy
    findings: tuple[str, ...] = ()
    follow_ups: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted after every iteration; findings are cumulative for the run."""

    iteration: int
    total_iterations: int
    question: str
    answer: str
    findings: tuple[str, ...]
    strategy: Strategy
    status: str = "running"


@dataclass
class InterrogationResult:
    findings: list[str] = field(default_factory=list)
    turns: list[ConversationTurn] = field(default_factory=list)
    final_strategy: Strategy = Strategy.BROAD_OVERVIEW
    stop_reason: StopReason = StopReason.COMPLETED
