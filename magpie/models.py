"""Dataclasses for the Magpie debate pipeline. No deps; only derived properties."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from magpie.providers.base import AIProvider

# Reserved author ids
ANALYZER_ID = "analyzer"
SUMMARIZER_ID = "summarizer"
HUMAN_ID = "human"

RESERVED_IDS = frozenset({ANALYZER_ID, SUMMARIZER_ID, HUMAN_ID})


@dataclass(frozen=True)
class Message:
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class Reviewer:
    id: str
    provider: "AIProvider"
    system_prompt: str


@dataclass(frozen=True)
class DebateMessage:
    reviewer_id: str       # reviewer id, "analyzer", "summarizer" or "human"
    content: str
    round_number: int      # 0 = post-analysis Q&A
    timestamp: datetime = field(default_factory=datetime.now)
    private_to: str | None = None  # Q&A turns are visible to one reviewer only


@dataclass(frozen=True)
class DebateSummary:
    reviewer_id: str
    summary: str


@dataclass(frozen=True)
class TokenUsage:
    reviewer_id: str
    input_tokens: int
    output_tokens: int
    estimated_cost: float

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ReviewerStatus:
    reviewer_id: str
    status: Literal["pending", "thinking", "done"] = "pending"
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass
class DebateOptions:
    max_rounds: int = 3
    interactive: bool = False
    check_convergence: bool = False
    cost_per_token: float = 0.00001


@dataclass(frozen=True)
class DebateResult:
    label: str
    analysis: str
    messages: tuple[DebateMessage, ...]
    summaries: tuple[DebateSummary, ...]
    final_conclusion: str
    token_usage: tuple[TokenUsage, ...]
    converged_at_round: int | None = None
