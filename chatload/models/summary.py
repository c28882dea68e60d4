"""Aggregated views over a completed result tree."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def success_rate(successful: int, total: int) -> float:
    """Fraction of successful exchanges; 0 when nothing ran."""
    if total <= 0:
        return 0.0
    return successful / total


def throughput(total: int, duration: float | None) -> float:
    """Exchanges per second; 0 when the duration is zero or unknown."""
    if not duration or duration <= 0:
        return 0.0
    return total / duration


@dataclass(frozen=True)
class OutcomeCounts:
    """Success/failure counts of a group of exchanges."""

    total: int = 0
    successful: int = 0
    failed: int = 0

    def __add__(self, other: "OutcomeCounts") -> "OutcomeCounts":
        return OutcomeCounts(
            total=self.total + other.total,
            successful=self.successful + other.successful,
            failed=self.failed + other.failed,
        )

    @property
    def success_rate(self) -> float:
        return success_rate(self.successful, self.total)


@dataclass(frozen=True)
class GroupSummary:
    """Counts for one scenario or one batch.

    Attributes:
        group_id: Scenario id (``1a``) or batch directory name (``batch_1``).
        description: Human-readable description.
        counts: Exchange counts.
        duration: Seconds the group took, if known.
        purpose: Why the scenario exists (scenarios only).
    """

    group_id: str
    description: str
    counts: OutcomeCounts
    duration: float | None = None
    purpose: str = ""

    @property
    def success_rate(self) -> float:
        return self.counts.success_rate

    @property
    def throughput(self) -> float:
        return throughput(self.counts.total, self.duration)


@dataclass(frozen=True)
class ErrorPattern:
    """Failed exchanges sharing the same (model, error message) key.

    Attributes:
        model: Model the failing requests asked for.
        error: Error message shared by every occurrence.
        occurrence_count: How many exchanges fell into this bucket.
        request: Representative request body.
        response: Representative response (or transport description).
        example_path: Result-tree path of the representative exchange.
    """

    model: str
    error: str
    occurrence_count: int
    request: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    response: Any = field(default=None, compare=False, hash=False)
    example_path: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.model, self.error)


@dataclass(frozen=True)
class RunSummary:
    """Run-level aggregate produced by the Aggregator.

    Attributes:
        run_id: Name of the run directory.
        endpoint: API endpoint from config.json, if present.
        exchanges: Exchange counts over the whole run.
        total_conversations: Number of conversations found.
        successful_conversations: Conversations with at least one success.
        duration: Span from the first exchange start to the last completion.
        groups: Per-batch or per-scenario summaries, in tree order.
        error_patterns: Deduplicated failures, most frequent first.
        timestamp: Run start from config.json, or from the directory name.
    """

    run_id: str
    endpoint: str
    exchanges: OutcomeCounts
    total_conversations: int
    successful_conversations: int
    duration: float
    groups: tuple[GroupSummary, ...] = ()
    error_patterns: tuple[ErrorPattern, ...] = ()
    timestamp: datetime | None = None

    @property
    def failed_conversations(self) -> int:
        return self.total_conversations - self.successful_conversations

    @property
    def success_rate(self) -> float:
        return self.exchanges.success_rate

    @property
    def throughput(self) -> float:
        return throughput(self.exchanges.total, self.duration)

    @property
    def average_conversation_time(self) -> float:
        if self.total_conversations == 0:
            return 0.0
        return self.duration / self.total_conversations
