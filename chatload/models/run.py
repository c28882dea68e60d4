"""Entities produced while a load test runs.

A ``TestRun`` holds ordered ``Batch``es, each batch holds the
``Conversation``s of its credentials, and each conversation holds its
ordered ``Exchange``s. Counts roll up: a run's totals are the sum of its
batches' totals, which are the sum of their conversations' totals.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from chatload.models.outcome import Outcome
from chatload.utils.text import mask_secret


@dataclass(frozen=True)
class Credential:
    """An opaque bearer secret plus the metadata stored alongside it.

    Attributes:
        id: Identifier, unique within a credential store.
        key: Raw secret sent verbatim in the Authorization header.
        model: Model bound to this credential, if any.
        description: Free-form description from the store.
        created_at: Creation timestamp from the store.
    """

    id: str
    key: str = field(repr=False)
    model: str | None = None
    description: str = ""
    created_at: str | None = None

    @property
    def masked_key(self) -> str:
        """First characters of the secret, safe to log and persist."""
        return mask_secret(self.key)


@dataclass(frozen=True)
class Exchange:
    """One prompt/response round trip.

    Attributes:
        conversation_id: Id of the conversation the exchange belongs to.
        index: 1-based position in the conversation.
        prompt: User prompt sent.
        model: Model requested.
        started_at: Epoch seconds at dispatch start.
        duration: Wall-clock duration in seconds.
        outcome: Classified outcome.
        request: JSON body sent (without the credential).
    """

    conversation_id: str
    index: int
    prompt: str
    model: str
    started_at: float
    duration: float
    outcome: Outcome
    request: dict[str, Any] = field(default_factory=dict)

    @property
    def finished_at(self) -> float:
        return self.started_at + self.duration

    @property
    def is_success(self) -> bool:
        return self.outcome.is_success


@dataclass
class Conversation:
    """Ordered exchanges of one credential."""

    conversation_id: str
    credential: Credential
    batch_index: int
    exchanges: list[Exchange] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def exchange_count(self) -> int:
        return len(self.exchanges)

    @property
    def success_count(self) -> int:
        return sum(1 for exchange in self.exchanges if exchange.is_success)

    @property
    def failure_count(self) -> int:
        return self.exchange_count - self.success_count

    @property
    def total_duration(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)

    @property
    def is_successful(self) -> bool:
        """A conversation succeeds when at least one exchange succeeded."""
        return self.success_count > 0


@dataclass
class Batch:
    """A concurrency-bounded group of credentials and their conversations.

    Attributes:
        index: 1-based batch number.
        credentials: Credentials of this batch, in order.
        conversations: Conversations in completion order.
    """

    index: int
    credentials: list[Credential]
    conversations: list[Conversation] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def exchange_count(self) -> int:
        return sum(c.exchange_count for c in self.conversations)

    @property
    def success_count(self) -> int:
        return sum(c.success_count for c in self.conversations)

    @property
    def failure_count(self) -> int:
        return sum(c.failure_count for c in self.conversations)

    @property
    def duration(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)


@dataclass(frozen=True)
class RunConfig:
    """Configuration captured in a run's ``config.json``."""

    timestamp: datetime
    api_endpoint: str
    max_concurrent_requests: int
    max_workers: int
    exchanges_per_conversation: int
    verbose_output: bool


@dataclass
class TestRun:
    """A complete load-test run."""

    __test__ = False  # not a pytest test class

    run_id: str
    config: RunConfig
    batches: list[Batch] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def conversations(self) -> list[Conversation]:
        return [c for batch in self.batches for c in batch.conversations]

    @property
    def exchange_count(self) -> int:
        return sum(batch.exchange_count for batch in self.batches)

    @property
    def success_count(self) -> int:
        return sum(batch.success_count for batch in self.batches)

    @property
    def failure_count(self) -> int:
        return sum(batch.failure_count for batch in self.batches)

    @property
    def duration(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)
