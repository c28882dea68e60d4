"""Pydantic schemas for the chat-completion wire format and persisted results.

The result-tree documents keep the field names of the legacy shell scripts
(``prompt``, ``conversation_id``, ``status``, ``duration``, ``response`` /
``error``) so existing consumers keep working; the ``outcome`` tag and the
timing fields are additions.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A single chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionRequest(BaseModel):
    """Request body sent to the chat-completion endpoint."""

    model: str = Field(..., min_length=1, description="Model to run")
    messages: list[ChatMessage] = Field(..., min_length=1)
    stream: bool = Field(default=False, description="Streaming is never requested")

    @classmethod
    def build(cls, model: str, system_prompt: str, prompt: str) -> "ChatCompletionRequest":
        """Build the two-message request used for every exchange."""
        return cls(
            model=model,
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=prompt),
            ],
            stream=False,
        )


# Credential store


class CredentialEntry(BaseModel):
    """One entry of the credential store's ``api_keys`` list."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    description: str = ""
    created_at: str | None = None
    model: str | None = None


class CredentialFile(BaseModel):
    """Top-level credential store document."""

    model_config = ConfigDict(extra="allow")

    api_keys: list[CredentialEntry] = Field(default_factory=list)


# Result tree


class RunConfigRecord(BaseModel):
    """``test_<timestamp>/config.json``."""

    timestamp: datetime
    api_endpoint: str
    max_concurrent_requests: int = Field(..., ge=1)
    max_workers: int = Field(default=1, ge=1)
    exchanges_per_conversation: int = Field(default=1, ge=1)
    verbose_output: int = Field(default=0, ge=0, le=1)


class ExchangeRecord(BaseModel):
    """``exchange_<k>.json`` and scenario ``request_<i>.json``.

    ``status`` is the transport code: 0 whenever a response was received.
    Exactly one of ``response`` (success) or ``error`` (failure) is
    meaningful; application errors keep the raw response as well.
    """

    model_config = ConfigDict(extra="ignore")

    conversation_id: str
    exchange_index: int = Field(..., ge=1)
    prompt: str
    model: str
    outcome: Literal["success", "application_error", "transport_error"]
    status: int = Field(..., ge=0)
    started_at: float
    duration: float = Field(..., ge=0.0)
    request: dict[str, Any] = Field(default_factory=dict)
    response: Any = None
    error: str | None = None
    error_description: str | None = None
    http_status: int | None = None

    @property
    def finished_at(self) -> float:
        return self.started_at + self.duration

    @property
    def is_success(self) -> bool:
        return self.outcome == "success"


class ConversationSummaryRecord(BaseModel):
    """``conv_<credentialId>/summary.json``."""

    conversation_id: str
    credential_id: str
    api_key: str = Field(..., description="Masked credential")
    model: str
    exchange_count: int = Field(..., ge=0)
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)
    total_duration: float = Field(..., ge=0.0)


class BatchSummaryRecord(BaseModel):
    """``batch_<n>/summary.json``."""

    batch_index: int = Field(..., ge=1)
    conversation_count: int = Field(..., ge=0)
    credential_ids: list[str] = Field(default_factory=list)
    total_exchanges: int = Field(..., ge=0)
    successful_exchanges: int = Field(..., ge=0)
    failed_exchanges: int = Field(..., ge=0)
    started_at: float
    finished_at: float
    duration: float = Field(..., ge=0.0)


class ScenarioSummaryRecord(BaseModel):
    """Per-scenario ``summary.json`` in a scenario run."""

    scenario: str
    description: str
    total_requests: int = Field(..., ge=0)
    duration: float = Field(..., ge=0.0)


class GroupSummaryRecord(BaseModel):
    """Per-batch or per-scenario entry of a run summary."""

    id: str
    description: str
    total_exchanges: int
    successful_exchanges: int
    failed_exchanges: int
    success_rate: float
    duration: float | None = None
    throughput: float


class ErrorPatternRecord(BaseModel):
    """Error-pattern bucket as persisted in a run summary."""

    model: str
    error: str
    occurrence_count: int = Field(..., ge=1)
    example_path: str = ""
    request: dict[str, Any] = Field(default_factory=dict)
    response: Any = None


class RunSummaryRecord(BaseModel):
    """``test_<timestamp>/summary.json``."""

    timestamp: datetime | None = None
    run_id: str
    api_endpoint: str
    total_conversations: int
    successful_conversations: int
    failed_conversations: int
    total_exchanges: int
    successful_exchanges: int
    failed_exchanges: int
    success_rate: float
    throughput: float
    total_test_duration: float
    average_conversation_time: float
    groups: list[GroupSummaryRecord] = Field(default_factory=list)
    error_patterns: list[ErrorPatternRecord] = Field(default_factory=list)
