"""Domain types: outcomes, run entities and aggregate summaries."""

from chatload.models.outcome import (
    ApplicationError,
    Outcome,
    OutcomeKind,
    Success,
    TransportCode,
    TransportError,
    classify_response,
)
from chatload.models.run import (
    Batch,
    Conversation,
    Credential,
    Exchange,
    RunConfig,
    TestRun,
)
from chatload.models.scenario import Scenario, ScenarioPlan, default_scenario_plan
from chatload.models.summary import ErrorPattern, GroupSummary, OutcomeCounts, RunSummary

__all__ = [
    "ApplicationError",
    "Outcome",
    "OutcomeKind",
    "Success",
    "TransportCode",
    "TransportError",
    "classify_response",
    "Batch",
    "Conversation",
    "Credential",
    "Exchange",
    "RunConfig",
    "TestRun",
    "Scenario",
    "ScenarioPlan",
    "default_scenario_plan",
    "ErrorPattern",
    "GroupSummary",
    "OutcomeCounts",
    "RunSummary",
]
