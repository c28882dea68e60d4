"""Service layer for the chat-completion load tester."""

from chatload.services.aggregator import Aggregator
from chatload.services.conversation import ConversationRunner
from chatload.services.credentials import CredentialPool, CredentialStore
from chatload.services.dispatcher import Dispatcher
from chatload.services.pool import WorkerPool
from chatload.services.report import render_report
from chatload.services.scenarios import ScenarioRunner
from chatload.services.scheduler import BatchScheduler
from chatload.services.store import ResultStore, ScenarioResultStore

__all__ = [
    "Aggregator",
    "BatchScheduler",
    "ConversationRunner",
    "CredentialPool",
    "CredentialStore",
    "Dispatcher",
    "ResultStore",
    "ScenarioResultStore",
    "ScenarioRunner",
    "WorkerPool",
    "render_report",
]
