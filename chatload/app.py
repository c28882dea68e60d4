"""Wires settings, stores and services into complete runs.

Each entry point builds its collaborators from ``Settings``, runs, then
aggregates the result tree it just wrote and renders the report from the
aggregate.
"""

import random
import secrets
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import requests
from prometheus_client import start_http_server

from chatload.core.config import Settings
from chatload.core.logging import bind_run_context, get_logger
from chatload.models.run import Credential, RunConfig
from chatload.models.scenario import default_scenario_plan
from chatload.models.summary import RunSummary
from chatload.services.aggregator import Aggregator, to_record
from chatload.services.conversation import ConversationRunner
from chatload.services.credentials import CredentialStore
from chatload.services.dispatcher import DispatchResult, Dispatcher, build_session
from chatload.services.report import HealthLevel, health_level, render_report
from chatload.services.scenarios import ScenarioRunner
from chatload.services.scheduler import BatchScheduler
from chatload.services.store import (
    SCENARIO_REPORT_FILE,
    ResultStore,
    ScenarioResultStore,
    SummaryLevel,
)
from chatload.utils.prompts import PromptSource

logger = get_logger(__name__)

_metrics_started = False


def start_metrics_server(settings: Settings) -> None:
    """Expose Prometheus metrics if a port is configured (once per process)."""
    global _metrics_started
    if settings.metrics_port is None or _metrics_started:
        return
    start_http_server(settings.metrics_port)
    _metrics_started = True
    logger.info("Metrics server started", port=settings.metrics_port)


def build_dispatcher(
    settings: Settings,
    pool_size: int,
    session: requests.Session | None = None,
) -> Dispatcher:
    return Dispatcher(
        endpoint=settings.api_endpoint,
        session=session or build_session(pool_size),
        timeout=settings.request_timeout_sec,
        system_prompt=settings.system_prompt,
        verbose=settings.verbose_output,
    )


def log_verdict(summary: RunSummary) -> HealthLevel:
    """Log the run-level summary and the health banner."""
    level = health_level(summary.success_rate)
    logger.info(
        "Test completed",
        run_id=summary.run_id,
        duration=round(summary.duration, 3),
        conversations=f"{summary.successful_conversations}/{summary.total_conversations}",
        exchanges=summary.exchanges.total,
        success_rate=f"{summary.success_rate * 100:.2f}%",
        throughput=round(summary.throughput, 3),
    )
    if level is HealthLevel.CRITICAL:
        logger.critical("CRITICAL: success rate below 50%", success_rate=summary.success_rate)
    elif level is HealthLevel.WARNING:
        logger.warning("WARNING: success rate below 90%", success_rate=summary.success_rate)
    for pattern in summary.error_patterns:
        logger.info(
            "Error pattern",
            occurrences=pattern.occurrence_count,
            model=pattern.model,
            error=pattern.error,
        )
    return level


def run_load_test(
    settings: Settings,
    now: datetime | None = None,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> tuple[Path, RunSummary]:
    """Run a complete batched load test.

    Args:
        settings: Run settings.
        now: Run timestamp; defaults to the current local time.
        session: HTTP session; a pooled one is built when omitted.
        sleep: Sleep used for inter-exchange pauses.
        rng: Random source for prompts and pauses.

    Returns:
        Result directory and the aggregated summary.

    Raises:
        ConfigError: On any fatal setup problem, before the first request.
    """
    logger.info("Using API endpoint", endpoint=settings.api_endpoint)
    if not settings.verbose_output:
        logger.info(
            "Verbose output disabled. Set VERBOSE_OUTPUT=1 to see detailed API requests and responses."
        )

    credentials = CredentialStore(settings.api_keys_file).load()
    credentials.ensure_usable()
    timestamp = now or datetime.now().astimezone()
    store = ResultStore.create(settings.results_dir, timestamp)
    bind_run_context(run_id=store.run_id)
    config = RunConfig(
        timestamp=timestamp,
        api_endpoint=settings.api_endpoint,
        max_concurrent_requests=settings.max_concurrent_requests,
        max_workers=settings.max_workers,
        exchanges_per_conversation=settings.exchanges_per_conversation,
        verbose_output=settings.verbose_output,
    )
    store.write_config(config)
    start_metrics_server(settings)

    rng = rng or random.Random()
    dispatcher = build_dispatcher(settings, settings.max_concurrent_requests, session)
    runner = ConversationRunner(
        dispatcher=dispatcher,
        store=store,
        default_model=settings.default_model,
        timeout=settings.request_timeout_sec,
        delay_min=settings.exchange_delay_min_sec,
        delay_max=settings.exchange_delay_max_sec,
        rng=rng,
        sleep=sleep,
    )
    scheduler = BatchScheduler(runner=runner, store=store, prompt_source=PromptSource(rng=rng))
    scheduler.run(
        credentials,
        limit=settings.max_concurrent_requests,
        exchanges_per_conversation=settings.exchanges_per_conversation,
        config=config,
    )

    summary = finalize_load_test(store)
    logger.info("Results saved", path=str(store.root))
    return store.root, summary


def finalize_load_test(store: ResultStore) -> RunSummary:
    """Aggregate a load-test tree and (re)write its summary and report."""
    summary = Aggregator().aggregate(store.root)
    store.record_summary(SummaryLevel.RUN, to_record(summary))
    store.write_report(
        render_report(summary, title="Chat API Load Test Report", generated_at=datetime.now())
    )
    log_verdict(summary)
    return summary


def run_scenario_suite(
    settings: Settings,
    scenario_ids: list[str] | None = None,
    now: datetime | None = None,
    session: requests.Session | None = None,
) -> tuple[Path, RunSummary]:
    """Run the scenario plan (or the selected scenarios) and report on it."""
    plan = default_scenario_plan().select(scenario_ids)
    credentials = CredentialStore(settings.api_keys_file).load()
    store = ScenarioResultStore.create(settings.results_dir, now or datetime.now().astimezone())
    bind_run_context(run_id=store.run_id)
    start_metrics_server(settings)

    logger.info("Starting scenario testing", scenarios=len(plan), path=str(store.root))
    runner = ScenarioRunner(
        dispatcher=build_dispatcher(settings, settings.max_workers, session),
        store=store,
        max_workers=settings.max_workers,
        default_model=settings.default_model,
    )
    runner.run(plan, credentials, settings.scenario_models)

    summary = finalize_scenarios(store)
    logger.info("All scenarios completed", path=str(store.root))
    return store.root, summary


def finalize_scenarios(store: ScenarioResultStore) -> RunSummary:
    """Aggregate a scenario tree and (re)write its summary and report."""
    summary = Aggregator().aggregate_scenarios(store.root)
    store.write_run_summary(to_record(summary))
    store.write_report(
        render_report(
            summary,
            title="Chat API Scenario Test Report",
            group_label="Scenario",
            generated_at=datetime.now(),
        )
    )
    logger.info("HTML report generated", path=str(store.root / SCENARIO_REPORT_FILE))
    log_verdict(summary)
    return summary


def reaggregate(test_dir: str | Path) -> RunSummary:
    """Recompute summary and report of an existing result tree."""
    root = Path(test_dir)
    if root.name.startswith("scenario_test_") or any(root.glob("scenario_*/")):
        return finalize_scenarios(ScenarioResultStore(root))
    return finalize_load_test(ResultStore(root))


def probe(
    settings: Settings,
    placeholder_key: bool = False,
    session: requests.Session | None = None,
) -> DispatchResult:
    """Send a single request and return its classified outcome.

    Args:
        settings: Run settings.
        placeholder_key: Use a generated ``mor_<hex>`` key instead of the store.
        session: HTTP session; a default one is built when omitted.
    """
    if placeholder_key:
        credential = Credential(id="placeholder", key=f"mor_{secrets.token_hex(16)}")
    else:
        credential = CredentialStore(settings.api_keys_file).load()[0]

    dispatcher = build_dispatcher(settings, 1, session)
    logger.info(
        "Testing API call",
        endpoint=settings.api_endpoint,
        credential_id=credential.id,
        api_key=credential.masked_key,
    )
    return dispatcher.dispatch(
        credential,
        "Hello, this is a test message. Please provide a brief response.",
        credential.model or settings.default_model,
        conversation_id="probe",
    )
