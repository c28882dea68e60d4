"""ScenarioRunner: executes named load shapes against the API.

Unlike a load-test run, a scenario sends single-exchange requests. Serial
scenarios send them one after another; concurrent scenarios fan every
request of the scenario out at once, up to the worker-count ceiling.
"""

import time
from collections.abc import Sequence
from pathlib import Path

from chatload.api.schemas import ScenarioSummaryRecord
from chatload.core.logging import get_logger
from chatload.models.run import Credential, Exchange
from chatload.models.scenario import Scenario, ScenarioPlan
from chatload.services.credentials import CredentialPool
from chatload.services.dispatcher import Dispatcher
from chatload.services.pool import WorkerPool
from chatload.services.store import ScenarioResultStore
from chatload.utils.prompts import SCENARIO_PROMPT

logger = get_logger(__name__)


class ScenarioRunner:
    """Runs every scenario of a plan and records the results.

    Args:
        dispatcher: Sends the individual requests.
        store: Scenario result tree.
        max_workers: Thread ceiling for concurrent scenarios.
        default_model: Model used when a credential has none bound.
        prompt: Prompt sent with every request.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        store: ScenarioResultStore,
        max_workers: int,
        default_model: str = "default",
        prompt: str = SCENARIO_PROMPT,
    ) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._max_workers = max_workers
        self._default_model = default_model
        self._prompt = prompt

    def run(
        self,
        plan: ScenarioPlan,
        credentials: CredentialPool,
        models: Sequence[str],
    ) -> list[ScenarioSummaryRecord]:
        """Run the plan's scenarios in order and write the master summary.

        Raises:
            ConfigError: If the credentials the plan uses have repeated ids
                or ids that are not plain directory names. Nothing is sent.
        """
        widest = max((scenario.key_count for scenario in plan), default=0)
        credentials.take(widest).ensure_usable()
        summaries = []
        for scenario in plan:
            summaries.append(self.run_scenario(scenario, credentials, models))
        self._store.write_master_summary(summaries)
        return summaries

    def run_scenario(
        self,
        scenario: Scenario,
        credentials: CredentialPool,
        models: Sequence[str],
    ) -> ScenarioSummaryRecord:
        """Run one scenario.

        Uses the first ``key_count`` credentials (fewer if the pool is
        smaller). Single-key scenarios write their requests directly into
        the scenario directory, multi-key scenarios into one sub-directory
        per credential.
        """
        keys = credentials.take(scenario.key_count)
        if scenario.distinct_models:
            keys = keys.with_models(models)
        per_key_dirs = scenario.key_count > 1
        scenario_dir = self._store.scenario_dir(scenario.group, scenario.scenario_id, scenario.name)
        jobs = [
            (credential, index)
            for credential in keys
            for index in range(1, scenario.requests_per_key + 1)
        ]

        logger.info(
            "Running scenario",
            scenario=scenario.scenario_id,
            description=scenario.description,
            requests=len(jobs),
            concurrent=scenario.concurrent,
        )
        start = time.perf_counter()
        if scenario.concurrent and jobs:
            with WorkerPool[Path](
                capacity=min(len(jobs), self._max_workers),
                name=f"scenario-{scenario.scenario_id}",
            ) as workers:
                for credential, index in jobs:
                    workers.submit(self._send, scenario_dir, credential, index, per_key_dirs)
                workers.await_batch().raise_first_error()
        else:
            for credential, index in jobs:
                self._send(scenario_dir, credential, index, per_key_dirs)
        duration = time.perf_counter() - start

        summary = ScenarioSummaryRecord(
            scenario=scenario.scenario_id,
            description=scenario.description,
            total_requests=len(jobs),
            duration=duration,
        )
        self._store.record_scenario_summary(scenario_dir, summary)
        logger.info(
            "Completed scenario",
            scenario=scenario.scenario_id,
            duration=round(duration, 3),
        )
        return summary

    def _send(
        self,
        scenario_dir: Path,
        credential: Credential,
        index: int,
        per_key_dirs: bool,
    ) -> Path:
        model = credential.model or self._default_model
        conversation_id = f"conv_{credential.id}_{index}"
        result = self._dispatcher.dispatch(
            credential,
            self._prompt,
            model,
            conversation_id=conversation_id,
        )
        exchange = Exchange(
            conversation_id=conversation_id,
            index=index,
            prompt=self._prompt,
            model=model,
            started_at=result.started_at,
            duration=result.duration,
            outcome=result.outcome,
            request=result.request,
        )
        return self._store.record_request(
            scenario_dir,
            credential.id if per_key_dirs else None,
            index,
            exchange,
        )
