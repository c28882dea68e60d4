"""Result stores: deterministic, collision-free trees of JSON documents.

Load-test layout::

    results/test_<YYYYmmdd_HHMMSS>/
        config.json
        batch_<n>/
            summary.json
            conv_<credentialId>/
                exchange_<k>.json
                summary.json
        summary.json
        report.html

Scenario layout::

    results/scenario_test_<YYYYmmdd_HHMMSS>/
        scenario_<g>/<id>_<name>/[<credentialId>/]request_<i>.json
        scenario_<g>/<id>_<name>/summary.json
        master_summary.json
        summary.json
        scenario_report.html

Every exchange path is addressed by (batch, credential, index) and opened
in exclusive-create mode. Paths of concurrent workers never overlap, so no
locking is involved.
"""

import json
import os
import tempfile
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from chatload.api.schemas import (
    BatchSummaryRecord,
    ConversationSummaryRecord,
    ExchangeRecord,
    RunConfigRecord,
    RunSummaryRecord,
    ScenarioSummaryRecord,
)
from chatload.core.exceptions import ConfigError, ResultStoreError
from chatload.core.logging import get_logger
from chatload.models.outcome import outcome_to_dict
from chatload.models.run import Exchange, RunConfig

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

CONFIG_FILE = "config.json"
SUMMARY_FILE = "summary.json"
REPORT_FILE = "report.html"
MASTER_SUMMARY_FILE = "master_summary.json"
SCENARIO_REPORT_FILE = "scenario_report.html"


class SummaryLevel(str, Enum):
    """Level of the tree a summary document belongs to."""

    CONVERSATION = "conversation"
    BATCH = "batch"
    RUN = "run"


def exchange_record(exchange: Exchange) -> ExchangeRecord:
    """Persisted form of an exchange."""
    return ExchangeRecord(
        conversation_id=exchange.conversation_id,
        exchange_index=exchange.index,
        prompt=exchange.prompt,
        model=exchange.model,
        started_at=exchange.started_at,
        duration=exchange.duration,
        request=exchange.request,
        **outcome_to_dict(exchange.outcome),
    )


def _create_run_dir(results_dir: str | Path, prefix: str, timestamp: datetime) -> Path:
    root = Path(results_dir) / f"{prefix}{timestamp.strftime(TIMESTAMP_FORMAT)}"
    try:
        root.mkdir(parents=True, exist_ok=False)
    except FileExistsError as e:
        raise ConfigError(
            f"Result directory {root} already exists",
            details=[{"path": str(root)}],
        ) from e
    except OSError as e:
        raise ResultStoreError(f"Cannot create result directory {root}: {e}", path=str(root)) from e
    return root


class _JsonTree:
    """Shared JSON writing for both layouts."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def run_id(self) -> str:
        return self._root.name

    def _write_once(self, path: Path, document: BaseModel) -> Path:
        """Write a document that must not exist yet."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "x", encoding="utf-8") as f:
                f.write(document.model_dump_json(indent=2))
        except FileExistsError as e:
            raise ResultStoreError(f"Result already recorded at {path}", path=str(path)) from e
        except OSError as e:
            raise ResultStoreError(f"Cannot write {path}: {e}", path=str(path)) from e
        return path

    def _write_replace(self, path: Path, text: str) -> Path:
        """Atomically write (or rewrite) a document."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                    tmp.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ResultStoreError(f"Cannot write {path}: {e}", path=str(path)) from e
        return path


class ResultStore(_JsonTree):
    """Writes one load-test run into ``test_<timestamp>``.

    Args:
        root: Run directory. Use ``create`` to make a fresh one.
    """

    @classmethod
    def create(cls, results_dir: str | Path, timestamp: datetime) -> "ResultStore":
        """Create ``results_dir/test_<timestamp>``.

        Raises:
            ConfigError: If a run with the same timestamp already exists.
        """
        root = _create_run_dir(results_dir, "test_", timestamp)
        logger.info("Created result directory", path=str(root))
        return cls(root)

    def batch_dir(self, batch_index: int) -> Path:
        return self._root / f"batch_{batch_index}"

    def conversation_dir(self, batch_index: int, credential_id: str) -> Path:
        return self.batch_dir(batch_index) / f"conv_{credential_id}"

    def exchange_path(self, batch_index: int, credential_id: str, exchange_index: int) -> Path:
        return self.conversation_dir(batch_index, credential_id) / f"exchange_{exchange_index}.json"

    def write_config(self, config: RunConfig) -> Path:
        record = RunConfigRecord(
            timestamp=config.timestamp,
            api_endpoint=config.api_endpoint,
            max_concurrent_requests=config.max_concurrent_requests,
            max_workers=config.max_workers,
            exchanges_per_conversation=config.exchanges_per_conversation,
            verbose_output=1 if config.verbose_output else 0,
        )
        return self._write_once(self._root / CONFIG_FILE, record)

    def record(
        self,
        batch_index: int,
        credential_id: str,
        exchange_index: int,
        exchange: Exchange,
    ) -> Path:
        """Persist one exchange.

        Raises:
            ResultStoreError: If the exchange was already recorded.
        """
        path = self.exchange_path(batch_index, credential_id, exchange_index)
        return self._write_once(path, exchange_record(exchange))

    def record_summary(
        self,
        level: SummaryLevel,
        summary: ConversationSummaryRecord | BatchSummaryRecord | RunSummaryRecord,
        batch_index: int | None = None,
        credential_id: str | None = None,
    ) -> Path:
        """Persist a conversation, batch or run summary.

        Conversation and batch summaries are written exactly once. The run
        summary is rewritten when the tree is re-aggregated.

        Args:
            level: Tree level of the summary.
            summary: Summary document.
            batch_index: Required for conversation and batch summaries.
            credential_id: Required for conversation summaries.
        """
        if level is SummaryLevel.CONVERSATION:
            if batch_index is None or credential_id is None:
                raise ValueError("conversation summaries need batch_index and credential_id")
            path = self.conversation_dir(batch_index, credential_id) / SUMMARY_FILE
            return self._write_once(path, summary)
        if level is SummaryLevel.BATCH:
            if batch_index is None:
                raise ValueError("batch summaries need batch_index")
            return self._write_once(self.batch_dir(batch_index) / SUMMARY_FILE, summary)
        return self._write_replace(self._root / SUMMARY_FILE, summary.model_dump_json(indent=2))

    def write_report(self, html: str) -> Path:
        return self._write_replace(self._root / REPORT_FILE, html)


class ScenarioResultStore(_JsonTree):
    """Writes one scenario run into ``scenario_test_<timestamp>``."""

    @classmethod
    def create(cls, results_dir: str | Path, timestamp: datetime) -> "ScenarioResultStore":
        root = _create_run_dir(results_dir, "scenario_test_", timestamp)
        logger.info("Created scenario result directory", path=str(root))
        return cls(root)

    def scenario_dir(self, group: int, scenario_id: str, name: str) -> Path:
        return self._root / f"scenario_{group}" / f"{scenario_id}_{name}"

    def request_path(self, scenario_dir: Path, credential_id: str | None, index: int) -> Path:
        base = scenario_dir / credential_id if credential_id else scenario_dir
        return base / f"request_{index}.json"

    def record_request(
        self,
        scenario_dir: Path,
        credential_id: str | None,
        index: int,
        exchange: Exchange,
    ) -> Path:
        path = self.request_path(scenario_dir, credential_id, index)
        return self._write_once(path, exchange_record(exchange))

    def record_scenario_summary(self, scenario_dir: Path, summary: ScenarioSummaryRecord) -> Path:
        return self._write_once(scenario_dir / SUMMARY_FILE, summary)

    def write_master_summary(self, summaries: list[ScenarioSummaryRecord]) -> Path:
        payload: list[dict[str, Any]] = [s.model_dump() for s in summaries]
        return self._write_replace(self._root / MASTER_SUMMARY_FILE, json.dumps(payload, indent=2))

    def write_run_summary(self, summary: RunSummaryRecord) -> Path:
        return self._write_replace(self._root / SUMMARY_FILE, summary.model_dump_json(indent=2))

    def write_report(self, html: str) -> Path:
        return self._write_replace(self._root / SCENARIO_REPORT_FILE, html)
