"""Aggregator: turns a completed result tree into a RunSummary.

The aggregator reads nothing but the persisted JSON documents, and it
walks them in a fixed (natural) order, so aggregating an unchanged tree
twice yields equal summaries.

Exchange records written by the legacy shell scripts (no ``outcome``
tag, string-typed ``status`` and ``duration``) are read too: a non-zero
status is a transport failure, an ``error`` field an application failure.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from chatload.api.schemas import (
    ErrorPatternRecord,
    ExchangeRecord,
    GroupSummaryRecord,
    RunConfigRecord,
    RunSummaryRecord,
    ScenarioSummaryRecord,
)
from chatload.core.exceptions import ResultStoreError
from chatload.core.logging import get_logger
from chatload.models.outcome import NO_SUCCESS_FIELD_MESSAGE, OutcomeKind
from chatload.models.scenario import scenario_purpose
from chatload.models.summary import ErrorPattern, GroupSummary, OutcomeCounts, RunSummary
from chatload.services.store import CONFIG_FILE, SUMMARY_FILE, TIMESTAMP_FORMAT
from chatload.utils.text import natural_key, normalize_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadedExchange:
    """An exchange record together with where it lives in the tree."""

    group_id: str
    path: str
    record: ExchangeRecord


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ResultStoreError(f"Cannot read result document {path}: {e}", path=str(path)) from e


def _legacy_record(data: dict[str, Any], path: Path) -> ExchangeRecord:
    """Interpret an exchange document written by the shell tooling."""
    status = int(data.get("status", 0) or 0)
    if status != 0:
        kind = OutcomeKind.TRANSPORT_ERROR
    elif "error" in data:
        kind = OutcomeKind.APPLICATION_ERROR
    else:
        kind = OutcomeKind.SUCCESS

    index_digits = "".join(ch for ch in path.stem if ch.isdigit())
    return ExchangeRecord(
        conversation_id=str(data.get("conversation_id", path.parent.name)),
        exchange_index=int(index_digits or 1),
        prompt=str(data.get("prompt", "")),
        model=str(data.get("model", "default")),
        outcome=kind.value,
        status=status,
        started_at=float(data.get("started_at", 0.0) or 0.0),
        duration=float(data.get("duration", 0.0) or 0.0),
        response=data.get("response"),
        error=None if kind is OutcomeKind.SUCCESS else str(data.get("error") or NO_SUCCESS_FIELD_MESSAGE),
    )


def load_exchange(path: Path) -> ExchangeRecord:
    """Parse one exchange document.

    Raises:
        ResultStoreError: If the document is neither a current nor a legacy record.
    """
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ResultStoreError(f"Exchange document {path} is not an object", path=str(path))
    try:
        return ExchangeRecord.model_validate(data)
    except ValidationError:
        if "outcome" in data:
            raise ResultStoreError(f"Invalid exchange document {path}", path=str(path)) from None
    try:
        return _legacy_record(data, path)
    except (ValueError, ValidationError) as e:
        raise ResultStoreError(f"Invalid exchange document {path}: {e}", path=str(path)) from e


def count_outcomes(records: Iterable[ExchangeRecord]) -> OutcomeCounts:
    total = successful = 0
    for record in records:
        total += 1
        if record.is_success:
            successful += 1
    return OutcomeCounts(total=total, successful=successful, failed=total - successful)


def bucket_errors(exchanges: Iterable[LoadedExchange]) -> list[ErrorPattern]:
    """Deduplicate failed exchanges into (model, error message) buckets.

    The first failure met in traversal order is kept as the bucket's
    representative request/response pair.

    Args:
        exchanges: Exchanges in traversal order.

    Returns:
        Buckets, most frequent first, ties broken by model then message.
    """
    counts: dict[tuple[str, str], int] = {}
    representatives: dict[tuple[str, str], LoadedExchange] = {}
    for exchange in exchanges:
        record = exchange.record
        if record.is_success:
            continue
        key = (record.model, normalize_error(record.error or NO_SUCCESS_FIELD_MESSAGE))
        counts[key] = counts.get(key, 0) + 1
        representatives.setdefault(key, exchange)

    patterns = []
    for key, count in counts.items():
        example = representatives[key]
        response = example.record.response
        if response is None:
            response = example.record.error_description
        patterns.append(
            ErrorPattern(
                model=key[0],
                error=key[1],
                occurrence_count=count,
                request=example.record.request,
                response=response,
                example_path=example.path,
            )
        )
    patterns.sort(key=lambda p: (-p.occurrence_count, p.model, p.error))
    return patterns


def _span(records: list[ExchangeRecord]) -> float:
    if not records:
        return 0.0
    start = min(r.started_at for r in records)
    end = max(r.finished_at for r in records)
    return max(end - start, 0.0)


def _timestamp_from_name(run_id: str) -> datetime | None:
    """Run start encoded in a ``test_<ts>`` or ``scenario_test_<ts>`` name."""
    try:
        return datetime.strptime(run_id[-15:], TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _sorted_children(path: Path, pattern: str) -> list[Path]:
    return sorted(path.glob(pattern), key=lambda p: natural_key(p.name))


class Aggregator:
    """Computes run summaries from load-test and scenario result trees."""

    def aggregate(self, test_dir: str | Path) -> RunSummary:
        """Aggregate a ``test_<timestamp>`` tree, one group per batch.

        Args:
            test_dir: Run directory.

        Returns:
            RunSummary over every recorded exchange.
        """
        root = self._require_dir(test_dir)
        exchanges: list[LoadedExchange] = []
        groups: list[GroupSummary] = []

        for batch_dir in _sorted_children(root, "batch_*"):
            if not batch_dir.is_dir():
                continue
            batch_records: list[ExchangeRecord] = []
            conversations = 0
            for conv_dir in _sorted_children(batch_dir, "conv_*"):
                if not conv_dir.is_dir():
                    continue
                conversations += 1
                for path in _sorted_children(conv_dir, "exchange_*.json"):
                    record = load_exchange(path)
                    batch_records.append(record)
                    exchanges.append(
                        LoadedExchange(
                            group_id=batch_dir.name,
                            path=path.relative_to(root).as_posix(),
                            record=record,
                        )
                    )
            groups.append(
                GroupSummary(
                    group_id=batch_dir.name,
                    description=f"{conversations} conversation(s)",
                    counts=count_outcomes(batch_records),
                    duration=_span(batch_records),
                )
            )

        return self._summarize(root, exchanges, groups)

    def aggregate_scenarios(self, test_dir: str | Path) -> RunSummary:
        """Aggregate a ``scenario_test_<timestamp>`` tree, one group per scenario."""
        root = self._require_dir(test_dir)
        exchanges: list[LoadedExchange] = []
        groups: list[GroupSummary] = []

        for group_dir in _sorted_children(root, "scenario_*"):
            if not group_dir.is_dir():
                continue
            for scenario_dir in _sorted_children(group_dir, "*"):
                if not scenario_dir.is_dir():
                    continue
                paths = sorted(
                    scenario_dir.rglob("request_*.json"),
                    key=lambda p: natural_key(p.relative_to(scenario_dir).as_posix()),
                )
                records = [load_exchange(path) for path in paths]
                summary = self._scenario_summary(scenario_dir)
                scenario_id = summary.scenario if summary else scenario_dir.name.split("_", 1)[0]
                for path, record in zip(paths, records):
                    exchanges.append(
                        LoadedExchange(
                            group_id=scenario_id,
                            path=path.relative_to(root).as_posix(),
                            record=record,
                        )
                    )
                groups.append(
                    GroupSummary(
                        group_id=scenario_id,
                        description=summary.description if summary else scenario_dir.name,
                        counts=count_outcomes(records),
                        duration=summary.duration if summary else _span(records),
                        purpose=scenario_purpose(scenario_id),
                    )
                )

        return self._summarize(root, exchanges, groups)

    def _summarize(
        self,
        root: Path,
        exchanges: list[LoadedExchange],
        groups: list[GroupSummary],
    ) -> RunSummary:
        records = [e.record for e in exchanges]
        by_conversation: dict[tuple[str, str], bool] = {}
        for exchange in exchanges:
            key = (exchange.group_id, exchange.record.conversation_id)
            by_conversation[key] = by_conversation.get(key, False) or exchange.record.is_success

        config = self._run_config(root)
        summary = RunSummary(
            run_id=root.name,
            endpoint=config.api_endpoint if config else "",
            exchanges=count_outcomes(records),
            total_conversations=len(by_conversation),
            successful_conversations=sum(1 for ok in by_conversation.values() if ok),
            duration=_span(records),
            groups=tuple(groups),
            error_patterns=tuple(bucket_errors(exchanges)),
            timestamp=config.timestamp if config else _timestamp_from_name(root.name),
        )
        logger.info(
            "Aggregated result tree",
            run_id=summary.run_id,
            exchanges=summary.exchanges.total,
            succeeded=summary.exchanges.successful,
            failed=summary.exchanges.failed,
            error_patterns=len(summary.error_patterns),
        )
        return summary

    @staticmethod
    def _require_dir(test_dir: str | Path) -> Path:
        root = Path(test_dir)
        if not root.is_dir():
            raise ResultStoreError(f"Result directory {root} does not exist", path=str(root))
        return root

    @staticmethod
    def _run_config(root: Path) -> RunConfigRecord | None:
        path = root / CONFIG_FILE
        if not path.is_file():
            return None
        try:
            return RunConfigRecord.model_validate(_read_json(path))
        except ValidationError:
            logger.warning("Ignoring unreadable config", path=str(path))
            return None

    @staticmethod
    def _scenario_summary(scenario_dir: Path) -> ScenarioSummaryRecord | None:
        path = scenario_dir / SUMMARY_FILE
        if not path.is_file():
            return None
        return ScenarioSummaryRecord.model_validate(_read_json(path))


def to_record(summary: RunSummary) -> RunSummaryRecord:
    """Persisted form of a RunSummary."""
    return RunSummaryRecord(
        run_id=summary.run_id,
        timestamp=summary.timestamp,
        api_endpoint=summary.endpoint,
        total_conversations=summary.total_conversations,
        successful_conversations=summary.successful_conversations,
        failed_conversations=summary.failed_conversations,
        total_exchanges=summary.exchanges.total,
        successful_exchanges=summary.exchanges.successful,
        failed_exchanges=summary.exchanges.failed,
        success_rate=summary.success_rate,
        throughput=summary.throughput,
        total_test_duration=summary.duration,
        average_conversation_time=summary.average_conversation_time,
        groups=[
            GroupSummaryRecord(
                id=group.group_id,
                description=group.description,
                total_exchanges=group.counts.total,
                successful_exchanges=group.counts.successful,
                failed_exchanges=group.counts.failed,
                success_rate=group.success_rate,
                duration=group.duration,
                throughput=group.throughput,
            )
            for group in summary.groups
        ],
        error_patterns=[
            ErrorPatternRecord(
                model=pattern.model,
                error=pattern.error,
                occurrence_count=pattern.occurrence_count,
                example_path=pattern.example_path,
                request=pattern.request,
                response=pattern.response,
            )
            for pattern in summary.error_patterns
        ],
    )
