"""BatchScheduler: the concurrency core of a load-test run.

Credentials are split into consecutive batches of at most ``L``
(the concurrency limit). Each batch runs one conversation per credential,
all at once, on a pool of ``L`` workers; the next batch starts only after
every conversation of the current one has finished. Peak outstanding
requests therefore never exceed ``L``, at the cost of idle workers at
batch boundaries.
"""

import math
import time
from collections.abc import Sequence
from typing import TypeVar

from chatload.api.schemas import BatchSummaryRecord
from chatload.core.exceptions import ConfigError
from chatload.core.logging import get_logger
from chatload.core.metrics import BATCH_COUNT, BATCH_DURATION
from chatload.models.run import Batch, Conversation, Credential, RunConfig, TestRun
from chatload.services.conversation import ConversationRunner
from chatload.services.credentials import CredentialPool
from chatload.services.pool import WorkerPool
from chatload.services.store import ResultStore, SummaryLevel
from chatload.utils.prompts import PromptSource

logger = get_logger(__name__)

T = TypeVar("T")


def batch_count(credential_count: int, limit: int) -> int:
    """Number of batches needed: ``ceil(credential_count / limit)``."""
    if limit < 1:
        raise ValueError("concurrency limit must be >= 1")
    return math.ceil(credential_count / limit)


def partition(items: Sequence[T], limit: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most ``limit``.

    Args:
        items: Items in their original order.
        limit: Maximum chunk size.

    Returns:
        Chunks in order; empty when ``items`` is empty.
    """
    if limit < 1:
        raise ValueError("concurrency limit must be >= 1")
    return [list(items[i : i + limit]) for i in range(0, len(items), limit)]


class BatchScheduler:
    """Runs every credential's conversation, batch by batch.

    Args:
        runner: Runs a single conversation.
        store: Receives batch summaries (the runner writes the rest).
        prompt_source: Prompts shared by all conversations.
    """

    def __init__(
        self,
        runner: ConversationRunner,
        store: ResultStore,
        prompt_source: PromptSource,
    ) -> None:
        self._runner = runner
        self._store = store
        self._prompt_source = prompt_source

    def run(
        self,
        credentials: CredentialPool | Sequence[Credential],
        limit: int,
        exchanges_per_conversation: int,
        config: RunConfig,
    ) -> TestRun:
        """Run all batches in order.

        Args:
            credentials: Credentials to run, one conversation each.
            limit: Concurrency limit L (batch size and pool capacity).
            exchanges_per_conversation: Exchanges per conversation (K).
            config: Run configuration recorded on the TestRun.

        Returns:
            The completed TestRun.

        Raises:
            ConfigError: If the limit is invalid, or credential ids repeat or
                are not plain directory names.
        """
        pool = credentials if isinstance(credentials, CredentialPool) else CredentialPool(credentials)
        if limit < 1:
            raise ConfigError("Concurrency limit must be at least 1")
        pool.ensure_usable()

        batches = partition(pool.credentials, limit)
        run = TestRun(run_id=self._store.run_id, config=config)
        logger.info(
            "Split into batches",
            batches=len(batches),
            batch_size=limit,
            credentials=len(pool),
        )

        run.started_at = time.time()
        with WorkerPool[Conversation](capacity=limit) as workers:
            for index, batch_credentials in enumerate(batches, start=1):
                run.batches.append(
                    self._run_batch(workers, index, batch_credentials, exchanges_per_conversation)
                )
        run.finished_at = time.time()

        logger.info(
            "All batches completed",
            batches=len(run.batches),
            exchanges=run.exchange_count,
            succeeded=run.success_count,
            failed=run.failure_count,
            duration=round(run.duration, 3),
        )
        return run

    def _run_batch(
        self,
        workers: WorkerPool[Conversation],
        index: int,
        credentials: list[Credential],
        exchanges_per_conversation: int,
    ) -> Batch:
        logger.info("Processing batch", batch=index, conversations=len(credentials))
        batch = Batch(index=index, credentials=credentials)
        batch.started_at = time.time()

        for credential in credentials:
            workers.submit(
                self._runner.run,
                credential,
                exchanges_per_conversation,
                self._prompt_source,
                index,
            )
        result = workers.await_batch()

        batch.finished_at = time.time()
        batch.conversations = result.results
        # Storage failures are fatal, but only once the whole batch has drained
        result.raise_first_error()

        self._store.record_summary(
            SummaryLevel.BATCH,
            BatchSummaryRecord(
                batch_index=index,
                conversation_count=len(batch.conversations),
                credential_ids=[c.id for c in credentials],
                total_exchanges=batch.exchange_count,
                successful_exchanges=batch.success_count,
                failed_exchanges=batch.failure_count,
                started_at=batch.started_at,
                finished_at=batch.finished_at,
                duration=batch.duration,
            ),
            batch_index=index,
        )
        BATCH_COUNT.inc()
        BATCH_DURATION.observe(batch.duration)
        logger.info(
            "Completed batch",
            batch=index,
            exchanges=batch.exchange_count,
            failed=batch.failure_count,
            duration=round(batch.duration, 3),
        )
        return batch
