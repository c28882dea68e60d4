"""Bounded worker pool with an explicit join barrier.

Work is submitted with ``submit`` and collected with ``await_batch``, which
waits for every outstanding task before returning. A task that raises does
not cancel its siblings: the barrier still waits for all of them and only
then reports the failures.

There is no way to cancel submitted work; once a task starts it runs to
completion.
"""

import contextvars
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from chatload.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class BatchResult(Generic[T]):
    """Results of one ``await_batch`` call, in submission order.

    Attributes:
        results: Return values of tasks that finished normally.
        errors: Exceptions of tasks that raised.
    """

    results: list[T] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)

    def raise_first_error(self) -> None:
        """Re-raise the first task failure, if any."""
        if self.errors:
            raise self.errors[0]


class WorkerPool(Generic[T]):
    """Thread pool of fixed capacity.

    Args:
        capacity: Maximum number of tasks running at any instant.
        name: Thread name prefix.
    """

    def __init__(self, capacity: int, name: str = "chatload-worker") -> None:
        if capacity < 1:
            raise ValueError("WorkerPool capacity must be >= 1")
        self._capacity = capacity
        self._executor = ThreadPoolExecutor(max_workers=capacity, thread_name_prefix=name)
        self._pending: list[Future[T]] = []
        self._lock = threading.Lock()
        self._active = 0
        self._peak_active = 0

    def __enter__(self) -> "WorkerPool[T]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def peak_active(self) -> int:
        """Highest number of tasks observed running at the same time."""
        return self._peak_active

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        """Queue a task; it starts as soon as a worker is free.

        The task runs in a copy of the caller's context, so bound log
        context follows it into the worker thread.
        """
        context = contextvars.copy_context()
        future = self._executor.submit(context.run, self._track, fn, *args, **kwargs)
        self._pending.append(future)
        return future

    def await_batch(self) -> BatchResult[T]:
        """Wait for every task submitted since the previous barrier.

        Returns:
            BatchResult with results and errors in submission order.
        """
        pending, self._pending = self._pending, []
        wait(pending)

        batch: BatchResult[T] = BatchResult()
        for future in pending:
            error = future.exception()
            if error is not None:
                logger.error(
                    "Worker task failed",
                    error=str(error),
                    error_type=type(error).__name__,
                )
                batch.errors.append(error)
            else:
                batch.results.append(future.result())
        return batch

    def shutdown(self) -> None:
        """Wait for running tasks and release the threads."""
        self._executor.shutdown(wait=True)

    def _track(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self._lock:
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
        try:
            return fn(*args, **kwargs)
        finally:
            with self._lock:
                self._active -= 1
