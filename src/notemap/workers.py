"""Bounded parallel execution with a per-task time limit."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Outcome of one task: either ``value`` or ``error`` is set."""
    item: Any
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_bounded(
    fn: Callable[[Any], Any],
    items: Iterable[Any],
    workers: int = 12,
    timeout: float | None = 45.0,
) -> list[TaskResult]:
    """Run ``fn`` over ``items`` with at most ``workers`` tasks in flight.

    Items are processed in windows of ``workers``. A task still running
    ``timeout`` seconds after its window started is reported as a TimeoutError
    and not retried. Its thread cannot be stopped and keeps running in the
    background; interpreter exit still waits for it to finish, because
    concurrent.futures joins its worker threads at shutdown. Results come back
    in input order.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    items = list(items)
    results: list[TaskResult] = []

    for start in range(0, len(items), workers):
        window = items[start:start + workers]
        executor = ThreadPoolExecutor(max_workers=len(window))
        try:
            futures = [executor.submit(fn, item) for item in window]
            wait(futures, timeout=timeout)
            for item, future in zip(window, futures):
                if not future.done():
                    future.cancel()
                    logger.warning(f"Task timed out after {timeout}s: {item}")
                    results.append(TaskResult(item, error=TimeoutError(f"timed out after {timeout}s")))
                    continue
                error = future.exception()
                if error is not None:
                    results.append(TaskResult(item, error=error))
                else:
                    results.append(TaskResult(item, value=future.result()))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    return results
