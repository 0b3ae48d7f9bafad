"""Bounded thread pool that runs generation pipelines off the request thread."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_for_futures
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class GenerationWorkerPool:
    """
    Wraps a ThreadPoolExecutor. The executor's queue is unbounded, so a
    submission is never rejected; when every worker is busy it simply waits
    for one to free up.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "cv-gen"):
        self.max_workers = max(1, max_workers)
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=thread_name_prefix)
        self._lock = threading.Lock()
        self._futures: set[Future] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Tasks queued or running."""
        with self._lock:
            return len(self._futures)

    def submit(self, task_name: str, fn: Callable[..., Any], *args: Any) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker pool is shut down")
            future = self._executor.submit(fn, *args)
            self._futures.add(future)
        future.add_done_callback(lambda f: self._on_done(task_name, f))
        logger.debug(f"Queued task {task_name} ({self.in_flight} in flight)")
        return future

    def _on_done(self, task_name: str, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)
        if future.cancelled():
            logger.warning(f"Task {task_name} was cancelled before it ran")
            return
        error = future.exception()
        if error is not None:
            # Pipelines record their own failures; anything reaching here escaped that handling
            logger.error(f"Task {task_name} raised an unhandled exception: {error!r}", exc_info=error)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Blocks until every submitted task has finished. Returns False on timeout."""
        with self._lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait_for_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        logger.info(f"Shutting down worker pool (wait={wait})")
        self._executor.shutdown(wait=wait)
