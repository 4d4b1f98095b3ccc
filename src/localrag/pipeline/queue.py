"""
Serial job queue.

Every job that talks to the embedding runtime goes through one of these:
jobs run strictly one at a time, in submission order, whichever pipeline
submitted them. The runtime's accelerator backend is not safe under
concurrent embedding calls.

Instances are explicit and injectable; share one instance between the
document and note pipelines to serialize both.
"""

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable


logger = logging.getLogger(__name__)


class SerialJobQueue:
    """
    Single-worker FIFO executor.

    Jobs that are still queued can be cancelled through their Future; a job
    that has started runs to completion.

    Example:
        >>> queue = SerialJobQueue()
        >>> future = queue.submit(pipeline.process, request)
        >>> result = future.result()
        >>> queue.shutdown()
    """

    def __init__(self, name: str = "localrag-jobs"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False

    @property
    def pending(self) -> int:
        """Jobs submitted but not yet finished (running one included)."""
        with self._lock:
            return self._pending

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Enqueue ``fn(*args, **kwargs)``.

        Raises:
            RuntimeError: If the queue has been shut down
        """
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Job queue {self.name} is shut down")
            job_number = next(self._counter)
            self._pending += 1

        job_name = getattr(fn, "__qualname__", repr(fn))

        def run() -> Any:
            logger.debug(f"Job #{job_number} ({job_name}) started")
            try:
                return fn(*args, **kwargs)
            finally:
                logger.debug(f"Job #{job_number} ({job_name}) finished")

        future = self._executor.submit(run)
        future.add_done_callback(self._job_done)
        logger.debug(f"Job #{job_number} ({job_name}) queued")
        return future

    def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Enqueue and wait; exceptions propagate to the caller."""
        return self.submit(fn, *args, **kwargs).result()

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    def _job_done(self, future: Future) -> None:
        with self._lock:
            self._pending -= 1

    def __enter__(self) -> "SerialJobQueue":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()
