"""
Hand job ids from the HTTP layer to a fixed pool of worker threads.
"""
import logging
import queue
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class JobDispatcher:
    """
    `submit` enqueues and returns immediately; `workers` threads take job ids
    off the queue and call `handler`. The worker count is the global cap on
    concurrently running jobs.
    """

    def __init__(self, handler: Callable[[str], None], workers: int = 2) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._handler = handler
        self._workers = workers
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._started = False
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            for i in range(self._workers):
                thread = threading.Thread(target=self._work, name=f"clipsmith-worker-{i}", daemon=True)
                thread.start()
                self._threads.append(thread)
            self._started = True
        logger.info("Started %d job workers", self._workers)

    def submit(self, job_id: str) -> None:
        self._queue.put(job_id)
        logger.debug("Queued job %s (backlog %d)", job_id, self._queue.qsize())

    def join(self) -> None:
        """Block until every queued job has been handled."""
        self._queue.join()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            if not self._started:
                return
            for _ in self._threads:
                self._queue.put(_STOP)
            threads, self._threads = self._threads, []
            self._started = False
        for thread in threads:
            thread.join(timeout)
        logger.info("Stopped job workers")

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._handler(item)
            except Exception:  # noqa: BLE001 - a failing job must not kill the worker
                logger.exception("Unhandled error while running job %s", item)
            finally:
                self._queue.task_done()
