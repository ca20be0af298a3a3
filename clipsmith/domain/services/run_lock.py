"""
Per-job single-flight guard.

Keys are spread over a fixed number of shards, each with its own mutex, so
acquiring a lock for one job never serializes behind unrelated jobs beyond a
set insert. The guard is process-local: two processes can still run the same
job at once.
"""
from contextlib import contextmanager
from threading import Lock
from typing import Iterator, List, Set, Tuple


class RunLock:
    def __init__(self, shards: int = 16) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards: List[Tuple[Lock, Set[str]]] = [(Lock(), set()) for _ in range(shards)]

    def _shard(self, job_id: str) -> Tuple[Lock, Set[str]]:
        return self._shards[hash(job_id) % len(self._shards)]

    def try_acquire(self, job_id: str) -> bool:
        lock, held = self._shard(job_id)
        with lock:
            if job_id in held:
                return False
            held.add(job_id)
            return True

    def release(self, job_id: str) -> None:
        lock, held = self._shard(job_id)
        with lock:
            held.discard(job_id)

    def is_held(self, job_id: str) -> bool:
        lock, held = self._shard(job_id)
        with lock:
            return job_id in held

    @contextmanager
    def hold(self, job_id: str) -> Iterator[bool]:
        """
        Yield True if the lock was acquired, False if another run holds it.
        An acquired lock is released on every exit path.
        """
        acquired = self.try_acquire(job_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(job_id)
