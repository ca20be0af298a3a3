import threading

import pytest

from clipsmith.domain.services.run_lock import RunLock


def test_only_one_of_many_concurrent_acquires_wins():
    lock = RunLock()
    barrier = threading.Barrier(8)
    results = []
    results_lock = threading.Lock()

    def contender():
        barrier.wait()
        acquired = lock.try_acquire("job-1")
        with results_lock:
            results.append(acquired)

    threads = [threading.Thread(target=contender) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert lock.is_held("job-1")


def test_release_allows_reacquire():
    lock = RunLock()
    assert lock.try_acquire("job-1")
    assert not lock.try_acquire("job-1")
    lock.release("job-1")
    assert not lock.is_held("job-1")
    assert lock.try_acquire("job-1")


def test_unrelated_jobs_do_not_block_each_other():
    lock = RunLock(shards=1)
    assert lock.try_acquire("job-1")
    assert lock.try_acquire("job-2")


def test_hold_releases_when_body_raises():
    lock = RunLock()
    with pytest.raises(RuntimeError):
        with lock.hold("job-1") as acquired:
            assert acquired
            raise RuntimeError("boom")
    assert not lock.is_held("job-1")


def test_hold_does_not_release_a_lock_it_did_not_take():
    lock = RunLock()
    assert lock.try_acquire("job-1")
    with lock.hold("job-1") as acquired:
        assert not acquired
    assert lock.is_held("job-1")


def test_rejects_zero_shards():
    with pytest.raises(ValueError):
        RunLock(shards=0)
