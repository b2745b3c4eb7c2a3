import threading
import time

from ratelimit_svc.timesource import LockedSource, SystemTimeSource, TimeSource


def test_system_time_source_tracks_clock():
    before = int(time.time())
    now = SystemTimeSource().unix_now()
    after = int(time.time())
    assert before <= now <= after
    assert isinstance(SystemTimeSource(), TimeSource)


def test_locked_source_range():
    source = LockedSource(7)
    for _ in range(200):
        value = source.int63()
        assert 0 <= value < 2**63


def test_same_seed_gives_same_sequence():
    first = LockedSource(42)
    second = LockedSource(42)
    assert [first.int63() for _ in range(10)] == [second.int63() for _ in range(10)]


def test_reseed_restarts_sequence():
    source = LockedSource(3)
    initial = [source.int63() for _ in range(5)]
    source.seed(3)
    assert [source.int63() for _ in range(5)] == initial


def test_concurrent_use_produces_all_values():
    source = LockedSource(11)
    results = []
    lock = threading.Lock()

    def worker():
        values = [source.int63() for _ in range(100)]
        with lock:
            results.extend(values)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    reference = LockedSource(11)
    expected = sorted(reference.int63() for _ in range(400))
    assert sorted(results) == expected