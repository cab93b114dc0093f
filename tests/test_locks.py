"""Tests for the in-process reader/writer lock."""

import threading
import time

from scan_scheduler.persistence.locks import ReadWriteLock


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=2)

    def reader():
        with lock.read_locked():
            # Both readers must be inside at the same time to pass the barrier
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert not inside.broken


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []
    writer_inside = threading.Event()

    def writer():
        with lock.write_locked():
            writer_inside.set()
            time.sleep(0.1)
            events.append("write-done")

    def reader():
        writer_inside.wait(timeout=2)
        with lock.read_locked():
            events.append("read")

    threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert events == ["write-done", "read"]


def test_lock_released_after_exception():
    lock = ReadWriteLock()

    try:
        with lock.write_locked():
            raise RuntimeError("write failed")
    except RuntimeError:
        pass

    acquired = threading.Event()

    def reader():
        with lock.read_locked():
            acquired.set()

    thread = threading.Thread(target=reader)
    thread.start()
    thread.join(timeout=2)

    assert acquired.is_set()


def test_concurrent_writers_do_not_interleave():
    lock = ReadWriteLock()
    counter = {"value": 0}

    def increment():
        for _ in range(200):
            with lock.write_locked():
                current = counter["value"]
                counter["value"] = current + 1

    threads = [threading.Thread(target=increment) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert counter["value"] == 1000
