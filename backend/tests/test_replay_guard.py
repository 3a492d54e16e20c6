"""Tests for the in-memory replay guard."""

import threading
from concurrent.futures import ThreadPoolExecutor

from powgate.services.replay_guard import InMemoryReplayGuard, ReplayGuard


def test_first_sighting_is_fresh():
    guard = InMemoryReplayGuard()

    assert guard.check_and_mark("stamp") is False
    assert guard.check_and_mark("stamp") is True
    assert guard.check_and_mark("stamp") is True


def test_keys_are_independent():
    guard = InMemoryReplayGuard()

    assert guard.check_and_mark("a") is False
    assert guard.check_and_mark("b") is False
    assert guard.check_and_mark("a") is True


def test_concurrent_marking_of_same_key():
    """Exactly one caller sees the key as fresh regardless of interleaving."""
    guard = InMemoryReplayGuard()
    callers = 64
    barrier = threading.Barrier(callers)

    def mark(_):
        barrier.wait()
        return guard.check_and_mark("1:8:2026-10-18:127.0.0.1::AAAAAAAAAAA=::3")

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(mark, range(callers)))

    assert results.count(False) == 1
    assert results.count(True) == callers - 1


def test_growth_is_unbounded():
    """Spent stamps are never evicted; the guard grows for the process lifetime."""
    guard = InMemoryReplayGuard()

    for i in range(10_000):
        guard.check_and_mark(f"stamp-{i}")

    assert len(guard) == 10_000
    assert guard.check_and_mark("stamp-0") is True


def test_satisfies_protocol():
    guard: ReplayGuard = InMemoryReplayGuard()
    assert guard.check_and_mark("x") is False
