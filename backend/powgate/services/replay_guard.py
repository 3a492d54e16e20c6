"""Spent-stamp registry used to reject replayed redemptions."""

import threading
from typing import Protocol


class ReplayGuard(Protocol):
    def check_and_mark(self, key: str) -> bool:
        """Mark key as spent. Returns True if it was already spent."""
        ...


class InMemoryReplayGuard:
    """
    Process-local replay guard.

    Entries are never evicted, so memory grows with every redeemed stamp for
    the life of the process.
    """

    def __init__(self) -> None:
        self._spent: set[str] = set()
        self._lock = threading.Lock()

    def check_and_mark(self, key: str) -> bool:
        with self._lock:
            if key in self._spent:
                return True
            self._spent.add(key)
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._spent)
