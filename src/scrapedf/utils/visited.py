"""
Thread-safe set of keys for at-most-once work dispatch.

Each key can be claimed exactly once per set; concurrent callers racing on
the same key see exactly one winner.
"""

from __future__ import annotations

import threading
from typing import Iterator, Set


class VisitedSet:
    def __init__(self):
        self._keys: Set[str] = set()
        self.lock = threading.Lock()

    def add_if_absent(self, key: str) -> bool:
        """
        Claim ``key``.

        Returns:
            True if the key was not present and is now recorded, False if
            another caller already claimed it
        """
        with self.lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def __contains__(self, key: object) -> bool:
        with self.lock:
            return key in self._keys

    def __len__(self) -> int:
        with self.lock:
            return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        with self.lock:
            snapshot = sorted(self._keys)
        return iter(snapshot)
