"""Per-school lock registry.

Writes for one school are serialized; writes for different schools
never share a lock.
"""
import threading
from typing import Dict


class SchoolLocks:
    """Lazily creates one lock per school id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, school_id: str) -> threading.Lock:
        lock = self._locks.get(school_id)
        if lock is not None:
            return lock
        with self._guard:
            return self._locks.setdefault(school_id, threading.Lock())

    def __len__(self) -> int:
        return len(self._locks)
