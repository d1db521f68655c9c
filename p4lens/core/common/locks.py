# File: p4lens/core/common/locks.py

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Dict, List

logger = logging.getLogger(__name__)


class KeyedLocks:
    """
    One mutex per key, created on first use and dropped when its last holder leaves.
    Holders of different keys never block each other.
    """

    def __init__(self):
        self._guard = Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[str, List] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_slot(self, key: str) -> Lock:
        with self._guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = [Lock(), 0]
                self._locks[key] = slot
            slot[1] += 1
            return slot[0]

    def _release_slot(self, key: str) -> None:
        with self._guard:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str):
        lock = self._acquire_slot(key)
        try:
            if lock.locked():
                logger.info(f"Waiting for in-flight work on {key[:12]}...")
            with lock:
                yield
        finally:
            self._release_slot(key)
