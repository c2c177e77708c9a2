"""Keyed lock registry."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Union

LockLike = Union[threading.Lock, threading.RLock]


class LockRegistry:
    """Hands out one lock per key; keys never share a lock.

    Entries are reference counted and dropped once the last holder leaves,
    so the registry only ever holds keys that are in use.
    """

    def __init__(self, factory: Callable[[], LockLike] = threading.Lock) -> None:
        self._factory = factory
        self._locks: Dict[str, LockLike] = {}
        self._holders: Dict[str, int] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[LockLike]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._factory()
                self._locks[key] = lock
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield lock
        finally:
            with self._guard:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]
