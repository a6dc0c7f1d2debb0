from __future__ import annotations

from contextlib import contextmanager
import threading
from typing import Hashable, Iterator


class OwnerLocks:
    """One mutex per owning entity, created on first use.

    Hold the owner's lock from loading its collection until the result is saved.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def lock_for(self, owner_id: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[owner_id] = lock
            return lock

    @contextmanager
    def hold(self, owner_id: Hashable) -> Iterator[None]:
        lock = self.lock_for(owner_id)
        with lock:
            yield
