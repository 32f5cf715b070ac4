from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Optional

from sqlalchemy.orm import Session


class KeyedLockRegistry:
    """Process-local locks keyed by an identifier (rental id, equipment id)."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str):
        key = str(key)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._holders[key] = self._holders.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._holders[key] - 1
                if remaining:
                    self._holders[key] = remaining
                else:
                    # Nobody waits on this key any more.
                    del self._holders[key]
                    del self._locks[key]

    def active_keys(self) -> list[str]:
        with self._guard:
            return sorted(self._locks)


rental_locks = KeyedLockRegistry("rental")
equipment_locks = KeyedLockRegistry("equipment")


@contextmanager
def equipment_scope(equipment_id: str, registry: Optional[KeyedLockRegistry] = None):
    """Serialize availability derivation for one equipment item within this process.

    Other processes are kept out by the equipment row lock the store takes
    for each read-decide-write round (``SqlRentalStore.lock_equipment``).
    """
    with (registry or equipment_locks).hold(equipment_id):
        yield


def get_dialect_name(db: Session) -> str:
    bind = getattr(db, "bind", None)
    if bind is None:
        try:
            bind = db.get_bind()
        except Exception:
            bind = None

    dialect = getattr(bind, "dialect", None) if bind is not None else None
    name = getattr(dialect, "name", "") if dialect is not None else ""
    return str(name or "")
