# Overview: Service-layer operations for concurrency; encapsulates locking and retry around database work.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Hashable

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# key -> [lock, holders + waiters]. Entries are dropped when the count reaches zero.
_registry_lock = threading.Lock()
_key_locks: dict[Hashable, list] = {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def keyed_lock(key: Hashable):
    """
    Serialize work per key inside this process.

    Different keys never block each other. Used for the (quarry, day)
    snapshot upsert so two single-day reports cannot lose an update.
    """
    with _registry_lock:
        entry = _key_locks.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _key_locks[key] = entry
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _key_locks[key]


def active_lock_count() -> int:
    with _registry_lock:
        return len(_key_locks)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database) and StaleDataError
    (optimistic locking conflicts). Any other error propagates immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying database write after %s (attempt %d of %d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
