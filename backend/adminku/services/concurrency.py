# Overview: Locking and store-failure helpers shared by every inventory service.

from __future__ import annotations

import functools
import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError

from ..validation import StoreUnavailableError


class LockRegistry:
    """
    Named re-entrant locks, one per key, created on first use.

    Keys look like "product:42" or "category-tree". Re-entrancy lets a
    catalog operation hold a product lock and call into the ledger, which
    takes the same lock again.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str):
        lock = self.get(key)
        with lock:
            yield


def product_lock_key(product_id: int) -> str:
    return f"product:{product_id}"


CATEGORY_TREE_LOCK = "category-tree"
BARCODE_LOCK = "barcode-sequence"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the in-process LockRegistry
    covers it there.
    """
    return query.with_for_update()


def store_operation(method):
    """
    Wrap a service method so that any failure rolls the session back.

    OperationalError from the driver surfaces as StoreUnavailableError;
    everything else propagates unchanged.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except OperationalError as exc:
            self.session.rollback()
            self.log.exception("store failure in %s", method.__qualname__)
            raise StoreUnavailableError(str(exc.orig or exc)) from exc
        except Exception:
            self.session.rollback()
            raise
    return wrapper


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Caller-side retry for StoreUnavailableError.

    Services never retry on their own; entry points (CLI, jobs) decide
    whether a store failure is worth another attempt.
    """
    for attempt in range(attempts):
        try:
            return func()
        except StoreUnavailableError:
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
