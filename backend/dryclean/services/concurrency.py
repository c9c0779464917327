# Overview: Row locking and retry helpers for stock and invoice state changes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for invoice and inventory writes.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id
    columns on Invoice and InventoryItem catch lost updates instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation, retrying on lock errors and optimistic-locking
    conflicts. Business exceptions raised by `func` propagate untouched
    after the session is rolled back.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
