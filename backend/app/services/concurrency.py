# Overview: Row locking and retry-on-conflict helpers for cart, ledger and checkout writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to the rows a unit of work is about to mutate.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id_col
    on the locked row is what detects a concurrent writer.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Run a complete unit of work, retrying it on concurrency conflicts.

    Retries on OperationalError (deadlocks, busy database) and
    StaleDataError (optimistic version conflicts). The session is rolled
    back before each retry so `func` re-reads fresh state. Any other
    exception (including ShopError) is rolled back and propagated untouched.
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
