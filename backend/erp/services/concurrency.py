# Overview: Transaction and row-locking helpers shared by every ledger workflow.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Lock waits, deadlocks and optimistic version conflicts; everything else is final.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the given query.

    SQLite ignores the clause; PostgreSQL and MySQL hold the row lock until
    the surrounding transaction ends.
    """
    return query.with_for_update()


def locked_get(model, entity_id: str):
    """Load one row by primary key under a row lock (None when missing)."""
    return lock_for_update(db.session.query(model).filter_by(id=entity_id)).first()


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a workflow body as one database transaction.

    The body validates and writes through db.session and is committed when it
    returns. Any exception rolls every write back, so a sale, purchase,
    payment or transfer step is applied completely or not at all.

    Transient lock errors re-run the whole body with exponential backoff.
    """
    for attempt in range(1, attempts + 1):
        try:
            result = func()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Transaction attempt %s/%s failed (%s); retrying in %.2fs",
                attempt, attempts, type(exc).__name__, delay,
            )
            time.sleep(delay)
        except Exception:
            db.session.rollback()
            raise
