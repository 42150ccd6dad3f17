# Overview: Service-layer helpers for row locking and retrying contended writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Company
from ..errors import NotFoundError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but Postgres honors it.
    """
    return query.with_for_update()


def lock_company(company_id: int) -> Company:
    """
    Lock the tenant row for the rest of the transaction.

    Seat counting and daily order numbering both serialize on this lock, so
    two concurrent writers in the same company queue behind each other.
    """
    company = lock_for_update(db.session.query(Company).filter_by(id=company_id)).first()
    if company is None:
        raise NotFoundError("Company not found")
    return company


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and any extra exception types passed in
    retry_on. The session is rolled back before each retry.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
