# Overview: Unit-of-work helpers for lifecycle writes; locking, commit, and conflict retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ConcurrentUpdateError, PersistenceFailure, SupplyChainError

logger = logging.getLogger(__name__)

# Errors that mean "someone else wrote first": the unit is re-run from a fresh read.
CONFLICT_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version counter on Product still catches the conflict on SQLite.
    """
    return query.with_for_update()


def _is_timeline_position_clash(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "timeline" in message and "position" in message


def run_atomic(func, *, operation: str, reference=None, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run ``func`` and commit its work as one database transaction.

    - Domain errors roll back and propagate unchanged.
    - Version conflicts and lock errors roll back and re-run ``func`` from
      scratch, up to ``attempts`` times; then ConcurrentUpdateError.
    - Any other storage error rolls back and becomes PersistenceFailure.

    ``func`` must re-read everything it needs on each call. Because a failed
    attempt is rolled back completely, a retry never duplicates a ledger row.
    """
    if attempts is None:
        attempts = current_app.config.get("WRITE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("WRITE_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except SupplyChainError:
            db.session.rollback()
            raise
        except CONFLICT_ERRORS as exc:
            db.session.rollback()
            logger.warning("%s conflict on %s (attempt %d/%d): %s", operation, reference, attempt + 1, attempts, exc)
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_timeline_position_clash(exc):
                logger.exception("%s failed on %s", operation, reference)
                raise PersistenceFailure(operation) from exc
            logger.warning("%s timeline clash on %s (attempt %d/%d)", operation, reference, attempt + 1, attempts)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("%s failed on %s", operation, reference)
            raise PersistenceFailure(operation) from exc

        if attempt < attempts - 1:
            time.sleep(backoff_base * (2 ** attempt))

    raise ConcurrentUpdateError(reference)
