from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DataError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from agrichain.errors import ConcurrencyConflict, IntegrityViolation, ValidationError
from agrichain.extensions import db

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03"}


@contextmanager
def transaction() -> Iterator[Session]:
    """Run the enclosed block as one unit: commit on success, roll back on any error."""
    session = db.session
    try:
        yield session
        session.commit()
    except OperationalError as exc:
        session.rollback()
        if is_contention_error(exc):
            logger.warning("transaction aborted by lock contention: %s", exc.orig)
            raise ConcurrencyConflict("concurrent update conflict; retry the operation") from exc
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning("transaction aborted by integrity error: %s", exc.orig)
        raise IntegrityViolation(
            "write conflicts with an existing row or a missing reference",
            status_code=409,
        ) from exc
    except DataError as exc:
        session.rollback()
        logger.warning("transaction aborted by data error: %s", exc.orig)
        raise ValidationError.single("InvalidValue", "value is out of range for its column") from exc
    except BaseException:
        session.rollback()
        raise


def is_contention_error(exc: OperationalError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "database table is locked" in message
