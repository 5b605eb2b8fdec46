import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from stockledger.core.config import settings
from stockledger.core.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}


class Base(DeclarativeBase):
    pass


is_sqlite = settings.database_url.startswith("sqlite")

connect_args = {"check_same_thread": False} if is_sqlite else {}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    pool_pre_ping=not is_sqlite,
    pool_recycle=1800 if not is_sqlite else -1,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@event.listens_for(Session, "after_begin")
def _set_lock_timeout(session, transaction, connection) -> None:
    if connection.dialect.name != "postgresql" or not settings.lock_timeout_ms:
        return
    connection.exec_driver_sql(f"SET LOCAL lock_timeout = {int(settings.lock_timeout_ms)}")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _is_unique_violation(exc: IntegrityError) -> bool:
    # sqlite carries no SQLSTATE, only the message
    return _sqlstate(exc) == "23505" or str(exc.orig).startswith("UNIQUE constraint failed")


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back.

    Only a unique-key race (two requests claiming the same idempotency key or
    document number) is reported as a retryable conflict; check and foreign
    key violations propagate unchanged.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_unique_violation(exc):
            raise ConcurrencyConflictError(
                "Conflicting concurrent write, retry the request",
                reason=str(exc.orig),
            ) from exc
        raise
    except DBAPIError as exc:
        db.rollback()
        if _sqlstate(exc) in _RETRYABLE_SQLSTATES:
            raise ConcurrencyConflictError(
                "Could not acquire inventory locks in time, retry the request",
                sqlstate=_sqlstate(exc),
            ) from exc
        raise
    except BaseException:
        db.rollback()
        raise


def run_in_transaction(db: Session, operation: Callable[[], T], attempts: int | None = None) -> T:
    attempts = attempts or settings.concurrency_retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            with unit_of_work(db):
                return operation()
        except ConcurrencyConflictError as exc:
            if attempt >= attempts:
                raise
            logger.warning(
                "retrying after concurrency conflict",
                extra={"attempt": attempt, "reason": exc.context.get("reason") or exc.context.get("sqlstate")},
            )
    raise AssertionError("unreachable")
