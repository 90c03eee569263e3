"""
Module: ledger_kernel.db.unit_of_work
Responsibility: Run one callable inside one database transaction, retrying
    the whole transaction on transient write conflicts.
Architecture position: Kernel > DB.  Used by the voucher lifecycle facade
    for every mutating operation.  Knows nothing about vouchers.

Invariants enforced:
    - Atomicity: one fresh session per attempt; commit on success, rollback
      on any error.  A failed attempt leaves no trace.
    - Bounded retry: transient conflicts are retried at most
      ``RetryPolicy.max_attempts`` times with capped exponential backoff.
    - Deadline: an attempt running longer than ``timeout_seconds`` is rolled
      back instead of committed.  On PostgreSQL the same budget is pushed
      down as statement_timeout / lock_timeout.

Failure modes:
    - ConcurrencyConflictError: transient conflict on every attempt.
    - UnitOfWorkTimeoutError: deadline exceeded, or PostgreSQL cancelled a
      statement (57014) or gave up waiting for a lock (55P03).
    - Anything else raised by the operation propagates unchanged after
      rollback.

Transient conflicts:
    - sqlalchemy.orm.exc.StaleDataError (version_id_col mismatch)
    - SQLSTATE 40001 serialization_failure, 40P01 deadlock_detected
    - SQLite "database is locked"
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.exceptions import (
    ConcurrencyConflictError,
    LedgerKernelError,
    UnitOfWorkTimeoutError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")

T = TypeVar("T")

TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})
TIMEOUT_SQLSTATES = frozenset({"57014", "55P03"})


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for transient conflicts."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return min(
            self.base_delay_seconds * (2 ** (attempt - 1)),
            self.max_delay_seconds,
        )


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_transient_conflict(exc: BaseException) -> bool:
    """True when retrying the whole transaction may succeed."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in TRANSIENT_SQLSTATES:
            return True
        return "database is locked" in str(exc.orig).lower()
    return False


class UnitOfWork:
    """
    Atomic unit of work with bounded retry on conflict.

    Contract:
        ``run(operation, name)`` calls ``operation(session)`` with a fresh
        session inside one transaction and returns its result after commit.
        The operation must not commit or close the session itself.

    Guarantees:
        - The operation is re-executed from scratch on each retry, with a
          new session, so it must derive all state from the database.
        - Backoff before retry n+1 is base_delay * 2^(n-1), capped.

    Non-goals:
        - Does NOT retry business rule failures or validation errors.
        - Does NOT interrupt a running statement on SQLite; the deadline is
          checked before commit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._retry = retry_policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout_seconds

    def run(self, operation: Callable[[Session], T], name: str = "unit_of_work") -> T:
        """
        Execute ``operation`` atomically, retrying transient conflicts.

        Raises:
            ConcurrencyConflictError: All attempts hit a transient conflict.
            UnitOfWorkTimeoutError: An attempt exceeded the deadline.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._run_once(operation, name, attempt)
            except Exception as exc:
                if not is_transient_conflict(exc):
                    raise
                if attempt >= self._retry.max_attempts:
                    logger.error(
                        "unit_of_work_conflict_exhausted",
                        extra={
                            "operation": name,
                            "attempts": attempt,
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise ConcurrencyConflictError(name, attempt) from exc
                delay = self._retry.delay_for(attempt)
                logger.warning(
                    "unit_of_work_retry",
                    extra={
                        "operation": name,
                        "attempt": attempt,
                        "max_attempts": self._retry.max_attempts,
                        "delay_seconds": delay,
                        "error_type": type(exc).__name__,
                    },
                )
                self._sleep(delay)

    def _run_once(self, operation: Callable[[Session], T], name: str, attempt: int) -> T:
        session = self._session_factory()
        started = self._monotonic()
        try:
            self._apply_statement_timeouts(session)
            result = operation(session)
            session.flush()
            self._check_deadline(name, started)
            session.commit()
            logger.debug(
                "unit_of_work_committed",
                extra={
                    "operation": name,
                    "attempt": attempt,
                    "elapsed_seconds": round(self._monotonic() - started, 6),
                },
            )
            return result
        except DBAPIError as exc:
            session.rollback()
            if _sqlstate(exc) in TIMEOUT_SQLSTATES:
                logger.warning(
                    "unit_of_work_timed_out",
                    extra={"operation": name, "sqlstate": _sqlstate(exc)},
                )
                raise UnitOfWorkTimeoutError(name, self._timeout_seconds or 0) from exc
            raise
        except Exception as exc:
            session.rollback()
            logger.info(
                "unit_of_work_rolled_back",
                extra={
                    "operation": name,
                    "attempt": attempt,
                    "error_type": type(exc).__name__,
                    "error_code": getattr(exc, "code", None)
                    if isinstance(exc, LedgerKernelError)
                    else None,
                },
            )
            raise
        finally:
            session.close()

    def _check_deadline(self, name: str, started: float) -> None:
        if self._timeout_seconds is None:
            return
        elapsed = self._monotonic() - started
        if elapsed > self._timeout_seconds:
            logger.warning(
                "unit_of_work_timed_out",
                extra={
                    "operation": name,
                    "elapsed_seconds": round(elapsed, 6),
                    "timeout_seconds": self._timeout_seconds,
                },
            )
            raise UnitOfWorkTimeoutError(name, self._timeout_seconds)

    def _apply_statement_timeouts(self, session: Session) -> None:
        if self._timeout_seconds is None:
            return
        if session.get_bind().dialect.name != "postgresql":
            return
        millis = int(self._timeout_seconds * 1000)
        session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        session.execute(text(f"SET LOCAL lock_timeout = {millis}"))
