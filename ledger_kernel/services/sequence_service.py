"""
SequenceService -- voucher numbers and entry order via locked counter rows.

Responsibility:
    Issues ``<PREFIX>-<YYYYMMDD>-<NNNN>`` voucher numbers.  Each prefix/day
    pair has its own counter row in ``sequence_counters``.  The
    ``ledger_entry`` counter gives every ledger entry its global ``seq``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by VoucherService when a
    voucher is created and by LedgerPoster for every entry it writes.

Invariants enforced:
    - Numbers are unique and strictly increasing per prefix and day.  The
      counter row is read with ``SELECT ... FOR UPDATE``; MAX()+1 over the
      vouchers table is never used.
    - Transactional: a rolled-back unit of work returns its number.

Failure modes:
    - IntegrityError when two transactions create the same counter row at
      once.  Handled inside a savepoint: the loser reloads the winner's row.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


def format_voucher_no(prefix: str, on_date: date, value: int) -> str:
    return f"{prefix}-{on_date.strftime('%Y%m%d')}-{value:04d}"


class SequenceService:
    """
    Transactional counters for voucher numbering.

    Contract:
        ``next_value(name)`` returns the next integer for ``name``; the
        increment is visible only after the caller's transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    LEDGER_ENTRY = "ledger_entry"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        counter = self._locked_counter(name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": name},
                )
                savepoint.rollback()
                counter = self._locked_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def next_voucher_no(self, prefix: str, on_date: date) -> str:
        """Allocate the next voucher number for ``prefix`` on ``on_date``."""
        name = f"{prefix}-{on_date.strftime('%Y%m%d')}"
        return format_voucher_no(prefix, on_date, self.next_value(name))

    def current_value(self, name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
