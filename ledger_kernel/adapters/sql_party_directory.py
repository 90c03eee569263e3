"""
SqlPartyDirectory -- PartyDirectory over the ``parties`` table.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.vouchers import PartyType
from ledger_kernel.exceptions import PartyNotFoundError
from ledger_kernel.models.reference import Party


class SqlPartyDirectory:
    """PartyDirectory backed by the reference Party model."""

    def __init__(self, session: Session):
        self._session = session

    def _find(self, party_id: UUID, party_type: str, lock: bool = False) -> Party:
        party_type = PartyType(party_type).value
        stmt = select(Party).where(Party.id == party_id, Party.party_type == party_type)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        party = self._session.execute(stmt).scalar_one_or_none()
        if party is None:
            raise PartyNotFoundError(str(party_id), party_type)
        return party

    def get_display_name(self, party_id: UUID, party_type: str) -> str:
        return self._find(party_id, party_type).name

    def adjust_cash_balance(self, party_id: UUID, party_type: str, delta: Decimal) -> None:
        party = self._find(party_id, party_type, lock=True)
        party.cash_balance = party.cash_balance + delta
        self._session.flush()
