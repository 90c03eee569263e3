"""
Module: ledger_kernel.selectors.voucher_selector
Responsibility: Read-only voucher queries -- a single voucher with its lines,
    allocations and ledger entries, and filtered, paged voucher listings.
Architecture position: Kernel > Selectors.

Audit relevance:
    VoucherRecord.entries shows originals and reversal mirrors side by side,
    so the full posting history of a voucher is visible in one read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from ledger_kernel.domain.vouchers import PartyType, VoucherStatus, VoucherType
from ledger_kernel.exceptions import VoucherNotFoundError
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.models.voucher import Voucher, VoucherInvoiceLink, VoucherLine
from ledger_kernel.selectors.base import BaseSelector, Page, clamp_limit


@dataclass(frozen=True)
class LineRecord:
    line_no: int
    account_id: UUID
    account_name: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: str | None
    tax_percent: Decimal
    tax_amount: Decimal

    @classmethod
    def from_model(cls, line: VoucherLine) -> LineRecord:
        return cls(
            line_no=line.line_no,
            account_id=line.account_id,
            account_name=line.account_name,
            debit_amount=line.debit_amount,
            credit_amount=line.credit_amount,
            description=line.description,
            tax_percent=line.tax_percent,
            tax_amount=line.tax_amount,
        )


@dataclass(frozen=True)
class LinkRecord:
    invoice_id: UUID
    invoice_no: str
    allocated_amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal
    status: str

    @classmethod
    def from_model(cls, link: VoucherInvoiceLink) -> LinkRecord:
        return cls(
            invoice_id=link.invoice_id,
            invoice_no=link.invoice_no,
            allocated_amount=link.allocated_amount,
            previous_balance=link.previous_balance,
            new_balance=link.new_balance,
            status=link.status,
        )


@dataclass(frozen=True)
class LedgerEntryRecord:
    id: UUID
    seq: int
    voucher_id: UUID
    voucher_no: str
    voucher_type: str
    account_id: UUID
    account_code: str
    account_name: str
    line_no: int
    entry_date: date
    financial_year: str
    debit_amount: Decimal
    credit_amount: Decimal
    narration: str | None
    party_id: UUID | None
    party_type: str | None
    running_balance: Decimal
    is_reversed: bool
    reversed_at: datetime | None
    reversal_of_id: UUID | None

    @property
    def is_mirror(self) -> bool:
        return self.reversal_of_id is not None

    @classmethod
    def from_model(cls, entry: LedgerEntry) -> LedgerEntryRecord:
        return cls(
            id=entry.id,
            seq=entry.seq,
            voucher_id=entry.voucher_id,
            voucher_no=entry.voucher_no,
            voucher_type=entry.voucher_type,
            account_id=entry.account_id,
            account_code=entry.account_code,
            account_name=entry.account_name,
            line_no=entry.line_no,
            entry_date=entry.entry_date,
            financial_year=entry.financial_year,
            debit_amount=entry.debit_amount,
            credit_amount=entry.credit_amount,
            narration=entry.narration,
            party_id=entry.party_id,
            party_type=entry.party_type,
            running_balance=entry.running_balance,
            is_reversed=entry.is_reversed,
            reversed_at=entry.reversed_at,
            reversal_of_id=entry.reversal_of_id,
        )


@dataclass(frozen=True)
class VoucherRecord:
    """Detached snapshot of a voucher."""

    id: UUID
    voucher_no: str
    voucher_type: VoucherType
    voucher_date: date
    financial_year: str
    status: VoucherStatus
    approval_status: str
    total_amount: Decimal
    payment_mode: str | None
    payment_details: dict | None
    party_id: UUID | None
    party_type: str | None
    party_name: str | None
    on_account_amount: Decimal
    from_account_id: UUID | None
    to_account_id: UUID | None
    expense_category_id: UUID | None
    narration: str | None
    notes: str | None
    reference_type: str | None
    reference_no: str | None
    attachments: tuple[dict, ...]
    created_by_id: UUID
    updated_by_id: UUID | None
    approved_by_id: UUID | None
    approved_at: datetime | None
    lines: tuple[LineRecord, ...]
    linked_invoices: tuple[LinkRecord, ...]
    entries: tuple[LedgerEntryRecord, ...] = ()

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))

    @property
    def live_entries(self) -> tuple[LedgerEntryRecord, ...]:
        return tuple(e for e in self.entries if not e.is_reversed and not e.is_mirror)


def to_voucher_record(
    voucher: Voucher, entries: list[LedgerEntry] | None = None
) -> VoucherRecord:
    return VoucherRecord(
        id=voucher.id,
        voucher_no=voucher.voucher_no,
        voucher_type=VoucherType(voucher.voucher_type),
        voucher_date=voucher.voucher_date,
        financial_year=voucher.financial_year,
        status=VoucherStatus(voucher.status),
        approval_status=voucher.approval_status,
        total_amount=voucher.total_amount,
        payment_mode=voucher.payment_mode,
        payment_details=voucher.payment_details,
        party_id=voucher.party_id,
        party_type=voucher.party_type,
        party_name=voucher.party_name,
        on_account_amount=voucher.on_account_amount,
        from_account_id=voucher.from_account_id,
        to_account_id=voucher.to_account_id,
        expense_category_id=voucher.expense_category_id,
        narration=voucher.narration,
        notes=voucher.notes,
        reference_type=voucher.reference_type,
        reference_no=voucher.reference_no,
        attachments=tuple(voucher.attachments or ()),
        created_by_id=voucher.created_by_id,
        updated_by_id=voucher.updated_by_id,
        approved_by_id=voucher.approved_by_id,
        approved_at=voucher.approved_at,
        lines=tuple(LineRecord.from_model(line) for line in voucher.lines),
        linked_invoices=tuple(LinkRecord.from_model(link) for link in voucher.invoice_links),
        entries=tuple(LedgerEntryRecord.from_model(e) for e in entries or ()),
    )


@dataclass(frozen=True)
class VoucherFilter:
    """Criteria for list_vouchers.  None means no restriction."""

    voucher_type: VoucherType | None = None
    status: VoucherStatus | None = None
    party_id: UUID | None = None
    party_type: PartyType | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    limit: int | None = None
    offset: int = 0


class VoucherSelector(BaseSelector[Voucher]):
    """Queries over vouchers."""

    def entries_for(self, voucher_id: UUID) -> list[LedgerEntry]:
        """All ledger entries of a voucher, originals before mirrors."""
        return list(
            self.session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.voucher_id == voucher_id)
                .order_by(
                    LedgerEntry.reversal_of_id.is_not(None),
                    LedgerEntry.seq,
                )
            ).scalars()
        )

    def get(self, voucher_id: UUID, include_entries: bool = True) -> VoucherRecord:
        voucher = self.session.get(Voucher, voucher_id)
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        entries = self.entries_for(voucher.id) if include_entries else None
        return to_voucher_record(voucher, entries)

    def get_by_number(self, voucher_no: str) -> VoucherRecord | None:
        voucher = self.session.execute(
            select(Voucher).where(Voucher.voucher_no == voucher_no)
        ).scalar_one_or_none()
        if voucher is None:
            return None
        return to_voucher_record(voucher, self.entries_for(voucher.id))

    def list(self, filters: VoucherFilter | None = None) -> Page[VoucherRecord]:
        """Vouchers newest first, paged."""
        filters = filters or VoucherFilter()
        conditions = []
        if filters.voucher_type is not None:
            conditions.append(Voucher.voucher_type == VoucherType(filters.voucher_type).value)
        if filters.status is not None:
            conditions.append(Voucher.status == VoucherStatus(filters.status).value)
        if filters.party_id is not None:
            conditions.append(Voucher.party_id == filters.party_id)
        if filters.party_type is not None:
            conditions.append(Voucher.party_type == PartyType(filters.party_type).value)
        if filters.date_from is not None:
            conditions.append(Voucher.voucher_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(Voucher.voucher_date <= filters.date_to)
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(
                or_(
                    Voucher.voucher_no.ilike(pattern),
                    Voucher.narration.ilike(pattern),
                    Voucher.party_name.ilike(pattern),
                    Voucher.reference_no.ilike(pattern),
                )
            )

        total = self.session.execute(
            select(func.count()).select_from(Voucher).where(*conditions)
        ).scalar_one()

        limit = clamp_limit(filters.limit)
        offset = max(filters.offset, 0)
        vouchers = self.session.execute(
            select(Voucher)
            .where(*conditions)
            .order_by(Voucher.voucher_date.desc(), Voucher.voucher_no.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()

        return Page(
            items=tuple(to_voucher_record(v) for v in vouchers),
            total=total,
            limit=limit,
            offset=offset,
        )
