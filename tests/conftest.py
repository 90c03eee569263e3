"""
Pytest fixtures for the voucher ledger test suite.

Provides:
- A fresh database per test (in-memory SQLite, or DATABASE_URL)
- A service-level session that is rolled back at teardown
- A VoucherLifecycle wired to the SQL reference collaborators
- Builders for parties, invoices, accounts and expense categories

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are dropped and recreated per test.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.adapters.sql_invoice_gateway import SqlInvoiceGateway
from ledger_kernel.adapters.sql_party_directory import SqlPartyDirectory
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.db.unit_of_work import RetryPolicy, UnitOfWork
from ledger_kernel.domain.accounts import AccountSubType, AccountType
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.collaborators import InvoiceStatus
from ledger_kernel.domain.vouchers import PartyType
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.expense_category import ExpenseCategory
from ledger_kernel.models.reference import Invoice, Party
from ledger_kernel.services.voucher_service import VoucherService
from ledger_services.voucher_lifecycle import VoucherLifecycle

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

FIXED_NOW = datetime(2024, 6, 15, 10, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lifecycle):
            lifecycle.create_voucher(...)
            logs = captured_logs()
            assert any(r["message"] == "voucher_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture
def engine():
    """Fresh schema per test with the immutability listeners installed."""
    eng = init_engine_from_url(get_database_url(), pool_size=5, max_overflow=5)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    """
    Session for service-level tests.

    Services flush but never commit; everything is rolled back at teardown.
    Do not combine with ``lifecycle`` in one test: the lifecycle opens its
    own sessions.
    """
    sess = get_session_factory()()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def seed(engine):
    """
    Commit setup data for lifecycle tests.

    Usage::

        with seed() as s:
            vendor = factory.party(s, "Acme", PartyType.VENDOR)
    """
    return session_scope


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def voucher_service(session, clock) -> VoucherService:
    return VoucherService(
        session,
        clock,
        SqlInvoiceGateway(session),
        SqlPartyDirectory(session),
    )


@pytest.fixture
def unit_of_work(engine) -> UnitOfWork:
    return UnitOfWork(
        get_session_factory(),
        retry_policy=RetryPolicy(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0),
        sleep=lambda seconds: None,
    )


@pytest.fixture
def lifecycle(unit_of_work, clock) -> VoucherLifecycle:
    return VoucherLifecycle(
        unit_of_work,
        invoice_gateway_factory=SqlInvoiceGateway,
        party_directory_factory=SqlPartyDirectory,
        clock=clock,
    )


# =============================================================================
# Builders
# =============================================================================


class LedgerFactory:
    """Inserts reference rows; every method flushes and returns the model."""

    def __init__(self, actor_id):
        self.actor_id = actor_id

    def party(self, session: Session, name: str, party_type: PartyType) -> Party:
        party = Party(
            party_type=PartyType(party_type).value,
            name=name,
            cash_balance=Decimal("0"),
            created_by_id=self.actor_id,
        )
        session.add(party)
        session.flush()
        return party

    def invoice(
        self,
        session: Session,
        party: Party,
        total: Decimal | str,
        outstanding: Decimal | str | None = None,
        invoice_no: str | None = None,
    ) -> Invoice:
        total = Decimal(total)
        outstanding = total if outstanding is None else Decimal(outstanding)
        status = InvoiceStatus.UNPAID if outstanding == total else InvoiceStatus.PARTIAL
        invoice = Invoice(
            invoice_no=invoice_no or f"INV-{uuid4().hex[:8]}",
            party_id=party.id,
            party_type=party.party_type,
            total_amount=total,
            outstanding_amount=outstanding,
            status=status.value,
            created_by_id=self.actor_id,
        )
        session.add(invoice)
        session.flush()
        return invoice

    def account(
        self,
        session: Session,
        code: str,
        name: str,
        account_type: AccountType,
        sub_type: AccountSubType | None = None,
        opening_balance: Decimal | str = "0",
        allow_direct_posting: bool = True,
        is_active: bool = True,
        parent: LedgerAccount | None = None,
    ) -> LedgerAccount:
        opening = Decimal(opening_balance)
        account = LedgerAccount(
            account_code=code,
            account_name=name,
            account_type=AccountType(account_type).value,
            sub_type=AccountSubType(sub_type).value if sub_type else None,
            parent_account_id=parent.id if parent else None,
            level=parent.level + 1 if parent else 0,
            is_active=is_active,
            allow_direct_posting=allow_direct_posting,
            opening_balance=opening,
            current_balance=opening,
            is_system_account=False,
            created_by_id=self.actor_id,
        )
        session.add(account)
        session.flush()
        return account

    def cash(self, session: Session, opening_balance: Decimal | str = "0") -> LedgerAccount:
        return self.account(
            session,
            "CASH001",
            "Cash in Hand",
            AccountType.ASSET,
            AccountSubType.CURRENT_ASSET,
            opening_balance=opening_balance,
        )

    def bank(self, session: Session, opening_balance: Decimal | str = "0") -> LedgerAccount:
        return self.account(
            session,
            "BANK001",
            "Bank Account",
            AccountType.ASSET,
            AccountSubType.CURRENT_ASSET,
            opening_balance=opening_balance,
        )

    def category(
        self,
        session: Session,
        code: str,
        name: str,
        default_account: LedgerAccount | None = None,
        requires_approval: bool = False,
        approval_limit: Decimal | str = "0",
        monthly_budget: Decimal | str = "0",
        is_active: bool = True,
    ) -> ExpenseCategory:
        category = ExpenseCategory(
            category_code=code,
            category_name=name,
            monthly_budget=Decimal(monthly_budget),
            yearly_budget=Decimal("0"),
            current_spent=Decimal("0"),
            requires_approval=requires_approval,
            approval_limit=Decimal(approval_limit),
            default_account_id=default_account.id if default_account else None,
            is_active=is_active,
            created_by_id=self.actor_id,
        )
        session.add(category)
        session.flush()
        return category


@pytest.fixture
def factory(actor_id) -> LedgerFactory:
    return LedgerFactory(actor_id)
