"""
ledger_services.bootstrap -- build a ready VoucherLifecycle from settings.

Wires, in order: logging, the engine, the immutability listeners, the
unit of work and the SQL reference collaborators.
"""

from __future__ import annotations

from ledger_config import LedgerSettings, get_active_config
from ledger_kernel.adapters.sql_invoice_gateway import SqlInvoiceGateway
from ledger_kernel.adapters.sql_party_directory import SqlPartyDirectory
from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.db.unit_of_work import RetryPolicy, UnitOfWork
from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import configure_logging
from ledger_services.voucher_lifecycle import VoucherLifecycle


def build_unit_of_work(settings: LedgerSettings) -> UnitOfWork:
    """Unit of work on the current engine.  A zero timeout disables the deadline."""
    return UnitOfWork(
        get_session_factory(),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry.max_attempts,
            base_delay_seconds=settings.retry.base_delay_seconds,
            max_delay_seconds=settings.retry.max_delay_seconds,
        ),
        timeout_seconds=settings.unit_timeout_seconds or None,
    )


def build_lifecycle(
    settings: LedgerSettings | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> VoucherLifecycle:
    settings = settings or get_active_config()
    configure_logging(level=settings.log_level)

    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        isolation_level=db.isolation_level,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()

    return VoucherLifecycle(
        build_unit_of_work(settings),
        invoice_gateway_factory=SqlInvoiceGateway,
        party_directory_factory=SqlPartyDirectory,
        clock=clock,
    )
