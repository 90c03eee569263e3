"""SQL-backed reference implementations of the collaborator Protocols."""

from ledger_kernel.adapters.sql_invoice_gateway import SqlInvoiceGateway
from ledger_kernel.adapters.sql_party_directory import SqlPartyDirectory

__all__ = ["SqlInvoiceGateway", "SqlPartyDirectory"]
