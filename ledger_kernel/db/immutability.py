"""
ORM-level immutability enforcement for ledger entries.

===============================================================================
RULE
===============================================================================

A LedgerEntry is append-only.  Once flushed, the only columns that may
change are the reversal flags and audit metadata:

    is_reversed, reversed_at, updated_at, updated_by_id

Every other UPDATE and every DELETE is rejected with
ImmutabilityViolationError before SQL reaches the database.  A posting is
corrected by writing a mirror entry (see services/ledger_poster.py), never
by editing the original.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update] --> _check_ledger_entry_immutability() --> raise
         |
    [before_delete] --> _check_ledger_entry_delete() ---------> raise
         |
         v
    SQL sent to database (only if checks pass)

Bulk ``update()``/``delete()`` statements bypass mapper events and are not
used by the kernel.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup (bootstrap does this)

Tests that need to provoke a raw violation may call
unregister_immutability_listeners() and register again afterwards.
"""

from sqlalchemy import event, inspect

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

LEDGER_ENTRY_MUTABLE_FIELDS = frozenset(
    {"is_reversed", "reversed_at", "updated_at", "updated_by_id"}
)


def _check_ledger_entry_immutability(mapper, connection, target):
    """Reject any change to a ledger entry outside its reversal flags."""
    for attr in inspect(target).attrs:
        if attr.key in LEDGER_ENTRY_MUTABLE_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "LedgerEntry",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="LedgerEntry",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on a ledger entry",
            )

    reversed_history = inspect(target).attrs.is_reversed.history
    if reversed_history.deleted and reversed_history.deleted[0] is True:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "LedgerEntry",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "field": "is_reversed",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="LedgerEntry",
            entity_id=str(target.id),
            reason="A reversed ledger entry cannot be un-reversed",
        )


def _check_ledger_entry_delete(mapper, connection, target):
    """Ledger entries are never deleted."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerEntry",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerEntry",
        entity_id=str(target.id),
        reason="Ledger entries are append-only and cannot be deleted",
    )


def register_immutability_listeners():
    """Install the LedgerEntry listeners. Safe to call more than once."""
    from ledger_kernel.models.ledger_entry import LedgerEntry

    if not event.contains(LedgerEntry, "before_update", _check_ledger_entry_immutability):
        event.listen(LedgerEntry, "before_update", _check_ledger_entry_immutability)
    if not event.contains(LedgerEntry, "before_delete", _check_ledger_entry_delete):
        event.listen(LedgerEntry, "before_delete", _check_ledger_entry_delete)

    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the LedgerEntry listeners.

    WARNING: Only use this in tests that deliberately bypass the rule.
    """
    from ledger_kernel.models.ledger_entry import LedgerEntry

    _safe_remove_listener(LedgerEntry, "before_update", _check_ledger_entry_immutability)
    _safe_remove_listener(LedgerEntry, "before_delete", _check_ledger_entry_delete)
