"""
ORM-level append-only enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | When immutable      | Why
----------------------|---------------------|----------------------------------
StockTimelineEntry    | ALWAYS              | Running stock balance history
PartyLedgerEntry      | ALWAYS              | Running party balance history
AccountTransaction    | ALWAYS              | Running account balance history

Corrections are new rows (``*_EDIT``, ``*_DELETE``, ``*_RETURN`` movement
types, ``*_REVERSAL`` ledger entries), never edits of old ones.

SQLAlchemy fires ``before_update`` / ``before_delete`` before the statement
reaches the database; the listeners below raise ImmutabilityViolationError
and the flush (and so the transaction) is aborted.

Only ORM unit-of-work operations are covered.  Bulk ``update()`` /
``delete()`` statements bypass mapper events; the services never issue them
against these tables.

===============================================================================
USAGE
===============================================================================

    register_immutability_listeners()    # once at startup
    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event

from pharmacy_kernel.exceptions import ImmutabilityViolationError
from pharmacy_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _protected_models() -> tuple[type, ...]:
    from pharmacy_kernel.models.account import AccountTransaction
    from pharmacy_kernel.models.party import PartyLedgerEntry
    from pharmacy_kernel.models.stock_timeline import StockTimelineEntry

    return (StockTimelineEntry, PartyLedgerEntry, AccountTransaction)


def _block(target, operation: str) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} rows are append-only and cannot be {operation.lower()}d",
    )


def _check_append_only_update(mapper, connection, target):
    """Prevent any UPDATE of an append-only row."""
    _block(target, "UPDATE")


def _check_append_only_delete(mapper, connection, target):
    """Prevent any DELETE of an append-only row."""
    _block(target, "DELETE")


def register_immutability_listeners() -> None:
    """
    Register append-only listeners on every protected model.

    Idempotent: registering twice does not install duplicate listeners.
    """
    for model in _protected_models():
        if not event.contains(model, "before_update", _check_append_only_update):
            event.listen(model, "before_update", _check_append_only_update)
        if not event.contains(model, "before_delete", _check_append_only_delete):
            event.listen(model, "before_delete", _check_append_only_delete)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  FOR TESTING ONLY."""
    for model in _protected_models():
        if event.contains(model, "before_update", _check_append_only_update):
            event.remove(model, "before_update", _check_append_only_update)
        if event.contains(model, "before_delete", _check_append_only_delete):
            event.remove(model, "before_delete", _check_append_only_delete)
