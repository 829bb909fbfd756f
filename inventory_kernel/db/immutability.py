"""
ORM-Level Immutability Enforcement for the inventory audit trail.

===============================================================================
WHY THIS EXISTS
===============================================================================

The inventory log is the record that explains every stock quantity.  If an
entry could be edited after the fact, reconciliation (initial quantity plus
the sum of non-reverted movements) would stop proving anything.  Entries are
therefore append-only; a correction is a new entry or a reversal, never an
edit.

SQLAlchemy fires events before UPDATE/DELETE reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Bulk Core statements (``update(StockLot)``) do not pass through these
listeners; that is how StockLedgerService changes lot quantities.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | Rule
-------------------|------------------------------------------------------------
InventoryLogEntry  | Only is_reverted False->True, reverted_by_id, reverted_at
                   | may change, once.  Never deleted.
SaleItem           | Immutable after insert.  Never deleted.
Sale               | Only status, payment_status, updated_at may change.
                   | Never deleted.
StockLot           | initial_quantity and product_variant_id never change.
                   | Never deleted.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to bypass the rules:

    unregister_immutability_listeners()
    # ... forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_LOG_REVERSAL_FIELDS = frozenset({"is_reverted", "reverted_by_id", "reverted_at"})
_SALE_MUTABLE_FIELDS = frozenset({"status", "payment_status", "updated_at"})
_STOCK_LOT_FROZEN_FIELDS = frozenset({"initial_quantity", "product_variant_id"})


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [attr.key for attr in insp.attrs if attr.history.has_changes()]


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_inventory_log_immutability(mapper, connection, target):
    """
    Allow only the single reversal flag flip on an inventory log entry.

    The flip is detected through attribute history: is_reverted must go from
    False to True in this very flush.  Setting reverted_by_id on an entry that
    was already reverted is blocked as well.
    """
    from sqlalchemy.orm.attributes import get_history

    for field in _changed_fields(target):
        if field not in _LOG_REVERSAL_FIELDS:
            _block(
                "InventoryLogEntry",
                target,
                "UPDATE",
                f"Cannot modify field '{field}' on inventory log entry",
                field,
            )

    flag = get_history(target, "is_reverted")
    flipping = (
        bool(flag.deleted)
        and not flag.deleted[0]
        and list(flag.added) == [True]
    )
    if not flipping:
        _block(
            "InventoryLogEntry",
            target,
            "UPDATE",
            "Reversal fields may only change while flipping is_reverted to True",
            "is_reverted",
        )


def _check_inventory_log_delete(mapper, connection, target):
    _block("InventoryLogEntry", target, "DELETE", "Inventory log entries cannot be deleted")


def _check_sale_item_immutability(mapper, connection, target):
    fields = _changed_fields(target)
    if fields:
        _block(
            "SaleItem",
            target,
            "UPDATE",
            f"Cannot modify field '{fields[0]}' on sale item",
            fields[0],
        )


def _check_sale_item_delete(mapper, connection, target):
    _block("SaleItem", target, "DELETE", "Sale items cannot be deleted")


def _check_sale_immutability(mapper, connection, target):
    for field in _changed_fields(target):
        # relationship collections show up as attrs too
        if field == "items":
            continue
        if field not in _SALE_MUTABLE_FIELDS:
            _block(
                "Sale",
                target,
                "UPDATE",
                f"Cannot modify field '{field}' on sale",
                field,
            )


def _check_sale_delete(mapper, connection, target):
    _block("Sale", target, "DELETE", "Sales cannot be deleted")


def _check_stock_lot_immutability(mapper, connection, target):
    for field in _changed_fields(target):
        if field in _STOCK_LOT_FROZEN_FIELDS:
            _block(
                "StockLot",
                target,
                "UPDATE",
                f"Cannot modify field '{field}' on stock lot",
                field,
            )


def _check_stock_lot_delete(mapper, connection, target):
    _block("StockLot", target, "DELETE", "Stock lots cannot be deleted")


def _listener_table():
    from inventory_kernel.models.inventory_log import InventoryLogEntry
    from inventory_kernel.models.sale import Sale, SaleItem
    from inventory_kernel.models.stock_lot import StockLot

    return [
        (InventoryLogEntry, "before_update", _check_inventory_log_immutability),
        (InventoryLogEntry, "before_delete", _check_inventory_log_delete),
        (SaleItem, "before_update", _check_sale_item_immutability),
        (SaleItem, "before_delete", _check_sale_item_delete),
        (Sale, "before_update", _check_sale_immutability),
        (Sale, "before_delete", _check_sale_delete),
        (StockLot, "before_update", _check_stock_lot_immutability),
        (StockLot, "before_delete", _check_stock_lot_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: a listener already registered is not added twice.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally exercise the raw
    database constraints.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
