"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (the HTTP layer, batch jobs, tests) need to tell a
client-correctable rejection apart from a retryable conflict without parsing
message strings.  Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. A RETRYABLE attribute (safe to resubmit the identical request?)
  4. Structured DATA naming the variant, lot, or log entry involved

Example:
    try:
        ledger.create_sale(company_id, actor_id, request)
    except InsufficientStockError as e:
        api_response(400, code=e.code, variant=e.product_variant_id,
                     missing=e.missing)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- UnknownVariantsError
    |   +-- UnknownClientError
    |   +-- InvalidQuantityError
    |   +-- EmptySaleError
    |
    +-- StockError
    |   +-- OutOfStockError
    |   +-- InsufficientStockError
    |   |   +-- StockConflictError
    |   +-- NegativeResultingQuantityError
    |
    +-- NotFoundError
    |   +-- StockItemNotFoundError
    |   +-- ProductVariantNotFoundError
    |   +-- InventoryLogNotFoundError
    |   +-- SaleNotFoundError
    |
    +-- ReversalError
    |   +-- AlreadyRevertedError
    |
    +-- TransactionError
    |   +-- TransactionTimeoutError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|-----------------------------------------
Validation   | UNKNOWN_VARIANTS             | Variant ids absent or owned by another tenant
             | UNKNOWN_CLIENT               | Client absent or owned by another tenant
             | INVALID_QUANTITY             | Non-positive / non-integer quantity
             | EMPTY_SALE                   | Sale request without items
-------------|------------------------------|-----------------------------------------
Stock        | OUT_OF_STOCK                 | No lot with quantity > 0 for the variant
             | INSUFFICIENT_STOCK           | Lots cannot cover the requested quantity
             | STOCK_CONFLICT               | Lot changed between read and write (retry)
             | NEGATIVE_RESULTING_QUANTITY  | Adjustment/reversal would go below zero
-------------|------------------------------|-----------------------------------------
Not found    | STOCK_ITEM_NOT_FOUND         | Lot absent or owned by another tenant
             | PRODUCT_VARIANT_NOT_FOUND    | Variant absent or owned by another tenant
             | INVENTORY_LOG_NOT_FOUND      | Log entry absent or owned by another tenant
             | SALE_NOT_FOUND               | Sale absent or owned by another tenant
-------------|------------------------------|-----------------------------------------
Reversal     | ALREADY_REVERTED             | Log entry was reverted before
-------------|------------------------------|-----------------------------------------
Transaction  | TRANSACTION_TIMEOUT          | Max-wait or execution budget exceeded
-------------|------------------------------|-----------------------------------------
Immutability | IMMUTABILITY_VIOLATION       | Modifying an append-only record

===============================================================================
TENANT ISOLATION
===============================================================================

A row owned by another tenant is reported exactly like an absent row.  No
exception ever reveals that an id exists for a different company.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification and a ``retryable`` flag telling the caller whether the
    identical request may simply be resubmitted.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Base exception for caller input that must be corrected."""

    code: str = "VALIDATION_ERROR"


class UnknownVariantsError(ValidationError):
    """One or more product variants do not exist for the requesting tenant.

    Lists every missing id, not just the first.
    """

    code: str = "UNKNOWN_VARIANTS"

    def __init__(self, missing_variant_ids: list[str]):
        self.missing_variant_ids = list(missing_variant_ids)
        super().__init__(
            "Some product variants do not exist or do not belong to this "
            f"company: {', '.join(self.missing_variant_ids)}"
        )


class UnknownClientError(ValidationError):
    """Client referenced by a sale does not exist for the requesting tenant."""

    code: str = "UNKNOWN_CLIENT"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found for this company: {client_id}")


class InvalidQuantityError(ValidationError):
    """A quantity field is malformed (not an integer, or out of range)."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class EmptySaleError(ValidationError):
    """Sale request carries no line items."""

    code: str = "EMPTY_SALE"

    def __init__(self):
        super().__init__("Sale request must contain at least one item")


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for business-rule rejections on stock quantities."""

    code: str = "STOCK_ERROR"


class OutOfStockError(StockError):
    """No lot with positive quantity exists for the requested variant."""

    code: str = "OUT_OF_STOCK"

    def __init__(self, product_variant_id: str):
        self.product_variant_id = product_variant_id
        super().__init__(f"No stock available for variant {product_variant_id}")


class InsufficientStockError(StockError):
    """Available lots cannot cover the requested quantity.

    The allocation attempt is abandoned as a whole; nothing was written.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_variant_id: str,
        requested: int,
        available: int,
    ):
        self.product_variant_id = product_variant_id
        self.requested = requested
        self.available = available
        self.missing = requested - available
        super().__init__(
            f"Insufficient stock for variant {product_variant_id}. "
            f"Missing {self.missing} units."
        )


class StockConflictError(InsufficientStockError):
    """
    Lot quantity changed between the allocation read and the write.

    A concurrent transaction consumed or adjusted the lot first.  Reported as
    insufficient stock to the caller; nothing persisted, so the whole request
    can be resubmitted.
    """

    code: str = "STOCK_CONFLICT"
    retryable: bool = True

    def __init__(
        self,
        stock_item_id: str,
        expected_quantity: int,
        product_variant_id: str | None = None,
    ):
        self.stock_item_id = stock_item_id
        self.expected_quantity = expected_quantity
        StockError.__init__(
            self,
            f"Stock item {stock_item_id} changed concurrently "
            f"(expected quantity {expected_quantity})",
        )
        self.product_variant_id = product_variant_id
        self.requested = None
        self.available = None
        self.missing = None


class NegativeResultingQuantityError(StockError):
    """An adjustment or reversal would drive a lot below zero."""

    code: str = "NEGATIVE_RESULTING_QUANTITY"

    def __init__(
        self,
        stock_item_id: str,
        current_quantity: int,
        quantity_change: int,
    ):
        self.stock_item_id = stock_item_id
        self.current_quantity = current_quantity
        self.quantity_change = quantity_change
        self.resulting_quantity = current_quantity + quantity_change
        super().__init__(
            f"Resulting quantity cannot be negative for stock item "
            f"{stock_item_id}: {current_quantity} {quantity_change:+d} "
            f"= {self.resulting_quantity}"
        )


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for tenant-scoped lookups that found nothing."""

    code: str = "NOT_FOUND"


class StockItemNotFoundError(NotFoundError):
    """Stock lot was not found for this tenant."""

    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, stock_item_id: str):
        self.stock_item_id = stock_item_id
        super().__init__(f"Stock item not found for this company: {stock_item_id}")


class ProductVariantNotFoundError(NotFoundError):
    """Product variant was not found for this tenant."""

    code: str = "PRODUCT_VARIANT_NOT_FOUND"

    def __init__(self, product_variant_id: str):
        self.product_variant_id = product_variant_id
        super().__init__(f"Product variant not found: {product_variant_id}")


class InventoryLogNotFoundError(NotFoundError):
    """Inventory log entry was not found for this tenant."""

    code: str = "INVENTORY_LOG_NOT_FOUND"

    def __init__(self, log_id: str):
        self.log_id = log_id
        super().__init__(f"Inventory log not found: {log_id}")


class SaleNotFoundError(NotFoundError):
    """Sale was not found for this tenant."""

    code: str = "SALE_NOT_FOUND"

    def __init__(self, sale_id: str):
        self.sale_id = sale_id
        super().__init__(f"Sale not found: {sale_id}")


# Reversal exceptions


class ReversalError(InventoryKernelError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class AlreadyRevertedError(ReversalError):
    """Log entry was already reverted.  Reversal is single-use."""

    code: str = "ALREADY_REVERTED"

    def __init__(self, log_id: str, reverted_by_id: str | None = None):
        self.log_id = log_id
        self.reverted_by_id = reverted_by_id
        super().__init__(f"Log already reverted: {log_id}")


# Transaction exceptions


class TransactionError(InventoryKernelError):
    """Base exception for infrastructure-level transaction faults."""

    code: str = "TRANSACTION_ERROR"
    retryable: bool = True


class TransactionTimeoutError(TransactionError):
    """
    Transaction exceeded its wait-to-acquire or execution budget.

    The transaction was rolled back; nothing was committed.
    """

    code: str = "TRANSACTION_TIMEOUT"

    def __init__(
        self,
        phase: str,
        budget_ms: int,
        elapsed_ms: float | None = None,
        step: str | None = None,
    ):
        self.phase = phase
        self.budget_ms = budget_ms
        self.elapsed_ms = elapsed_ms
        self.step = step
        detail = f" at {step}" if step else ""
        super().__init__(
            f"Transaction {phase} budget of {budget_ms}ms exceeded{detail}"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    InventoryLogEntry rows only allow the single reversal flag flip;
    SaleItem rows never change; StockLot rows are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
