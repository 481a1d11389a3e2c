"""
Typed exception hierarchy for the pharmacy kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (route handlers, batch jobs, tests) must react to failures by TYPE
and machine CODE, never by parsing message text.  Every exception below:

  1. Has a class-level ``code`` (stable, API-safe identifier)
  2. Carries structured attributes (ids, quantities) instead of only a message
  3. Guarantees that the enclosing transaction was rolled back before it
     reached the caller (zero persisted side effects)

Example:
    try:
        engine.create_invoice(tenant_id, actor_id, command)
    except InsufficientStockError as e:
        respond(code=e.code, batch=e.batch_id, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PharmacyKernelError (base)
    |
    +-- NotFoundError
    |   +-- TenantNotFoundError
    |   +-- ProductNotFoundError
    |   +-- BatchNotFoundError
    |   +-- PartyNotFoundError
    |   +-- AccountNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- ReturnNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- InvalidReferenceError
    +-- InsufficientStockError
    +-- ValidationError
    |   +-- InvalidInvoiceStateError
    |   +-- DuplicateDocumentNumberError
    |   +-- ReturnQuantityExceededError
    |
    +-- ConflictingReturnError
    +-- SequenceConflictError
    +-- TransactionAbortedError
    +-- StockInvariantError
    +-- ImmutabilityViolationError

===============================================================================
RETRY POLICY
===============================================================================

Only SequenceConflictError and TransactionAbortedError(retryable=True) may be
retried, and only by re-running the whole unit of work in a fresh
transaction (see services/retry_service.py).  Business rejections
(NotFound, Validation, InsufficientStock, ConflictingReturn) are final.
"""

from typing import Any


class PharmacyKernelError(Exception):
    """
    Base exception for all pharmacy kernel errors.

    All subclasses must define a ``code`` class attribute for
    machine-readable identification.
    """

    code: str = "PHARMACY_KERNEL_ERROR"


# Lookup failures


class NotFoundError(PharmacyKernelError):
    """A referenced entity does not exist, or not within the tenant scope."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: Any, tenant_id: Any = None):
        self.entity_id = str(entity_id)
        self.tenant_id = str(tenant_id) if tenant_id is not None else None
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class TenantNotFoundError(NotFoundError):
    code: str = "TENANT_NOT_FOUND"
    entity_type = "Tenant"


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"
    entity_type = "Product"


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"
    entity_type = "Batch"


class PartyNotFoundError(NotFoundError):
    code: str = "PARTY_NOT_FOUND"
    entity_type = "Party"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type = "Account"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type = "Invoice"


class ReturnNotFoundError(NotFoundError):
    code: str = "RETURN_NOT_FOUND"
    entity_type = "Return"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type = "Payment"


class InvalidReferenceError(PharmacyKernelError):
    """A supplied identifier is malformed (not a valid UUID)."""

    code: str = "INVALID_REFERENCE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = repr(value)
        super().__init__(f"Invalid identifier for {field}: {value!r}")


# Stock


class InsufficientStockError(PharmacyKernelError):
    """A sale or purchase return would drive a batch quantity negative."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: Any,
        batch_id: Any,
        requested: int,
        available: int,
    ):
        self.product_id = str(product_id)
        self.batch_id = str(batch_id) if batch_id is not None else None
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock in batch {batch_id}: "
            f"requested {requested}, available {available}"
        )


class StockInvariantError(PharmacyKernelError):
    """
    The inventory store detected an impossible state.

    Raised when a delta would make a batch negative after the caller already
    performed its availability check, or when a new batch would be created
    with negative stock.  Indicates a programming error, never user input.
    """

    code: str = "STOCK_INVARIANT_VIOLATION"

    def __init__(self, product_id: Any, batch_id: Any, reason: str):
        self.product_id = str(product_id)
        self.batch_id = str(batch_id) if batch_id is not None else None
        self.reason = reason
        super().__init__(f"Stock invariant violated for batch {batch_id}: {reason}")


# Input validation


class ValidationError(PharmacyKernelError):
    """A command is missing a field, has an invalid value, or breaks a rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidInvoiceStateError(ValidationError):
    """The invoice lifecycle does not allow the requested transition."""

    code: str = "INVALID_INVOICE_STATE"

    def __init__(self, invoice_id: Any, status: str, operation: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} invoice {invoice_id} in status {status}",
            field="status",
        )


class DuplicateDocumentNumberError(ValidationError):
    """A caller-supplied document number is already used in this fiscal year."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, document_kind: str, number: str, fiscal_year: int):
        self.document_kind = document_kind
        self.number = number
        self.fiscal_year = fiscal_year
        super().__init__(
            f"{document_kind} number {number} already exists in FY {fiscal_year}",
            field="invoice_number",
        )


class ReturnQuantityExceededError(ValidationError):
    """Cumulative returned quantity would exceed the original line quantity."""

    code: str = "RETURN_QUANTITY_EXCEEDED"

    def __init__(self, invoice_line_id: Any, requested: int, returnable: int):
        self.invoice_line_id = str(invoice_line_id)
        self.requested = requested
        self.returnable = returnable
        super().__init__(
            f"Cannot return {requested} units of line {invoice_line_id}: "
            f"only {returnable} returnable",
            field="quantity",
        )


# Document dependencies


class ConflictingReturnError(PharmacyKernelError):
    """Delete or cancel attempted on an invoice that has returns."""

    code: str = "CONFLICTING_RETURN"

    def __init__(self, invoice_id: Any, return_count: int):
        self.invoice_id = str(invoice_id)
        self.return_count = return_count
        super().__init__(
            f"Invoice {invoice_id} has {return_count} return(s) and cannot be removed"
        )


# Concurrency and transactions


class SequenceConflictError(PharmacyKernelError):
    """The atomic counter increment could not produce a unique number."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, tenant_id: Any, document_kind: str, fiscal_year: int):
        self.tenant_id = str(tenant_id)
        self.document_kind = document_kind
        self.fiscal_year = fiscal_year
        super().__init__(
            f"Sequence allocation conflict for {document_kind} FY {fiscal_year}"
        )


class TransactionAbortedError(PharmacyKernelError):
    """
    Generic wrapper for an unclassified mid-transaction failure.

    Always means zero persisted side effects.  ``retryable`` is True when the
    store reported a transient condition (lock timeout, serialization
    failure, deadlock) and the whole operation may be re-run.
    """

    code: str = "TRANSACTION_ABORTED"

    def __init__(self, operation: str, reason: str, retryable: bool = False):
        self.operation = operation
        self.reason = reason
        self.retryable = retryable
        super().__init__(f"{operation} aborted: {reason}")


# Append-only records


class ImmutabilityViolationError(PharmacyKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
