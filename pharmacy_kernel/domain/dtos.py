"""
Domain DTOs -- commands accepted by the engine and results it returns.

Commands are frozen dataclasses with named, validated fields per operation.
They never mirror the persisted entity wholesale: a caller can only say
what the operation accepts.  Field-level validation happens in
``__post_init__`` and raises ValidationError; identifier well-formedness is
checked by the services (InvalidReferenceError) because identifiers may
arrive as strings.

Result DTOs are immutable snapshots built from ORM rows after the
operation's flush, so they stay valid after the session closes.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pharmacy_kernel.domain.enums import (
    AccountTransactionType,
    AccountType,
    InvoiceStatus,
    InvoiceType,
    LedgerEntryType,
    MovementType,
    PartyType,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    ReturnType,
)
from pharmacy_kernel.domain.money import ZERO, to_decimal
from pharmacy_kernel.exceptions import ValidationError

Identifier = UUID | str

_EXPIRY_MONTHS = {f"{m:02d}" for m in range(1, 13)}


def _require_positive_int(value: int, field_name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {value!r}", field=field_name)


def _require_non_negative(value: Decimal | None, field_name: str) -> None:
    if value is not None and value < ZERO:
        raise ValidationError(f"{field_name} must not be negative", field=field_name)


def validate_expiry(expiry: str | None) -> None:
    """Expiry is MM/YY, e.g. "07/26"."""
    if expiry is None:
        return
    parts = expiry.split("/")
    if len(parts) != 2 or parts[0] not in _EXPIRY_MONTHS or len(parts[1]) != 2 or not parts[1].isdigit():
        raise ValidationError(f"expiry must be MM/YY, got {expiry!r}", field="expiry")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItemInput:
    """
    One invoice line.

    Purchases identify the batch by ``batch_id`` or ``batch_number`` (a new
    batch is created when the number is unknown for the product).  Sales must
    reference an existing batch.  Rates and GST% default to the batch (or
    product) values when omitted.
    """

    product_id: Identifier
    quantity: int
    batch_id: Identifier | None = None
    batch_number: str | None = None
    expiry: str | None = None
    free: int = 0
    pack: int | None = None
    mrp: Decimal | None = None
    purchase_rate: Decimal | None = None
    sale_rate: Decimal | None = None
    discount_percent: Decimal = ZERO
    gst_percent: Decimal | None = None

    def __post_init__(self) -> None:
        _require_positive_int(self.quantity, "quantity")
        if not isinstance(self.free, int) or self.free < 0:
            raise ValidationError("free must be a non-negative integer", field="free")
        for name in ("mrp", "purchase_rate", "sale_rate", "gst_percent"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))
                _require_non_negative(getattr(self, name), name)
        object.__setattr__(self, "discount_percent", to_decimal(self.discount_percent))
        if not ZERO <= self.discount_percent <= Decimal("100"):
            raise ValidationError("discount_percent must be within 0-100", field="discount_percent")
        validate_expiry(self.expiry)


@dataclass(frozen=True)
class PaymentInput:
    """Payment sub-document of an invoice, or a return refund."""

    amount: Decimal
    method: PaymentMethod
    account_id: Identifier | None = None
    cheque_number: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        _require_non_negative(self.amount, "amount")
        try:
            object.__setattr__(self, "method", PaymentMethod(self.method))
        except ValueError:
            raise ValidationError(f"unknown payment method {self.method!r}", field="method") from None


@dataclass(frozen=True)
class CreateInvoiceCommand:
    invoice_type: InvoiceType
    lines: tuple[LineItemInput, ...]
    party_id: Identifier | None = None
    invoice_date: date | None = None
    payment: PaymentInput | None = None
    status: InvoiceStatus = InvoiceStatus.ACTIVE
    invoice_number: str | None = None
    supplier_invoice_number: str | None = None
    inter_state: bool = False
    remarks: str | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "invoice_type", InvoiceType(self.invoice_type))
            object.__setattr__(self, "status", InvoiceStatus(self.status))
        except ValueError as exc:
            raise ValidationError(str(exc), field="invoice_type") from None
        object.__setattr__(self, "lines", tuple(self.lines))
        if not self.lines:
            raise ValidationError("an invoice needs at least one line", field="lines")
        if self.status is InvoiceStatus.CANCELLED:
            raise ValidationError("an invoice cannot be created cancelled", field="status")
        if self.status is InvoiceStatus.DRAFT and self.payment is not None:
            raise ValidationError("a draft invoice cannot carry a payment", field="payment")
        if self.invoice_type is InvoiceType.SALE and any(line.free for line in self.lines):
            raise ValidationError("free quantity is only allowed on purchases", field="free")


@dataclass(frozen=True)
class EditInvoiceCommand:
    """
    Replacement line set and payment for an existing invoice.

    ``payment=None`` means the edited invoice carries no payment of its own.
    ``party_id``/``invoice_date``/``supplier_invoice_number``/``remarks`` left
    as None keep their current values.
    """

    invoice_id: Identifier
    lines: tuple[LineItemInput, ...]
    payment: PaymentInput | None = None
    party_id: Identifier | None = None
    invoice_date: date | None = None
    supplier_invoice_number: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        if not self.lines:
            raise ValidationError("an invoice needs at least one line", field="lines")


@dataclass(frozen=True)
class ReturnLineInput:
    invoice_line_id: Identifier
    quantity: int

    def __post_init__(self) -> None:
        _require_positive_int(self.quantity, "quantity")


@dataclass(frozen=True)
class CreateReturnCommand:
    original_invoice_id: Identifier
    lines: tuple[ReturnLineInput, ...]
    refund: PaymentInput | None = None
    return_date: date | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        if not self.lines:
            raise ValidationError("a return needs at least one line", field="lines")


@dataclass(frozen=True)
class CreatePaymentCommand:
    """
    Standalone payment.

    ``bill_ids`` lists invoices to settle in order; the amount fills each
    bill's due amount and any remainder stays with the party as an advance.
    Cheque payments need no account; every other method does.
    """

    payment_type: PaymentType
    amount: Decimal
    method: PaymentMethod
    party_id: Identifier | None = None
    account_id: Identifier | None = None
    bill_ids: tuple[Identifier, ...] = ()
    payment_date: date | None = None
    cheque_number: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "payment_type", PaymentType(self.payment_type))
            object.__setattr__(self, "method", PaymentMethod(self.method))
        except ValueError as exc:
            raise ValidationError(str(exc), field="method") from None
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if self.amount <= ZERO:
            raise ValidationError("payment amount must be positive", field="amount")
        object.__setattr__(self, "bill_ids", tuple(self.bill_ids))


@dataclass(frozen=True)
class NewBatchFields:
    """Attributes of a batch created (or refreshed) by a stock movement."""

    batch_number: str
    expiry: str | None = None
    mrp: Decimal = ZERO
    gst_percent: Decimal = ZERO
    purchase_rate: Decimal = ZERO
    sale_rate: Decimal = ZERO
    pack: int | None = None

    def __post_init__(self) -> None:
        if not self.batch_number or not self.batch_number.strip():
            raise ValidationError("batch_number is required", field="batch_number")
        validate_expiry(self.expiry)


@dataclass(frozen=True)
class StockImportItem:
    product_id: Identifier
    batch_number: str
    quantity: int
    expiry: str | None = None
    mrp: Decimal = ZERO
    gst_percent: Decimal = ZERO
    purchase_rate: Decimal = ZERO
    sale_rate: Decimal = ZERO
    pack: int | None = None

    def __post_init__(self) -> None:
        _require_positive_int(self.quantity, "quantity")
        validate_expiry(self.expiry)

    def batch_fields(self) -> NewBatchFields:
        return NewBatchFields(
            batch_number=self.batch_number,
            expiry=self.expiry,
            mrp=to_decimal(self.mrp),
            gst_percent=to_decimal(self.gst_percent),
            purchase_rate=to_decimal(self.purchase_rate),
            sale_rate=to_decimal(self.sale_rate),
            pack=self.pack,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllocatedNumber:
    document_kind: str
    fiscal_year: int
    counter: int
    formatted: str


@dataclass(frozen=True)
class TenantInfo:
    id: UUID
    code: str
    name: str
    is_active: bool


@dataclass(frozen=True)
class ProductInfo:
    id: UUID
    name: str
    unit: str | None
    pack: int | None
    hsn: str | None
    gst_percent: Decimal
    quantity: int


@dataclass(frozen=True)
class BatchInfo:
    id: UUID
    product_id: UUID
    batch_number: str
    expiry: str | None
    mrp: Decimal
    gst_percent: Decimal
    purchase_rate: Decimal
    sale_rate: Decimal
    pack: int | None
    quantity: int


@dataclass(frozen=True)
class StockDelta:
    """Result of one InventoryStore.apply_delta call."""

    product_id: UUID
    batch_id: UUID
    delta: int
    product_quantity: int
    batch_quantity: int
    batch_created: bool


@dataclass(frozen=True)
class TimelineEntryInfo:
    id: UUID
    seq: int
    product_id: UUID
    batch_id: UUID | None
    movement_type: MovementType
    credit: int
    debit: int
    balance: int
    batch_balance: int | None
    document_id: UUID | None
    document_number: str | None
    party_name: str | None
    remarks: str | None


@dataclass(frozen=True)
class PartyInfo:
    id: UUID
    party_type: PartyType
    name: str
    opening_balance: Decimal
    current_balance: Decimal
    credit_period_days: int
    credit_limit: Decimal | None


@dataclass(frozen=True)
class PartyLedgerEntryInfo:
    id: UUID
    seq: int
    party_id: UUID
    entry_type: LedgerEntryType
    debit: Decimal
    credit: Decimal
    balance: Decimal
    description: str | None
    document_id: UUID | None
    document_number: str | None


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    name: str
    account_type: AccountType
    opening_balance: Decimal
    balance: Decimal


@dataclass(frozen=True)
class AccountTransactionInfo:
    id: UUID
    seq: int
    account_id: UUID
    transaction_type: AccountTransactionType
    amount: Decimal
    balance: Decimal
    payment_id: UUID | None
    payment_number: str | None


@dataclass(frozen=True)
class PaymentInfo:
    id: UUID
    payment_number: str
    payment_type: PaymentType
    method: PaymentMethod
    status: PaymentRecordStatus
    amount: Decimal
    allocated_amount: Decimal
    party_id: UUID | None
    account_id: UUID | None
    origin_invoice_id: UUID | None
    origin_return_id: UUID | None
    allocations: tuple[tuple[UUID, Decimal], ...] = ()

    @property
    def unallocated_amount(self) -> Decimal:
        return self.amount - self.allocated_amount


@dataclass(frozen=True)
class InvoiceLineInfo:
    id: UUID
    line_no: int
    product_id: UUID
    batch_id: UUID | None
    batch_number: str | None
    quantity: int
    free: int
    rate: Decimal
    discount_percent: Decimal
    gst_percent: Decimal
    taxable_amount: Decimal
    gst_amount: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceInfo:
    id: UUID
    invoice_type: InvoiceType
    status: InvoiceStatus
    invoice_number: str | None
    fiscal_year: int
    invoice_date: date
    party_id: UUID | None
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    gst_amount: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    payment_status: PaymentStatus
    lines: tuple[InvoiceLineInfo, ...] = ()
    gst_summary: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def amount_due(self) -> Decimal:
        return self.grand_total - self.amount_paid


@dataclass(frozen=True)
class ReturnLineInfo:
    id: UUID
    invoice_line_id: UUID
    product_id: UUID
    batch_id: UUID
    quantity: int
    amount: Decimal


@dataclass(frozen=True)
class ReturnInfo:
    id: UUID
    return_type: ReturnType
    return_number: str
    fiscal_year: int
    original_invoice_id: UUID
    party_id: UUID | None
    grand_total: Decimal
    refund_amount: Decimal
    lines: tuple[ReturnLineInfo, ...] = ()


@dataclass(frozen=True)
class ReconciliationResult:
    """Ledger-sum check for a party or account balance."""

    entity_id: UUID
    opening_balance: Decimal
    ledger_net: Decimal
    recorded_balance: Decimal

    @property
    def expected_balance(self) -> Decimal:
        return self.opening_balance + self.ledger_net

    @property
    def is_balanced(self) -> bool:
        return self.expected_balance == self.recorded_balance
