"""
Enumerations shared by domain commands and ORM models.

Values are stored verbatim in String columns.
"""

from enum import Enum


class InvoiceType(str, Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"


class InvoiceStatus(str, Enum):
    """draft -> active -> cancelled; active is also reachable directly."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Settlement state of an invoice (not of a Payment)."""

    PAID = "paid"
    DUE = "due"


class ReturnType(str, Enum):
    PURCHASE_RETURN = "PURCHASE_RETURN"  # debit note
    SALE_RETURN = "SALE_RETURN"  # credit note


class MovementType(str, Enum):
    """Stock timeline movement types."""

    PURCHASE = "PURCHASE"
    SALE = "SALE"
    PURCHASE_EDIT = "PURCHASE_EDIT"
    SALE_EDIT = "SALE_EDIT"
    PURCHASE_RETURN = "PURCHASE_RETURN"
    SALE_RETURN = "SALE_RETURN"
    PURCHASE_DELETE = "PURCHASE_DELETE"
    SALE_DELETE = "SALE_DELETE"
    PURCHASE_RETURN_DELETE = "PURCHASE_RETURN_DELETE"
    SALE_RETURN_DELETE = "SALE_RETURN_DELETE"
    IMPORT = "IMPORT"
    ADJUSTMENT = "ADJUSTMENT"


class PartyType(str, Enum):
    CUSTOMER = "CUSTOMER"
    DISTRIBUTOR = "DISTRIBUTOR"


class LedgerEntryType(str, Enum):
    OPENING_BALANCE = "OPENING_BALANCE"
    PURCHASE_INVOICE = "PURCHASE_INVOICE"
    SALE_INVOICE = "SALE_INVOICE"
    PURCHASE_RETURN = "PURCHASE_RETURN"
    SALE_RETURN = "SALE_RETURN"
    PAYMENT_IN = "PAYMENT_IN"
    PAYMENT_OUT = "PAYMENT_OUT"
    INVOICE_REVERSAL = "INVOICE_REVERSAL"
    RETURN_REVERSAL = "RETURN_REVERSAL"
    PAYMENT_REVERSAL = "PAYMENT_REVERSAL"


class AccountType(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    UPI = "UPI"
    OTHERS = "OTHERS"


class AccountTransactionType(str, Enum):
    CREDIT = "CREDIT"  # money into the account
    DEBIT = "DEBIT"  # money out of the account


class PaymentType(str, Enum):
    IN = "Payment In"
    OUT = "Payment Out"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    UPI = "UPI"
    CHEQUE = "CHEQUE"
    CARD = "CARD"
    BANK = "BANK"


class PaymentRecordStatus(str, Enum):
    PENDING = "PENDING"  # cheque not yet cleared
    COMPLETED = "COMPLETED"


class DocumentKind(str, Enum):
    """Sequence counter kinds.  The last three only order append-only rows."""

    SALE = "SALE"
    PURCHASE = "PURCHASE"
    SALE_RETURN = "SALE_RETURN"
    PURCHASE_RETURN = "PURCHASE_RETURN"
    PAYMENT = "PAYMENT"
    STOCK_TIMELINE = "STOCK_TIMELINE"
    PARTY_LEDGER = "PARTY_LEDGER"
    ACCOUNT_TRANSACTION = "ACCOUNT_TRANSACTION"

    @property
    def is_document(self) -> bool:
        return self in _NUMBERED_KINDS


_NUMBERED_KINDS = frozenset(
    {
        DocumentKind.SALE,
        DocumentKind.PURCHASE,
        DocumentKind.SALE_RETURN,
        DocumentKind.PURCHASE_RETURN,
        DocumentKind.PAYMENT,
    }
)
