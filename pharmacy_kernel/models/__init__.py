"""
ORM models.  Importing this package registers every mapper on Base.metadata.
"""

from pharmacy_kernel.models.account import Account, AccountTransaction
from pharmacy_kernel.models.invoice import Invoice, InvoiceLine
from pharmacy_kernel.models.party import Party, PartyLedgerEntry
from pharmacy_kernel.models.payment import Payment, PaymentAllocation
from pharmacy_kernel.models.product import Batch, Product
from pharmacy_kernel.models.returns import ReturnDocument, ReturnLine
from pharmacy_kernel.models.sequence import SequenceCounter
from pharmacy_kernel.models.stock_timeline import StockTimelineEntry
from pharmacy_kernel.models.tenant import Tenant

__all__ = [
    "Account",
    "AccountTransaction",
    "Batch",
    "Invoice",
    "InvoiceLine",
    "Party",
    "PartyLedgerEntry",
    "Payment",
    "PaymentAllocation",
    "Product",
    "ReturnDocument",
    "ReturnLine",
    "SequenceCounter",
    "StockTimelineEntry",
    "Tenant",
]
