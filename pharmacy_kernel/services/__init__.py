"""Services for the pharmacy kernel (write side)."""

from pharmacy_kernel.services.account_service import AccountService
from pharmacy_kernel.services.balance_ledger import BalanceLedger
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.invoice_engine import InvoiceEngine
from pharmacy_kernel.services.party_service import PartyService
from pharmacy_kernel.services.payment_service import PaymentService
from pharmacy_kernel.services.product_service import ProductService
from pharmacy_kernel.services.retry_service import run_with_retry
from pharmacy_kernel.services.return_service import ReturnService
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.stock_movement import StockMovement
from pharmacy_kernel.services.tenant_service import TenantService
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

__all__ = [
    "AccountService",
    "BalanceLedger",
    "InventoryStore",
    "InvoiceEngine",
    "PartyService",
    "PaymentService",
    "ProductService",
    "ReturnService",
    "SequenceAllocator",
    "StockMovement",
    "TenantService",
    "TimelineRecorder",
    "run_with_retry",
]
