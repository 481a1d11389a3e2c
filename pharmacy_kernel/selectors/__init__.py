"""Selectors for the pharmacy kernel (read side)."""

from pharmacy_kernel.selectors.invoice_selector import InvoiceSelector
from pharmacy_kernel.selectors.ledger_selector import LedgerSelector
from pharmacy_kernel.selectors.stock_selector import StockConservation, StockSelector

__all__ = [
    "InvoiceSelector",
    "LedgerSelector",
    "StockConservation",
    "StockSelector",
]
