"""
Pharmacy kernel: transactional inventory, billing and ledger engine.

Every operation is tenant-scoped and runs inside a single database
transaction.  Stock, timeline, party ledger, account and invoice state
either all change together or not at all.
"""

__version__ = "0.1.0"
