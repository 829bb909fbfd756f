"""
Inventory Kernel

A multi-tenant stock ledger with:
- FIFO / expiration-ordered lot allocation
- Atomic sale transactions (all-or-nothing)
- Append-mostly audit trail of every quantity change
- Single-use reversal of audit entries
- Non-negative inventory under concurrent access
"""

__version__ = "0.1.0"
