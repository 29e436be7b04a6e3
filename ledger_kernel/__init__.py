"""
Ledger Kernel

A double-entry bookkeeping engine with:
- Chart-of-accounts registry
- Balanced voucher authoring and validation
- Running-balance ledger statements
- Draft / post / cancel / reverse voucher lifecycle
- Trial balance, profit & loss, balance sheet and dashboard reports
- One-time opening-position bootstrap
"""

__version__ = "0.1.0"
