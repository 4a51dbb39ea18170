"""
Zenith Bank

A personal banking ledger with PIN-gated money movement, Decimal
balances, atomic transfers and a hash-chained audit trail.
"""

__version__ = "1.0.0"
