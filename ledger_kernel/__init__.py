"""
Ledger Kernel - record model and infrastructure for the oil distribution ledger.

A snapshot-based operations ledger with:
- Immutable, copy-on-write record snapshots
- Decimal-only quantities and amounts
- Structured JSON logging
- Typed, coded exceptions
"""

__version__ = "0.1.0"
