"""
Pure domain layer.

This module contains the record types and the snapshot aggregate with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.records import (
    Consignment,
    ConsignmentLine,
    Customer,
    Hub,
    Payment,
    PaymentType,
    PriceHistory,
    Product,
    ReturnRecord,
    ReturnType,
    Sale,
    SaleLine,
)
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, parse_iso_date, to_amount

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Consignment",
    "ConsignmentLine",
    "Customer",
    "Hub",
    "Payment",
    "PaymentType",
    "PriceHistory",
    "Product",
    "ReturnRecord",
    "ReturnType",
    "Sale",
    "SaleLine",
    "RecordStore",
    "ZERO",
    "parse_iso_date",
    "to_amount",
]
