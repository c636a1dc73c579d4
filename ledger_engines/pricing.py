"""
Module: ledger_engines.pricing
Responsibility:
    Resolve the unit price of a product on a date from its price history.
    Used to pre-fill consignment and sale lines, to value returns that do
    not trace back to a sale, and to build the pricing pivot of the
    consolidated report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The applicable price is the entry with the latest effective date on or
      before the requested date.
    - No qualifying entry resolves to zero (never raises).

Usage:
    from ledger_engines.pricing import latest_price

    price = latest_price(store, "p2", date(2025, 3, 1))
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.records import PriceHistory
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")


def effective_entry(
    store: RecordStore,
    product_id: str,
    as_of_date: date,
) -> PriceHistory | None:
    """The price-history entry in force on ``as_of_date``, if any."""
    best: PriceHistory | None = None
    for entry in store.price_history:
        if entry.product_id != product_id or entry.effective_date > as_of_date:
            continue
        if best is None or entry.effective_date > best.effective_date:
            best = entry
    return best


@traced_engine("pricing", "1.0", fingerprint_fields=("product_id", "as_of_date"))
def latest_price(store: RecordStore, product_id: str, as_of_date: date) -> Decimal:
    """
    Unit price of ``product_id`` effective on ``as_of_date``.

    Postconditions:
        Returns the ``unit_price`` of the latest entry with
        ``effective_date <= as_of_date``, or ``Decimal("0")`` when none exists.
    """
    entry = effective_entry(store, product_id, as_of_date)
    if entry is None:
        logger.debug("price_not_found", extra={
            "product_id": product_id,
            "as_of_date": as_of_date.isoformat(),
        })
        return ZERO
    return entry.unit_price


def price_dates(store: RecordStore) -> tuple[date, ...]:
    """Distinct effective dates across all products, ascending."""
    return tuple(sorted({entry.effective_date for entry in store.price_history}))
