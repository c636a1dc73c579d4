"""
ledger_engines.dashboard -- Headline figures for the operations dashboard.

Responsibility:
    Summarise the snapshot for the landing view: revenue, receivables,
    stock and production value, sales trend, product volume ranking,
    low-stock alerts and a short feed of recent activity.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Stock value honours the selected hub scope; every other figure is
      across all hubs.
    - Recent activity takes the last three sales, payments and consignments
      in record order, merges them newest first and keeps ``recent_limit``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_engines.receivables import total_receivables
from ledger_engines.tracer import traced_engine
from ledger_engines.valuation import (
    ALL_HUBS,
    DEFAULT_LOW_STOCK_THRESHOLD,
    StockAlert,
    inventory_metrics,
    stock_alerts,
)
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, format_quantity

# Each activity stream contributes at most this many items before merging.
_ACTIVITY_PER_STREAM = 3


class ActivityKind(str, Enum):
    SALE = "Sale"
    PAYMENT = "Payment"
    BATCH = "Batch"


@dataclass(frozen=True, slots=True)
class Activity:
    kind: ActivityKind
    date: date
    text: str
    source_id: str


@dataclass(frozen=True, slots=True)
class DailySales:
    date: date
    amount: Decimal


@dataclass(frozen=True, slots=True)
class ProductVolume:
    product_id: str
    product_name: str
    volume: Decimal


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    hub_scope: str
    total_revenue: Decimal
    total_receivable: Decimal
    total_stock_value: Decimal
    total_production_value: Decimal
    consignment_count: int
    customer_count: int
    sales_by_date: tuple[DailySales, ...]
    product_volumes: tuple[ProductVolume, ...]
    stock_alerts: tuple[StockAlert, ...]
    recent_activity: tuple[Activity, ...]


def _sales_by_date(store: RecordStore) -> tuple[DailySales, ...]:
    totals: dict[date, Decimal] = {}
    for sale in store.sales:
        amount = sum((line.line_total for line in store.lines_for_sale(sale.id)), ZERO)
        totals[sale.sale_date] = totals.get(sale.sale_date, ZERO) + amount
    return tuple(DailySales(date=day, amount=totals[day]) for day in sorted(totals))


def _product_volumes(store: RecordStore) -> tuple[ProductVolume, ...]:
    volumes = [
        ProductVolume(
            product_id=product.id,
            product_name=product.name.split(" - ")[0],
            volume=sum(
                (line.qty_l for line in store.sale_lines if line.product_id == product.id),
                ZERO,
            ),
        )
        for product in store.products
    ]
    volumes.sort(key=lambda v: v.volume, reverse=True)
    return tuple(volumes)


def _recent_activity(store: RecordStore, limit: int) -> tuple[Activity, ...]:
    n = _ACTIVITY_PER_STREAM
    items = [
        Activity(ActivityKind.SALE, s.sale_date, f"Invoice {s.sale_no} generated", s.id)
        for s in store.sales[-n:]
    ]
    items += [
        Activity(
            ActivityKind.PAYMENT,
            p.payment_date,
            f"Credit of ₹{format_quantity(p.amount)} received",
            p.id,
        )
        for p in store.payments[-n:]
    ]
    items += [
        Activity(ActivityKind.BATCH, c.receive_date, f"Batch {c.consignment_no} received", c.id)
        for c in store.consignments[-n:]
    ]
    items.sort(key=lambda a: a.date, reverse=True)
    return tuple(items[:limit])


@traced_engine(
    "dashboard", "1.0",
    fingerprint_fields=("hub_scope", "as_of_date", "low_stock_threshold", "recent_limit"),
)
def dashboard_summary(
    store: RecordStore,
    hub_scope: str,
    as_of_date: date,
    low_stock_threshold: Decimal = DEFAULT_LOW_STOCK_THRESHOLD,
    recent_limit: int = 5,
) -> DashboardSummary:
    """
    Dashboard figures for ``hub_scope`` (a hub id or ``ALL_HUBS``).

    Low-stock alerts always cover every (product, hub) pair, whatever the
    selected scope.
    """
    stock_value = sum(
        (inventory_metrics(store, hub_scope, p.id, as_of_date).value for p in store.products),
        ZERO,
    )
    return DashboardSummary(
        hub_scope=hub_scope,
        total_revenue=sum((line.line_total for line in store.sale_lines), ZERO),
        total_receivable=total_receivables(store),
        total_stock_value=stock_value,
        total_production_value=sum(
            (line.line_total for line in store.consignment_lines), ZERO
        ),
        consignment_count=len(store.consignments),
        customer_count=len(store.customers),
        sales_by_date=_sales_by_date(store),
        product_volumes=_product_volumes(store),
        stock_alerts=stock_alerts(store, as_of_date, low_stock_threshold),
        recent_activity=_recent_activity(store, recent_limit),
    )


__all__ = [
    "ALL_HUBS",
    "Activity",
    "ActivityKind",
    "DailySales",
    "DashboardSummary",
    "ProductVolume",
    "dashboard_summary",
]
