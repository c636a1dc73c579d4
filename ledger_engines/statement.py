"""
ledger_engines.statement -- Customer ledgers and the consolidated report.

Responsibility:
    Merge a customer's sales, payments, refunds and returns into one
    chronological statement with a running balance, and assemble the
    consolidated business report: pricing pivot, global totals, per-client
    summaries with their ledgers, stock matrix and recent consignments.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes pricing, valuation and receivables; owns no state.

Invariants enforced:
    - Ledger consistency: the running balance of the last ascending entry
      equals ``outstanding_balance`` for the same customer.
    - Entries are collected as sales, payments, then returns and sorted
      stably by date, so same-day entries keep that order.
    - Sale lines and returns with zero quantity contribute no rows.
    - Descending output is the ascending walk reversed; balances are always
      computed oldest-first.

Failure modes:
    - None raised.  Unknown products render as "Oil"; an unknown customer
      yields an empty ledger.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_engines.pricing import effective_entry, price_dates
from ledger_engines.receivables import outstanding_balance, total_receivables
from ledger_engines.tracer import traced_engine
from ledger_engines.valuation import ALL_HUBS, StockRow, inventory_metrics, stock_matrix
from ledger_kernel.domain.records import Consignment, ConsignmentLine
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, format_quantity, non_negative
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.statement")

DEFAULT_TOP_CLIENTS = 10
DEFAULT_RECENT_CONSIGNMENTS = 10


class EntryType(str, Enum):
    SALE = "SALE"
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"
    RETURN = "RETURN"


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One statement row."""

    date: date
    type: EntryType
    reference: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    source_id: str


@dataclass(frozen=True, slots=True)
class PricingRow:
    product_id: str
    product_name: str
    # date column -> price effective on that date, None when none yet
    prices: Mapping[date, Decimal | None]


@dataclass(frozen=True, slots=True)
class PricingMatrix:
    """Product x effective-date pivot of the price history."""

    dates: tuple[date, ...]
    rows: tuple[PricingRow, ...]


@dataclass(frozen=True, slots=True)
class ClientSummary:
    customer_id: str
    display_name: str
    balance: Decimal
    total_volume: Decimal
    total_value: Decimal
    product_consumption: Mapping[str, Decimal]
    ledger: tuple[LedgerEntry, ...]


@dataclass(frozen=True, slots=True)
class BusinessTotals:
    total_sold_volume: Decimal
    total_sold_value: Decimal
    total_returned_volume: Decimal
    total_returned_value: Decimal
    net_business_value: Decimal
    total_stock_value: Decimal
    total_stock_qty: Decimal
    total_receivables: Decimal


@dataclass(frozen=True, slots=True)
class RecentConsignment:
    consignment: Consignment
    hub_name: str
    lines: tuple[ConsignmentLine, ...]

    @property
    def total_qty(self) -> Decimal:
        return sum((line.qty_l for line in self.lines), ZERO)

    @property
    def total_value(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)


@dataclass(frozen=True, slots=True)
class ConsolidatedReport:
    """
    The master business report.

    ``clients`` is sorted by ``total_value`` descending; ``top_clients`` is
    its head.
    """

    as_of_date: date
    pricing_matrix: PricingMatrix
    totals: BusinessTotals
    clients: tuple[ClientSummary, ...]
    top_clients: tuple[ClientSummary, ...]
    stock_matrix: tuple[StockRow, ...]
    recent_consignments: tuple[RecentConsignment, ...]


def _short_name(store: RecordStore, product_id: str) -> str:
    product = store.product(product_id)
    return product.short_name if product is not None else "Oil"


def _basket(store: RecordStore, product_id: str, qty: Decimal, rate: Decimal) -> str:
    return f"{_short_name(store, product_id)} ({format_quantity(qty)}L @ ₹{format_quantity(rate)})"


def _unbalanced_entries(store: RecordStore, customer_id: str) -> list[dict]:
    rows: list[dict] = []

    for sale in store.sales_for_customer(customer_id):
        lines = [line for line in store.lines_for_sale(sale.id) if line.qty_l > 0]
        if not lines:
            continue
        rows.append({
            "date": sale.sale_date,
            "type": EntryType.SALE,
            "reference": sale.sale_no,
            "description": ", ".join(
                _basket(store, line.product_id, line.qty_l, line.unit_price) for line in lines
            ),
            "debit": sum(
                (line.qty_l * non_negative(line.unit_price) for line in lines), ZERO
            ),
            "credit": ZERO,
            "source_id": sale.id,
        })

    for payment in store.payments_for_customer(customer_id):
        amount = non_negative(payment.amount)
        if payment.is_refund:
            rows.append({
                "date": payment.payment_date,
                "type": EntryType.REFUND,
                "reference": payment.mode,
                "description": f"Outward Refund ({payment.reference or 'Bank'})",
                "debit": amount,
                "credit": ZERO,
                "source_id": payment.id,
            })
        else:
            rows.append({
                "date": payment.payment_date,
                "type": EntryType.PAYMENT,
                "reference": payment.mode,
                "description": payment.reference or "Bank Transfer",
                "debit": ZERO,
                "credit": amount,
                "source_id": payment.id,
            })

    for record in store.customer_returns(customer_id):
        if record.qty <= 0:
            continue
        rows.append({
            "date": record.date,
            "type": EntryType.RETURN,
            "reference": "Credit",
            "description": "Return: " + _basket(
                store, record.product_id, record.qty, record.unit_price_at_return
            ),
            "debit": ZERO,
            "credit": record.qty * non_negative(record.unit_price_at_return),
            "source_id": record.id,
        })

    return rows


@traced_engine("customer_ledger", "1.0", fingerprint_fields=("customer_id", "newest_first"))
def customer_ledger(
    store: RecordStore,
    customer_id: str,
    newest_first: bool = False,
) -> tuple[LedgerEntry, ...]:
    """
    Chronological statement for ``customer_id`` with a running balance.

    Args:
        newest_first: Reverse the rows for display.  Running balances are
            unaffected; they always reflect the oldest-first walk.
    """
    rows = sorted(_unbalanced_entries(store, customer_id), key=lambda r: r["date"])
    running = ZERO
    entries = []
    for row in rows:
        running += row["debit"] - row["credit"]
        entries.append(LedgerEntry(running_balance=running, **row))
    if newest_first:
        entries.reverse()
    return tuple(entries)


def pricing_matrix(store: RecordStore) -> PricingMatrix:
    dates = price_dates(store)
    rows = []
    for product in store.products:
        prices: dict[date, Decimal | None] = {}
        for column in dates:
            entry = effective_entry(store, product.id, column)
            prices[column] = entry.unit_price if entry is not None else None
        rows.append(PricingRow(product_id=product.id, product_name=product.name, prices=prices))
    return PricingMatrix(dates=dates, rows=tuple(rows))


def client_summary(store: RecordStore, customer_id: str) -> ClientSummary:
    customer = store.customer(customer_id)
    consumption: dict[str, Decimal] = {product.id: ZERO for product in store.products}

    for sale in store.sales_for_customer(customer_id):
        for line in store.lines_for_sale(sale.id):
            if line.qty_l > 0:
                consumption[line.product_id] = consumption.get(line.product_id, ZERO) + line.qty_l
    for record in store.customer_returns(customer_id):
        consumption[record.product_id] = consumption.get(record.product_id, ZERO) - record.qty

    ledger = customer_ledger(store, customer_id)
    purchased = sum((e.debit for e in ledger if e.type is EntryType.SALE), ZERO)
    returned = sum((e.credit for e in ledger if e.type is EntryType.RETURN), ZERO)

    return ClientSummary(
        customer_id=customer_id,
        display_name=customer.display_name if customer is not None else customer_id,
        balance=outstanding_balance(store, customer_id),
        total_volume=sum((qty for qty in consumption.values() if qty > 0), ZERO),
        total_value=purchased - returned,
        product_consumption=consumption,
        ledger=ledger,
    )


def business_totals(store: RecordStore, as_of_date: date) -> BusinessTotals:
    sold_volume = sum((line.qty_l for line in store.sale_lines), ZERO)
    sold_value = sum((line.line_total for line in store.sale_lines), ZERO)
    # every return counts here, supplier returns included
    returned_volume = sum((r.qty for r in store.returns), ZERO)
    returned_value = sum((r.value for r in store.returns), ZERO)

    stock = [inventory_metrics(store, ALL_HUBS, p.id, as_of_date) for p in store.products]

    return BusinessTotals(
        total_sold_volume=sold_volume,
        total_sold_value=sold_value,
        total_returned_volume=returned_volume,
        total_returned_value=returned_value,
        net_business_value=sold_value - returned_value,
        total_stock_value=sum((m.value for m in stock), ZERO),
        total_stock_qty=sum((m.qty for m in stock), ZERO),
        total_receivables=total_receivables(store),
    )


def recent_consignments(store: RecordStore, limit: int) -> tuple[RecentConsignment, ...]:
    latest = sorted(store.consignments, key=lambda c: c.receive_date, reverse=True)[:limit]
    out = []
    for consignment in latest:
        hub = store.hub(consignment.to_hub_id)
        out.append(RecentConsignment(
            consignment=consignment,
            hub_name=hub.name if hub is not None else consignment.to_hub_id,
            lines=store.lines_for_consignment(consignment.id),
        ))
    return tuple(out)


@traced_engine(
    "consolidated_report", "1.0",
    fingerprint_fields=("as_of_date", "top_client_count", "recent_consignment_count"),
)
def consolidated_report(
    store: RecordStore,
    as_of_date: date,
    top_client_count: int = DEFAULT_TOP_CLIENTS,
    recent_consignment_count: int = DEFAULT_RECENT_CONSIGNMENTS,
) -> ConsolidatedReport:
    """
    Build the master report over the whole snapshot.

    Postconditions:
        - ``clients`` covers every customer, sorted by net value descending
          (ties keep customer order).
        - ``totals.total_receivables`` sums positive balances only.
    """
    clients = sorted(
        (client_summary(store, customer.id) for customer in store.customers),
        key=lambda c: c.total_value,
        reverse=True,
    )
    report = ConsolidatedReport(
        as_of_date=as_of_date,
        pricing_matrix=pricing_matrix(store),
        totals=business_totals(store, as_of_date),
        clients=tuple(clients),
        top_clients=tuple(clients[:top_client_count]),
        stock_matrix=stock_matrix(store, as_of_date),
        recent_consignments=recent_consignments(store, recent_consignment_count),
    )
    logger.info("consolidated_report_built", extra={
        "client_count": len(report.clients),
        "product_count": len(report.pricing_matrix.rows),
        "store_revision": store.revision,
    })
    return report
