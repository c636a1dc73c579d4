"""
ledger_engines.valuation -- FIFO cost-layer replay for on-hand stock.

Responsibility:
    Reconstruct on-hand quantity, cost-basis value and weighted age of a
    product for one hub or for every hub, by replaying consignment receipts,
    sale consumption and supplier returns against batch layers ordered by
    receive date.  Also derives the product x hub stock matrix and low-stock
    alerts used by the dashboard and the consolidated report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Reads a RecordStore snapshot; never mutates it.

Invariants enforced:
    - FIFO: consumption is applied to the oldest remaining layer first;
      layers with equal receive dates keep their record order.
    - Non-negative layers: a consumption never takes more than a layer
      holds; excess consumption is dropped, never carried as negative stock.
    - Consumption order is sales, then supplier returns.  Because FIFO
      remainders depend only on the total consumed, the result is
      independent of the order of records within each collection.
    - age_days is the quantity-weighted mean of per-layer ages (each floored
      at zero) rounded half-up, or 0 when nothing remains.

Failure modes:
    - None raised.  Lines whose consignment or sale is missing are skipped
      (stock is under-counted rather than the call failing).  Excess
      consumption is logged at DEBUG as ``consumption_exceeds_stock``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.records import ReturnType
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, non_negative, round_half_up
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.valuation")

ALL_HUBS = "all"

DEFAULT_LOW_STOCK_THRESHOLD = Decimal("10")


@dataclass(frozen=True, slots=True)
class CostLayer:
    """One consignment line as a batch, after consumption has been applied."""

    consignment_id: str
    line_id: str
    hub_id: str
    receive_date: date
    unit_cost: Decimal
    received_qty: Decimal
    remaining_qty: Decimal

    @property
    def remaining_value(self) -> Decimal:
        return self.remaining_qty * self.unit_cost

    def age_days(self, as_of_date: date) -> int:
        return max(0, (as_of_date - self.receive_date).days)


@dataclass(frozen=True, slots=True)
class InventoryMetrics:
    """
    On-hand position of one product in one hub scope.

    ``layers`` lists every batch in FIFO order, including fully consumed
    ones, so callers can see which receipts the stock is drawn from.
    """

    product_id: str
    hub_scope: str
    qty: Decimal
    value: Decimal
    age_days: int
    layers: tuple[CostLayer, ...] = ()
    unfilled_qty: Decimal = ZERO

    @property
    def open_layers(self) -> tuple[CostLayer, ...]:
        return tuple(layer for layer in self.layers if layer.remaining_qty > 0)


@dataclass(frozen=True, slots=True)
class StockRow:
    """Stock of one product across all hubs and per hub."""

    product_id: str
    product_name: str
    total: InventoryMetrics
    by_hub: Mapping[str, InventoryMetrics]


@dataclass(frozen=True, slots=True)
class StockAlert:
    product_id: str
    product_name: str
    hub_id: str
    hub_name: str
    qty: Decimal


def _in_scope(hub_scope: str, hub_id: str) -> bool:
    return hub_scope == ALL_HUBS or hub_id == hub_scope


def _receipts(store: RecordStore, hub_scope: str, product_id: str) -> list[dict]:
    """Open batches for the product in scope, oldest receipt first."""
    batches = []
    for line in store.consignment_lines:
        if line.product_id != product_id or line.qty_l <= 0:
            continue
        consignment = store.consignment(line.consignment_id)
        if consignment is None or not _in_scope(hub_scope, consignment.to_hub_id):
            continue
        batches.append({
            "consignment_id": consignment.id,
            "line_id": line.id,
            "hub_id": consignment.to_hub_id,
            "receive_date": consignment.receive_date,
            "unit_cost": non_negative(line.unit_price),
            "received_qty": line.qty_l,
            "remaining_qty": line.qty_l,
        })
    # list.sort is stable: equal dates keep record order
    batches.sort(key=lambda b: b["receive_date"])
    return batches


def _consumptions(store: RecordStore, hub_scope: str, product_id: str) -> Iterable[Decimal]:
    """Quantities drawn from stock: sale lines first, then supplier returns."""
    for line in store.sale_lines:
        if line.product_id != product_id:
            continue
        sale = store.sale(line.sale_id)
        if sale is None or not _in_scope(hub_scope, sale.hub_id):
            continue
        yield non_negative(line.qty_l)
    for record in store.returns:
        if (
            record.type is ReturnType.SUPPLIER
            and record.product_id == product_id
            and _in_scope(hub_scope, record.hub_id)
        ):
            yield non_negative(record.qty)


def _consume(batches: list[dict], qty: Decimal) -> Decimal:
    """Deduct ``qty`` oldest-first; returns the part no batch could cover."""
    outstanding = qty
    for batch in batches:
        if outstanding <= 0:
            break
        deduct = min(batch["remaining_qty"], outstanding)
        batch["remaining_qty"] -= deduct
        outstanding -= deduct
    return outstanding


def _weighted_age(layers: Iterable[CostLayer], total_qty: Decimal, as_of_date: date) -> int:
    if total_qty <= 0:
        return 0
    weighted = sum(
        (layer.remaining_qty * layer.age_days(as_of_date) for layer in layers
         if layer.remaining_qty > 0),
        ZERO,
    )
    return round_half_up(weighted / total_qty)


@traced_engine(
    "valuation", "1.0",
    fingerprint_fields=("hub_scope", "product_id", "as_of_date"),
)
def inventory_metrics(
    store: RecordStore,
    hub_scope: str,
    product_id: str,
    as_of_date: date,
) -> InventoryMetrics:
    """
    On-hand quantity, cost value and weighted age of ``product_id``.

    Args:
        store: Snapshot to read.
        hub_scope: A hub id, or ``ALL_HUBS`` for every hub.
        product_id: Product to value.
        as_of_date: "Today" for the age calculation.

    Postconditions:
        - ``qty == sum(receipts) - consumed``, never negative.
        - ``value == sum(remaining_qty * unit_cost)`` over the layers.
    """
    batches = _receipts(store, hub_scope, product_id)

    unfilled = ZERO
    for qty in _consumptions(store, hub_scope, product_id):
        unfilled += _consume(batches, qty)

    if unfilled > 0:
        logger.debug("consumption_exceeds_stock", extra={
            "product_id": product_id,
            "hub_scope": hub_scope,
            "unfilled_qty": str(unfilled),
        })

    layers = tuple(CostLayer(**batch) for batch in batches)
    qty = sum((layer.remaining_qty for layer in layers), ZERO)
    value = sum((layer.remaining_value for layer in layers), ZERO)

    return InventoryMetrics(
        product_id=product_id,
        hub_scope=hub_scope,
        qty=qty,
        value=value,
        age_days=_weighted_age(layers, qty, as_of_date),
        layers=layers,
        unfilled_qty=unfilled,
    )


@traced_engine("stock_matrix", "1.0", fingerprint_fields=("as_of_date",))
def stock_matrix(store: RecordStore, as_of_date: date) -> tuple[StockRow, ...]:
    """Per product (catalog order): consolidated metrics plus one entry per hub."""
    rows = []
    for product in store.products:
        by_hub = {
            hub.id: inventory_metrics(store, hub.id, product.id, as_of_date)
            for hub in store.hubs
        }
        rows.append(StockRow(
            product_id=product.id,
            product_name=product.name,
            total=inventory_metrics(store, ALL_HUBS, product.id, as_of_date),
            by_hub=by_hub,
        ))
    return tuple(rows)


def stock_alerts(
    store: RecordStore,
    as_of_date: date,
    threshold: Decimal = DEFAULT_LOW_STOCK_THRESHOLD,
) -> tuple[StockAlert, ...]:
    """
    Low-stock alerts: every (product, hub) pair holding less than ``threshold``.

    Pairs that never received the product are included (their quantity is 0).
    """
    alerts = []
    for product in store.products:
        for hub in store.hubs:
            metrics = inventory_metrics(store, hub.id, product.id, as_of_date)
            if metrics.qty < threshold:
                alerts.append(StockAlert(
                    product_id=product.id,
                    product_name=product.name,
                    hub_id=hub.id,
                    hub_name=hub.name,
                    qty=metrics.qty,
                ))
    if alerts:
        logger.info("low_stock_detected", extra={
            "alert_count": len(alerts),
            "threshold": str(threshold),
        })
    return tuple(alerts)
