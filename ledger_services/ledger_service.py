"""
ledger_services.ledger_service -- OperationsLedger, the imperative shell.

Responsibility:
    Own the reference to the current RecordStore snapshot for one session,
    gate every mutation on the actor's role, build records with fresh ids
    and pre-filled prices, swap in the copy-on-write result and hand it to
    the snapshot writer.  Read methods delegate to the pure engines with
    "today" taken from the injected Clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ledger_engines (pricing, valuation, receivables, statement,
    dashboard), ledger_kernel.domain.snapshot mutations, access control,
    and an optional SnapshotWriter.

Invariants enforced:
    - Copy-on-write: the held snapshot is replaced, never modified; readers
      holding an older snapshot keep a complete revision.
    - Mutations are admin-only (require_admin before any change).
    - Single writer: a mutation reads the snapshot (references, prices,
      document numbers) and swaps in its result under one hold of an
      internal lock, so concurrent posts never share a document number.
    - Editing a document (sale, consignment, return) keeps its id, number
      and creator; unpriced lines keep the price they were posted at.
    - Engines never read the clock; this class passes ``clock.today()``.

Failure modes:
    - PermissionDeniedError for a non-admin actor.
    - RecordNotFoundError when a mutation references an unknown customer,
      hub, product or sale.
    - InvalidRecordError for a return with qty <= 0 or a document with no
      positive-quantity line.

Usage:
    ledger = OperationsLedger(snapshot, actor, SystemClock(), writer=writer)
    sale = ledger.record_sale("c1", "hub-1", [LineItem("p2", Decimal("30"))])
    ledger.record_sale("c1", "hub-1", [LineItem("p2", 25)], sale_id=sale.id)
    ledger.outstanding("c1")
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

from ledger_engines.dashboard import DashboardSummary, dashboard_summary
from ledger_engines.pricing import latest_price
from ledger_engines.receivables import Settlement, outstanding_balance, suggested_settlement
from ledger_engines.statement import ConsolidatedReport, LedgerEntry, consolidated_report, customer_ledger
from ledger_engines.valuation import ALL_HUBS, InventoryMetrics, inventory_metrics
from ledger_kernel.domain import snapshot as cow
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.records import (
    Consignment,
    ConsignmentLine,
    Customer,
    Hub,
    Payment,
    PaymentType,
    PriceHistory,
    ReturnRecord,
    ReturnType,
    Sale,
    SaleLine,
)
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, to_amount
from ledger_kernel.exceptions import InvalidRecordError, RecordNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.access import Actor, require_admin

if TYPE_CHECKING:
    from ledger_config.schema import LedgerConfig
    from ledger_services.sync_writer import SnapshotWriter

logger = get_logger("services.ledger")

T = TypeVar("T")

Amount = Decimal | int | str


@dataclass(frozen=True)
class LineItem:
    """
    One product line of a sale or consignment being authored.

    ``unit_price`` None means "use the price effective on the document date"
    (or, when editing, the price the line was posted at).
    """

    product_id: str
    qty_l: Amount
    unit_price: Amount | None = None


def _new_id() -> str:
    return str(uuid4())


def _require_customer(store: RecordStore, customer_id: str) -> Customer:
    customer = store.customer(customer_id)
    if customer is None:
        raise RecordNotFoundError("customers", customer_id)
    return customer


def _require_hub(store: RecordStore, hub_id: str) -> Hub:
    hub = store.hub(hub_id)
    if hub is None:
        raise RecordNotFoundError("hubs", hub_id)
    return hub


def _require_product(store: RecordStore, product_id: str) -> None:
    if store.product(product_id) is None:
        raise RecordNotFoundError("products", product_id)


def _priced_lines(
    store: RecordStore,
    items: Iterable[LineItem],
    on: date,
    collection: str,
    posted_prices: Mapping[str, Decimal],
) -> list[tuple[str, Decimal, Decimal]]:
    """(product_id, qty, unit_price) for every positive line."""
    priced = []
    for item in items:
        _require_product(store, item.product_id)
        qty = to_amount(item.qty_l)
        if qty <= 0:
            continue
        if item.unit_price is not None:
            price = to_amount(item.unit_price)
        elif item.product_id in posted_prices:
            price = posted_prices[item.product_id]
        else:
            price = latest_price(store, item.product_id, on)
        priced.append((item.product_id, qty, price))
    if not priced:
        raise InvalidRecordError(collection, "lines", None, "no line with a positive quantity")
    return priced


class OperationsLedger:
    """
    Session-level facade over the snapshot, engines and writer.

    Contract:
        Receives the loaded snapshot, the acting user, a Clock, an optional
        SnapshotWriter and an optional LedgerConfig via constructor
        injection.
    Guarantees:
        - Every successful mutation bumps ``snapshot.revision`` and submits
          the new snapshot to the writer (when one is configured), stamped
          with the acting user.
        - Reads are pure functions of ``snapshot`` and ``clock.today()``.
    Non-goals:
        - Does not authenticate users (Actor is supplied by the caller).
        - Does not resolve concurrent edits across processes (last write
          wins at the persistence layer).
    """

    def __init__(
        self,
        snapshot: RecordStore,
        actor: Actor,
        clock: Clock | None = None,
        writer: SnapshotWriter | None = None,
        config: LedgerConfig | None = None,
    ):
        self._snapshot = snapshot
        self._actor = actor
        self._clock = clock or SystemClock()
        self._writer = writer
        self._config = config
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> RecordStore:
        return self._snapshot

    @property
    def actor(self) -> Actor:
        return self._actor

    @property
    def sync_error(self) -> bool:
        return self._writer is not None and self._writer.sync_error

    def _today(self) -> date:
        return self._clock.today()

    def _announce(self, action: str, after: RecordStore, log_fields: Mapping[str, Any]) -> None:
        with LogContext.bind(
            actor_id=self._actor.user_id,
            snapshot_revision=str(after.revision),
        ):
            logger.info("snapshot_mutated", extra={"action": action, **log_fields})
        if self._writer is not None:
            self._writer.submit(after, updated_by=self._actor.user_id)

    def _apply(
        self,
        action: str,
        change: Callable[[RecordStore], RecordStore],
        **log_fields: Any,
    ) -> RecordStore:
        with self._lock:
            before = self._snapshot
            after = change(before)
            if after is before:
                logger.info("mutation_noop", extra={"action": action, **log_fields})
                return after
            self._snapshot = after
        self._announce(action, after, log_fields)
        return after

    def _post(
        self,
        action: str,
        build: Callable[[RecordStore], tuple[T, RecordStore, dict[str, Any]]],
    ) -> T:
        """Build a record against the current snapshot and swap in the result.

        ``build`` returns (record, new snapshot, log fields) and runs under
        the lock, so everything it reads is the revision it replaces.
        """
        with self._lock:
            record, after, log_fields = build(self._snapshot)
            self._snapshot = after
        self._announce(action, after, log_fields)
        return record

    # -------------------------------------------------------------------------
    # Master data
    # -------------------------------------------------------------------------

    def add_hub(self, name: str, address: str | None = None, hub_id: str | None = None) -> Hub:
        """Create a hub, or update it when ``hub_id`` already exists."""
        require_admin(self._actor, "add_hub")
        hub = Hub(id=hub_id or _new_id(), name=name, address=address)
        self._apply("add_hub", lambda s: cow.upsert_hub(s, hub), hub_id=hub.id)
        return hub

    def save_customer(
        self,
        name: str,
        salutation: str = "Smt.",
        phone: str | None = None,
        notes: str | None = None,
        customer_id: str | None = None,
    ) -> Customer:
        require_admin(self._actor, "save_customer")
        customer = Customer(
            id=customer_id or _new_id(),
            name=name,
            salutation=salutation,
            phone=phone,
            notes=notes,
        )
        self._apply(
            "save_customer", lambda s: cow.upsert_customer(s, customer),
            customer_id=customer.id,
        )
        return customer

    def remove_customer(self, customer_id: str) -> None:
        require_admin(self._actor, "remove_customer")
        self._apply(
            "remove_customer", lambda s: cow.delete_customer(s, customer_id),
            customer_id=customer_id,
        )

    def set_price(
        self,
        product_id: str,
        unit_price: Amount,
        effective_date: date | None = None,
    ) -> PriceHistory:
        """Record a price from ``effective_date`` (default today) onward."""
        require_admin(self._actor, "set_price")
        on = effective_date or self._today()

        def build(store: RecordStore):
            _require_product(store, product_id)
            after = cow.set_price(store, PriceHistory(
                id=_new_id(), product_id=product_id, effective_date=on, unit_price=unit_price,
            ))
            # set_price keeps the id of an entry it replaces
            stored = next(
                e for e in after.price_history
                if e.product_id == product_id and e.effective_date == on
            )
            return stored, after, {"product_id": product_id, "unit_price": str(stored.unit_price)}

        return self._post("set_price", build)

    # -------------------------------------------------------------------------
    # Stock documents
    # -------------------------------------------------------------------------

    def receive_consignment(
        self,
        hub_id: str,
        lines: Iterable[LineItem],
        receive_date: date | None = None,
        transport_cost: Amount | None = None,
        notes: str | None = None,
        consignment_id: str | None = None,
    ) -> Consignment:
        """
        Receive stock at ``hub_id``, or edit the consignment ``consignment_id``.

        Missing unit prices use the price on the receive date.  An edit
        replaces the lines and keeps the consignment number; arguments left
        as None keep the edited consignment's date, transport cost, notes
        and line prices.
        """
        require_admin(self._actor, "receive_consignment")

        def build(store: RecordStore):
            _require_hub(store, hub_id)
            existing = store.consignment(consignment_id) if consignment_id else None
            posted: dict[str, Decimal] = {}
            if existing is not None:
                posted = {
                    line.product_id: line.unit_price
                    for line in store.lines_for_consignment(existing.id)
                }
            on = receive_date or (existing.receive_date if existing else self._today())
            priced = _priced_lines(store, lines, on, "consignments", posted)
            consignment = Consignment(
                id=consignment_id or _new_id(),
                consignment_no=(
                    existing.consignment_no if existing
                    else cow.next_document_number(store, "CON")
                ),
                receive_date=on,
                to_hub_id=hub_id,
                transport_cost=(
                    transport_cost if transport_cost is not None
                    else (existing.transport_cost if existing else ZERO)
                ),
                notes=notes if notes is not None or existing is None else existing.notes,
                created_by=existing.created_by if existing else self._actor.user_id,
            )
            line_records = [
                ConsignmentLine(
                    id=_new_id(),
                    consignment_id=consignment.id,
                    product_id=product_id,
                    qty_l=qty,
                    unit_price=price,
                )
                for product_id, qty, price in priced
            ]
            after = cow.post_consignment(store, consignment, line_records)
            return consignment, after, {
                "consignment_id": consignment.id,
                "consignment_no": consignment.consignment_no,
                "line_count": len(line_records),
                "edited": existing is not None,
            }

        return self._post("receive_consignment", build)

    def remove_consignment(self, consignment_id: str) -> None:
        require_admin(self._actor, "remove_consignment")
        self._apply(
            "remove_consignment", lambda s: cow.delete_consignment(s, consignment_id),
            consignment_id=consignment_id,
        )

    def _warn_oversell(
        self,
        store: RecordStore,
        hub_id: str,
        priced: list[tuple[str, Decimal, Decimal]],
    ) -> None:
        for product_id, qty, _ in priced:
            on_hand = inventory_metrics(store, hub_id, product_id, self._today()).qty
            if qty > on_hand:
                logger.warning("sale_exceeds_stock", extra={
                    "hub_id": hub_id,
                    "product_id": product_id,
                    "requested_qty": str(qty),
                    "on_hand_qty": str(on_hand),
                })

    def record_sale(
        self,
        customer_id: str,
        hub_id: str,
        lines: Iterable[LineItem],
        sale_date: date | None = None,
        reimbursement_amount: Amount | None = None,
        notes: str | None = None,
        sale_id: str | None = None,
    ) -> Sale:
        """
        Invoice ``customer_id`` from ``hub_id``, or edit the sale ``sale_id``.

        Missing unit prices use the price on the sale date; an edited sale
        keeps the price each product was invoiced at.  Selling more than the
        hub holds is allowed (logged as ``sale_exceeds_stock``); valuation
        drops the uncovered quantity.
        """
        require_admin(self._actor, "record_sale")

        def build(store: RecordStore):
            _require_customer(store, customer_id)
            _require_hub(store, hub_id)
            existing = store.sale(sale_id) if sale_id else None
            posted: dict[str, Decimal] = {}
            stock = store
            if existing is not None:
                posted = {line.product_id: line.unit_price for line in store.lines_for_sale(existing.id)}
                stock = cow.delete_sale(store, existing.id)
            on = sale_date or (existing.sale_date if existing else self._today())
            priced = _priced_lines(store, lines, on, "sales", posted)
            self._warn_oversell(stock, hub_id, priced)

            sale = Sale(
                id=sale_id or _new_id(),
                sale_no=existing.sale_no if existing else cow.next_document_number(store, "S"),
                sale_date=on,
                hub_id=hub_id,
                customer_id=customer_id,
                reimbursement_amount=(
                    reimbursement_amount if reimbursement_amount is not None
                    else (existing.reimbursement_amount if existing else ZERO)
                ),
                notes=notes if notes is not None or existing is None else existing.notes,
                created_by=existing.created_by if existing else self._actor.user_id,
            )
            line_records = [
                SaleLine(id=_new_id(), sale_id=sale.id, product_id=product_id, qty_l=qty, unit_price=price)
                for product_id, qty, price in priced
            ]
            after = cow.post_sale(store, sale, line_records)
            return sale, after, {
                "sale_id": sale.id,
                "sale_no": sale.sale_no,
                "line_count": len(line_records),
                "edited": existing is not None,
            }

        with LogContext.bind(customer_id=customer_id):
            return self._post("record_sale", build)

    def remove_sale(self, sale_id: str) -> None:
        require_admin(self._actor, "remove_sale")
        self._apply("remove_sale", lambda s: cow.delete_sale(s, sale_id), sale_id=sale_id)

    # -------------------------------------------------------------------------
    # Money and returns
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        customer_id: str,
        amount: Amount,
        payment_date: date | None = None,
        mode: str = "GPay",
        type: PaymentType = PaymentType.PAYMENT,
        reference: str | None = None,
        notes: str | None = None,
        payment_id: str | None = None,
    ) -> Payment:
        """Record (or, with ``payment_id``, replace) a payment or refund."""
        require_admin(self._actor, "record_payment")
        on = payment_date or self._today()

        def build(store: RecordStore):
            _require_customer(store, customer_id)
            payment = Payment(
                id=payment_id or _new_id(),
                payment_date=on,
                customer_id=customer_id,
                amount=amount,
                mode=mode,
                type=type,
                reference=reference,
                notes=notes,
                created_by=self._actor.user_id,
            )
            return payment, cow.upsert_payment(store, payment), {
                "payment_id": payment.id,
                "payment_type": payment.type.value,
                "amount": str(payment.amount),
            }

        with LogContext.bind(customer_id=customer_id):
            return self._post("record_payment", build)

    def remove_payment(self, payment_id: str) -> None:
        require_admin(self._actor, "remove_payment")
        self._apply(
            "remove_payment", lambda s: cow.delete_payment(s, payment_id),
            payment_id=payment_id,
        )

    @staticmethod
    def _return_price(
        store: RecordStore,
        product_id: str,
        reference_id: str | None,
        on: date,
    ) -> Decimal:
        if reference_id:
            for line in store.lines_for_sale(reference_id):
                if line.product_id == product_id:
                    return line.unit_price
        return latest_price(store, product_id, on)

    def record_return(
        self,
        type: ReturnType,
        hub_id: str,
        product_id: str,
        qty: Amount,
        return_date: date | None = None,
        customer_id: str | None = None,
        reference_id: str | None = None,
        unit_price: Amount | None = None,
        notes: str | None = None,
        return_id: str | None = None,
    ) -> ReturnRecord:
        """
        Book a customer return or a return to the supplier, or edit ``return_id``.

        Without an explicit ``unit_price`` an edited return of the same
        product keeps its price; otherwise a customer return that references
        a sale is valued at that sale's price for the product, and anything
        else at the price effective on the return date.
        """
        require_admin(self._actor, "record_return")
        kind = ReturnType(type)
        amount = to_amount(qty)
        if amount <= 0:
            raise InvalidRecordError("returns", "qty", qty, "return quantity must be positive")

        def build(store: RecordStore):
            _require_hub(store, hub_id)
            _require_product(store, product_id)
            if kind is ReturnType.CUSTOMER:
                if not customer_id:
                    raise InvalidRecordError(
                        "returns", "customer_id", customer_id, "customer return needs a customer",
                    )
                _require_customer(store, customer_id)
            existing = store.return_record(return_id) if return_id else None
            on = return_date or (existing.date if existing else self._today())

            if unit_price is not None:
                price = to_amount(unit_price)
            elif existing is not None and existing.product_id == product_id:
                price = existing.unit_price_at_return
            elif kind is ReturnType.CUSTOMER:
                price = self._return_price(store, product_id, reference_id, on)
            else:
                price = latest_price(store, product_id, on)

            record = ReturnRecord(
                id=return_id or _new_id(),
                date=on,
                type=kind,
                hub_id=hub_id,
                product_id=product_id,
                qty=amount,
                unit_price_at_return=price,
                customer_id=customer_id if kind is ReturnType.CUSTOMER else None,
                reference_id=reference_id,
                notes=notes,
                created_by=existing.created_by if existing else self._actor.user_id,
            )
            return record, cow.upsert_return(store, record), {
                "return_id": record.id,
                "return_type": kind.value,
                "qty": str(amount),
                "edited": existing is not None,
            }

        return self._post("record_return", build)

    def remove_return(self, return_id: str) -> None:
        require_admin(self._actor, "remove_return")
        self._apply(
            "remove_return", lambda s: cow.delete_return(s, return_id),
            return_id=return_id,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def latest_price(self, product_id: str, as_of_date: date | None = None) -> Decimal:
        return latest_price(self._snapshot, product_id, as_of_date or self._today())

    def inventory(self, product_id: str, hub_scope: str = ALL_HUBS) -> InventoryMetrics:
        return inventory_metrics(self._snapshot, hub_scope, product_id, self._today())

    def outstanding(self, customer_id: str) -> Decimal:
        return outstanding_balance(self._snapshot, customer_id)

    def settlement(self, customer_id: str) -> Settlement:
        return suggested_settlement(self._snapshot, customer_id)

    def ledger(self, customer_id: str, newest_first: bool = False) -> tuple[LedgerEntry, ...]:
        return customer_ledger(self._snapshot, customer_id, newest_first=newest_first)

    def report(self) -> ConsolidatedReport:
        if self._config is None:
            return consolidated_report(self._snapshot, self._today())
        reports = self._config.reports
        return consolidated_report(
            self._snapshot,
            self._today(),
            top_client_count=reports.top_client_count,
            recent_consignment_count=reports.recent_consignment_count,
        )

    def dashboard(self, hub_scope: str = ALL_HUBS) -> DashboardSummary:
        if self._config is None:
            return dashboard_summary(self._snapshot, hub_scope, self._today())
        reports = self._config.reports
        return dashboard_summary(
            self._snapshot,
            hub_scope,
            self._today(),
            low_stock_threshold=reports.low_stock_threshold,
            recent_limit=reports.recent_activity_count,
        )
