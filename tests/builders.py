"""
Snapshot builders for tests.

``StoreBuilder`` wraps the copy-on-write mutation functions so scenarios read
as a sequence of business events.  Ids are deterministic (``con-1``,
``sale-1``, ...) so tests can refer to them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ledger_kernel.domain import snapshot as cow
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

HUB_A = "hub-a"
HUB_B = "hub-b"
COCONUT = "coconut"
GROUNDNUT = "groundnut"
CUSTOMER_X = "cust-x"
CUSTOMER_Y = "cust-y"


def D(value) -> Decimal:
    return Decimal(str(value))


def base_store() -> RecordStore:
    """Two hubs, two products, two customers, no documents."""
    return RecordStore(
        hubs=(Hub(HUB_A, "Hub A", "Chennai"), Hub(HUB_B, "Hub B", "Madurai")),
        customers=(
            Customer(CUSTOMER_X, "Lakshmi", "Smt."),
            Customer(CUSTOMER_Y, "Kumar", "Thiru."),
        ),
        products=(
            Product(COCONUT, "தேங்காய் எண்ணெய் - Coconut Oil"),
            Product(GROUNDNUT, "கடலை எண்ணெய் - Groundnut Oil"),
        ),
    )


class StoreBuilder:
    def __init__(self, store: RecordStore | None = None):
        self.store = store if store is not None else base_store()
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def price(self, product_id: str, on: date, unit_price) -> StoreBuilder:
        entry = PriceHistory(self._next_id("ph"), product_id, on, D(unit_price))
        self.store = cow.set_price(self.store, entry)
        return self

    def consign(
        self,
        hub_id: str,
        product_id: str,
        qty,
        unit_price,
        on: date,
        consignment_id: str | None = None,
    ) -> str:
        cid = consignment_id or self._next_id("con")
        consignment = Consignment(
            id=cid,
            consignment_no=cow.next_document_number(self.store, "CON"),
            receive_date=on,
            to_hub_id=hub_id,
        )
        line = ConsignmentLine(self._next_id("cl"), cid, product_id, D(qty), D(unit_price))
        self.store = cow.post_consignment(self.store, consignment, [line])
        return cid

    def sell(
        self,
        customer_id: str,
        hub_id: str,
        product_id: str,
        qty,
        unit_price,
        on: date,
        sale_id: str | None = None,
    ) -> str:
        return self.sell_lines(customer_id, hub_id, [(product_id, qty, unit_price)], on, sale_id)

    def sell_lines(
        self,
        customer_id: str,
        hub_id: str,
        lines: list[tuple[str, object, object]],
        on: date,
        sale_id: str | None = None,
    ) -> str:
        sid = sale_id or self._next_id("sale")
        sale = Sale(
            id=sid,
            sale_no=cow.next_document_number(self.store, "S"),
            sale_date=on,
            hub_id=hub_id,
            customer_id=customer_id,
        )
        records = [
            SaleLine(self._next_id("sl"), sid, product_id, D(qty), D(price))
            for product_id, qty, price in lines
        ]
        self.store = cow.post_sale(self.store, sale, records)
        return sid

    def pay(self, customer_id: str, amount, on: date, mode: str = "Cash", reference: str | None = None) -> str:
        pid = self._next_id("pay")
        self.store = cow.upsert_payment(self.store, Payment(
            id=pid, payment_date=on, customer_id=customer_id, amount=D(amount),
            mode=mode, type=PaymentType.PAYMENT, reference=reference,
        ))
        return pid

    def refund(self, customer_id: str, amount, on: date, reference: str | None = None) -> str:
        pid = self._next_id("refund")
        self.store = cow.upsert_payment(self.store, Payment(
            id=pid, payment_date=on, customer_id=customer_id, amount=D(amount),
            mode="Bank", type=PaymentType.REFUND, reference=reference,
        ))
        return pid

    def customer_return(
        self,
        customer_id: str,
        hub_id: str,
        product_id: str,
        qty,
        unit_price,
        on: date,
        reference_id: str | None = None,
    ) -> str:
        rid = self._next_id("ret")
        self.store = cow.upsert_return(self.store, ReturnRecord(
            id=rid, date=on, type=ReturnType.CUSTOMER, hub_id=hub_id,
            product_id=product_id, qty=D(qty), unit_price_at_return=D(unit_price),
            customer_id=customer_id, reference_id=reference_id,
        ))
        return rid

    def supplier_return(self, hub_id: str, product_id: str, qty, unit_price, on: date) -> str:
        rid = self._next_id("sret")
        self.store = cow.upsert_return(self.store, ReturnRecord(
            id=rid, date=on, type=ReturnType.SUPPLIER, hub_id=hub_id,
            product_id=product_id, qty=D(qty), unit_price_at_return=D(unit_price),
        ))
        return rid


def scenario_a() -> StoreBuilder:
    """100L coconut @ 400 into Hub A on 2025-01-01; 30L sold @ 450 to X on 2025-01-10."""
    b = StoreBuilder()
    b.consign(HUB_A, COCONUT, 100, 400, date(2025, 1, 1))
    b.sell(CUSTOMER_X, HUB_A, COCONUT, 30, 450, date(2025, 1, 10))
    return b
