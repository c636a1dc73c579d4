"""
Property-based tests for the valuation and receivables engines.

Properties checked here:
- Conservation: per scope, on-hand qty is receipts minus consumption,
  floored at zero, and the shortfall is reported as unfilled
- Scope aggregation: with no hub oversold, the all-hubs quantity is the sum
  of the per-hub quantities (and the value too when costs are uniform)
- Order independence: shuffling record collections changes neither the
  balance nor the on-hand quantity and age
- Ledger consistency: the last running balance equals the outstanding
  balance, whatever the mix of sales, payments, refunds and returns
"""

import random
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_engines.receivables import outstanding_balance
from ledger_engines.statement import customer_ledger
from ledger_engines.valuation import ALL_HUBS, inventory_metrics
from ledger_kernel.domain.snapshot import RecordStore
from tests.builders import (
    COCONUT,
    CUSTOMER_X,
    GROUNDNUT,
    HUB_A,
    HUB_B,
    StoreBuilder,
)

START = date(2025, 1, 1)
AS_OF = date(2025, 4, 1)
HUBS = (HUB_A, HUB_B)
PRODUCTS = (COCONUT, GROUNDNUT)

receipts_st = st.lists(
    st.tuples(
        st.sampled_from(HUBS),
        st.sampled_from(PRODUCTS),
        st.integers(min_value=1, max_value=100),
        st.integers(min_value=1, max_value=1000),
        st.integers(min_value=0, max_value=59),
    ),
    max_size=8,
)

draws_st = st.lists(
    st.tuples(
        st.sampled_from(HUBS),
        st.sampled_from(PRODUCTS),
        st.integers(min_value=1, max_value=120),
        st.integers(min_value=0, max_value=59),
    ),
    max_size=8,
)


def _day(offset: int) -> date:
    return START + timedelta(days=offset)


def _build(receipts, sales, supplier_returns=()) -> RecordStore:
    b = StoreBuilder()
    for hub, product, qty, cost, day in receipts:
        b.consign(hub, product, qty, cost, _day(day))
    for hub, product, qty, day in sales:
        b.sell(CUSTOMER_X, hub, product, qty, 450, _day(day))
    for hub, product, qty, day in supplier_returns:
        b.supplier_return(hub, product, qty, 400, _day(day))
    return b.store


def _in_scope(scope: str, hub: str) -> bool:
    return scope == ALL_HUBS or scope == hub


@st.composite
def covered_activity(draw, uniform_cost: bool = False):
    """Receipts plus sales that never exceed what each receipt delivered."""
    receipts = draw(receipts_st.filter(bool))
    if uniform_cost:
        receipts = [(hub, product, qty, 400, day) for hub, product, qty, _, day in receipts]
    sales = []
    for hub, product, qty, _cost, day in receipts:
        sold = draw(st.integers(min_value=0, max_value=qty))
        if sold:
            sales.append((hub, product, sold, day + draw(st.integers(min_value=0, max_value=10))))
    return receipts, sales


class TestConservation:
    @given(receipts=receipts_st, sales=draws_st, supplier_returns=draws_st)
    @settings(max_examples=60, deadline=None)
    def test_qty_is_receipts_minus_consumption(self, receipts, sales, supplier_returns):
        store = _build(receipts, sales, supplier_returns)

        for scope in (HUB_A, HUB_B, ALL_HUBS):
            for product in PRODUCTS:
                received = sum(q for h, p, q, _, _ in receipts if p == product and _in_scope(scope, h))
                consumed = sum(
                    q for h, p, q, _ in list(sales) + list(supplier_returns)
                    if p == product and _in_scope(scope, h)
                )
                metrics = inventory_metrics(store, scope, product, AS_OF)

                assert metrics.qty == Decimal(max(received - consumed, 0))
                assert metrics.unfilled_qty == Decimal(max(consumed - received, 0))
                assert metrics.qty >= 0
                assert metrics.value >= 0
                assert all(layer.remaining_qty >= 0 for layer in metrics.layers)


class TestScopeAggregation:
    @given(activity=covered_activity())
    @settings(max_examples=60, deadline=None)
    def test_all_hubs_qty_is_sum_of_hubs(self, activity):
        store = _build(*activity)

        for product in PRODUCTS:
            total = inventory_metrics(store, ALL_HUBS, product, AS_OF)
            per_hub = [inventory_metrics(store, hub, product, AS_OF) for hub in HUBS]

            assert total.qty == sum((m.qty for m in per_hub), Decimal(0))

    @given(activity=covered_activity(uniform_cost=True))
    @settings(max_examples=40, deadline=None)
    def test_all_hubs_value_is_sum_of_hubs_at_uniform_cost(self, activity):
        store = _build(*activity)

        for product in PRODUCTS:
            total = inventory_metrics(store, ALL_HUBS, product, AS_OF)
            per_hub = [inventory_metrics(store, hub, product, AS_OF) for hub in HUBS]

            assert total.value == sum((m.value for m in per_hub), Decimal(0))


def _shuffled(store: RecordStore, rnd: random.Random) -> RecordStore:
    def shuffle(records):
        items = list(records)
        rnd.shuffle(items)
        return tuple(items)

    return replace(
        store,
        consignments=shuffle(store.consignments),
        consignment_lines=shuffle(store.consignment_lines),
        sales=shuffle(store.sales),
        sale_lines=shuffle(store.sale_lines),
        payments=shuffle(store.payments),
        returns=shuffle(store.returns),
    )


class TestOrderIndependence:
    @given(
        receipts=receipts_st,
        sales=draws_st,
        supplier_returns=draws_st,
        rnd=st.randoms(use_true_random=False),
    )
    @settings(max_examples=50, deadline=None)
    def test_stock_qty_and_age_ignore_record_order(self, receipts, sales, supplier_returns, rnd):
        store = _build(receipts, sales, supplier_returns)
        shuffled = _shuffled(store, rnd)

        for scope in (HUB_A, HUB_B, ALL_HUBS):
            for product in PRODUCTS:
                original = inventory_metrics(store, scope, product, AS_OF)
                reordered = inventory_metrics(shuffled, scope, product, AS_OF)

                assert reordered.qty == original.qty
                assert reordered.age_days == original.age_days

    @given(
        amounts=st.lists(st.integers(min_value=0, max_value=50_000), max_size=6),
        refunds=st.lists(st.integers(min_value=0, max_value=5_000), max_size=3),
        sales=draws_st,
        rnd=st.randoms(use_true_random=False),
    )
    @settings(max_examples=50, deadline=None)
    def test_balance_ignores_record_order(self, amounts, refunds, sales, rnd):
        b = StoreBuilder()
        for hub, product, qty, day in sales:
            b.sell(CUSTOMER_X, hub, product, qty, 450, _day(day))
        for n, amount in enumerate(amounts):
            b.pay(CUSTOMER_X, amount, _day(n))
        for n, amount in enumerate(refunds):
            b.refund(CUSTOMER_X, amount, _day(n))

        assert outstanding_balance(_shuffled(b.store, rnd), CUSTOMER_X) == outstanding_balance(
            b.store, CUSTOMER_X
        )


events_st = st.lists(
    st.one_of(
        st.tuples(st.just("sale"), st.integers(1, 50), st.integers(1, 600), st.integers(0, 30)),
        st.tuples(st.just("payment"), st.integers(0, 20_000), st.just(0), st.integers(0, 30)),
        st.tuples(st.just("refund"), st.integers(0, 5_000), st.just(0), st.integers(0, 30)),
        st.tuples(st.just("return"), st.integers(0, 20), st.integers(1, 600), st.integers(0, 30)),
    ),
    max_size=12,
)


class TestLedgerConsistency:
    @given(events=events_st)
    @settings(max_examples=80, deadline=None)
    def test_last_running_balance_is_outstanding(self, events):
        b = StoreBuilder()
        for kind, amount, price, day in events:
            if kind == "sale":
                b.sell(CUSTOMER_X, HUB_A, COCONUT, amount, price, _day(day))
            elif kind == "payment":
                b.pay(CUSTOMER_X, amount, _day(day))
            elif kind == "refund":
                b.refund(CUSTOMER_X, amount, _day(day))
            else:
                b.customer_return(CUSTOMER_X, HUB_A, COCONUT, amount, price, _day(day))

        ledger = customer_ledger(b.store, CUSTOMER_X)
        balance = outstanding_balance(b.store, CUSTOMER_X)

        if ledger:
            assert ledger[-1].running_balance == balance
            assert [e.date for e in ledger] == sorted(e.date for e in ledger)
            assert customer_ledger(b.store, CUSTOMER_X, newest_first=True)[0] == ledger[-1]
        else:
            assert balance == 0
