"""Tests for the dashboard summary."""

from datetime import date
from decimal import Decimal

from ledger_engines.dashboard import ActivityKind, dashboard_summary
from ledger_engines.valuation import ALL_HUBS
from tests.builders import (
    COCONUT,
    CUSTOMER_X,
    CUSTOMER_Y,
    GROUNDNUT,
    HUB_A,
    HUB_B,
    StoreBuilder,
    scenario_a,
)

AS_OF = date(2025, 2, 1)


def _store():
    b = scenario_a()
    b.consign(HUB_B, GROUNDNUT, 20, 240, date(2025, 1, 5))
    b.pay(CUSTOMER_X, 13500, date(2025, 1, 15))
    b.sell(CUSTOMER_Y, HUB_B, GROUNDNUT, 5, 260, date(2025, 1, 10))
    return b.store


class TestHeadlineFigures:
    def test_all_hubs(self):
        summary = dashboard_summary(_store(), ALL_HUBS, AS_OF)

        assert summary.total_revenue == Decimal("14800")
        assert summary.total_receivable == Decimal("1300")
        assert summary.total_stock_value == Decimal("28000") + Decimal("3600")
        assert summary.total_production_value == Decimal("40000") + Decimal("4800")
        assert summary.consignment_count == 2
        assert summary.customer_count == 2

    def test_stock_value_follows_hub_scope(self):
        store = _store()

        assert dashboard_summary(store, HUB_A, AS_OF).total_stock_value == Decimal("28000")
        assert dashboard_summary(store, HUB_B, AS_OF).total_stock_value == Decimal("3600")

    def test_other_figures_ignore_hub_scope(self):
        store = _store()
        scoped = dashboard_summary(store, HUB_B, AS_OF)

        assert scoped.total_revenue == Decimal("14800")
        assert scoped.total_production_value == Decimal("44800")


class TestTrends:
    def test_sales_by_date_are_grouped_and_sorted(self):
        b = scenario_a()
        b.sell(CUSTOMER_Y, HUB_A, COCONUT, 1, 450, date(2025, 1, 10))
        b.sell(CUSTOMER_Y, HUB_A, COCONUT, 1, 450, date(2025, 1, 3))

        days = dashboard_summary(b.store, ALL_HUBS, AS_OF).sales_by_date

        assert [(d.date, d.amount) for d in days] == [
            (date(2025, 1, 3), Decimal("450")),
            (date(2025, 1, 10), Decimal("13950")),
        ]

    def test_product_volumes_ranked(self):
        volumes = dashboard_summary(_store(), ALL_HUBS, AS_OF).product_volumes

        assert [v.product_id for v in volumes] == [COCONUT, GROUNDNUT]
        assert volumes[0].volume == Decimal("30")
        assert volumes[0].product_name == "தேங்காய் எண்ணெய்"

    def test_low_stock_alerts_cover_all_hubs(self):
        summary = dashboard_summary(_store(), HUB_A, AS_OF)
        pairs = {(a.product_id, a.hub_id) for a in summary.stock_alerts}

        assert pairs == {(COCONUT, HUB_B), (GROUNDNUT, HUB_A)}

    def test_custom_threshold(self):
        summary = dashboard_summary(_store(), ALL_HUBS, AS_OF, low_stock_threshold=Decimal("100"))

        assert len(summary.stock_alerts) == 4


class TestRecentActivity:
    def test_merged_newest_first(self):
        activity = dashboard_summary(_store(), ALL_HUBS, AS_OF).recent_activity

        assert [a.kind for a in activity] == [
            ActivityKind.PAYMENT,
            ActivityKind.SALE,
            ActivityKind.SALE,
            ActivityKind.BATCH,
            ActivityKind.BATCH,
        ]
        assert activity[0].text == "Credit of ₹13500 received"
        assert activity[1].text == "Invoice S-1 generated"
        assert activity[-1].text == "Batch CON-1 received"

    def test_limit_and_per_stream_cap(self):
        b = StoreBuilder()
        for day in range(1, 6):
            b.consign(HUB_A, COCONUT, 10, 400, date(2025, 1, day))

        activity = dashboard_summary(b.store, ALL_HUBS, AS_OF, recent_limit=10).recent_activity

        assert [a.text for a in activity] == [
            "Batch CON-5 received",
            "Batch CON-4 received",
            "Batch CON-3 received",
        ]
