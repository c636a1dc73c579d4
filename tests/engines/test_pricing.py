"""
Tests for price resolution.

Covers:
- Latest entry on or before the date wins
- Dates before the first entry resolve to zero
- Entries for other products are ignored
- Record order does not matter
"""

from datetime import date
from decimal import Decimal

from ledger_engines.pricing import effective_entry, latest_price, price_dates
from tests.builders import COCONUT, GROUNDNUT, StoreBuilder

D1 = date(2025, 1, 1)
D2 = date(2025, 2, 1)
D3 = date(2025, 3, 1)


def _priced() -> StoreBuilder:
    return (
        StoreBuilder()
        .price(COCONUT, D3, 470)
        .price(COCONUT, D1, 400)
        .price(COCONUT, D2, 450)
        .price(GROUNDNUT, D1, 240)
    )


class TestLatestPrice:
    def test_price_on_effective_date(self):
        store = _priced().store
        assert latest_price(store, COCONUT, D1) == Decimal("400")
        assert latest_price(store, COCONUT, D2) == Decimal("450")
        assert latest_price(store, COCONUT, D3) == Decimal("470")

    def test_price_between_dates_uses_earlier_entry(self):
        store = _priced().store
        assert latest_price(store, COCONUT, date(2025, 2, 15)) == Decimal("450")

    def test_price_after_last_entry(self):
        store = _priced().store
        assert latest_price(store, COCONUT, date(2026, 1, 1)) == Decimal("470")

    def test_before_first_entry_is_zero(self, captured_logs):
        store = _priced().store
        assert latest_price(store, COCONUT, date(2024, 12, 31)) == Decimal("0")
        assert any(r["message"] == "price_not_found" for r in captured_logs())

    def test_unknown_product_is_zero(self):
        assert latest_price(_priced().store, "nope", D3) == Decimal("0")

    def test_products_are_independent(self):
        store = _priced().store
        assert latest_price(store, GROUNDNUT, D3) == Decimal("240")

    def test_effective_entry(self):
        entry = effective_entry(_priced().store, COCONUT, D2)
        assert entry is not None
        assert entry.effective_date == D2


class TestPriceDates:
    def test_distinct_ascending(self):
        assert price_dates(_priced().store) == (D1, D2, D3)

    def test_empty(self):
        assert price_dates(StoreBuilder().store) == ()
