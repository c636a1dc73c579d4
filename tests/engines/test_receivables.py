"""
Tests for customer balances.

Covers:
- Sales debit, payments credit, customer returns credit
- REFUND adds to the balance
- Supplier returns and other customers do not affect a balance
- total_receivables ignores credit balances
- Settlement pre-fill direction
"""

from datetime import date
from decimal import Decimal

from ledger_engines.receivables import (
    balance_breakdown,
    outstanding_balance,
    suggested_settlement,
    total_receivables,
)
from ledger_kernel.domain.records import PaymentType
from tests.builders import (
    COCONUT,
    CUSTOMER_X,
    CUSTOMER_Y,
    HUB_A,
    StoreBuilder,
    scenario_a,
)


class TestOutstandingBalance:
    def test_sale_only(self):
        assert outstanding_balance(scenario_a().store, CUSTOMER_X) == Decimal("13500")

    def test_full_payment_settles(self):
        b = scenario_a()
        b.pay(CUSTOMER_X, 13500, date(2025, 1, 15), mode="Cash")

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("0")

    def test_customer_return_credits(self):
        b = scenario_a()
        b.customer_return(CUSTOMER_X, HUB_A, COCONUT, 10, 450, date(2025, 1, 20))

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("9000")

    def test_refund_adds_to_balance(self):
        b = scenario_a()
        b.pay(CUSTOMER_X, 15000, date(2025, 1, 15))
        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("-1500")

        b.refund(CUSTOMER_X, 1500, date(2025, 1, 16))

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("0")

    def test_supplier_return_does_not_touch_balance(self):
        b = scenario_a()
        b.supplier_return(HUB_A, COCONUT, 10, 400, date(2025, 1, 20))

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("13500")

    def test_other_customers_are_isolated(self):
        b = scenario_a()
        b.sell(CUSTOMER_Y, HUB_A, COCONUT, 5, 450, date(2025, 1, 11))

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("13500")
        assert outstanding_balance(b.store, CUSTOMER_Y) == Decimal("2250")

    def test_unknown_customer_is_zero(self):
        assert outstanding_balance(scenario_a().store, "nobody") == Decimal("0")

    def test_multi_line_sale(self):
        b = StoreBuilder()
        b.sell_lines(CUSTOMER_X, HUB_A, [(COCONUT, 2, 450), (COCONUT, "1.5", 400)], date(2025, 1, 1))

        assert outstanding_balance(b.store, CUSTOMER_X) == Decimal("1500.0")


class TestBreakdown:
    def test_components(self):
        b = scenario_a()
        b.pay(CUSTOMER_X, 5000, date(2025, 1, 11))
        b.refund(CUSTOMER_X, 200, date(2025, 1, 12))
        b.customer_return(CUSTOMER_X, HUB_A, COCONUT, 2, 450, date(2025, 1, 13))

        breakdown = balance_breakdown(b.store, CUSTOMER_X)

        assert breakdown.sales == Decimal("13500")
        assert breakdown.payments == Decimal("5000")
        assert breakdown.refunds == Decimal("200")
        assert breakdown.returns == Decimal("900")
        assert breakdown.balance == Decimal("7800")


class TestTotals:
    def test_total_receivables_ignores_credits(self):
        b = scenario_a()
        b.sell(CUSTOMER_Y, HUB_A, COCONUT, 5, 450, date(2025, 1, 11))
        b.pay(CUSTOMER_Y, 5000, date(2025, 1, 12))

        assert total_receivables(b.store) == Decimal("13500")


class TestSettlement:
    def test_amount_due_suggests_payment(self):
        settlement = suggested_settlement(scenario_a().store, CUSTOMER_X)

        assert settlement.type is PaymentType.PAYMENT
        assert settlement.amount == Decimal("13500")

    def test_credit_suggests_refund(self):
        b = scenario_a()
        b.pay(CUSTOMER_X, 14000, date(2025, 1, 15))

        settlement = suggested_settlement(b.store, CUSTOMER_X)

        assert settlement.type is PaymentType.REFUND
        assert settlement.amount == Decimal("500")

    def test_settled_suggests_zero_payment(self):
        b = scenario_a()
        b.pay(CUSTOMER_X, 13500, date(2025, 1, 15))

        settlement = suggested_settlement(b.store, CUSTOMER_X)

        assert settlement.type is PaymentType.PAYMENT
        assert settlement.amount == Decimal("0")
