"""
ledger_engines.receivables -- Customer outstanding balances.

Responsibility:
    Net what each customer owes from sales (debit), payments (credit),
    refunds (debit) and customer returns (credit), and derive the
    receivables total and the settlement pre-fill for the payment form.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Order independence: the balance is a plain sum, so reordering any
      collection does not change it.
    - Sign convention: positive means the customer owes the business.
      A REFUND adds its amount to the balance (it reverses a credit).
    - Supplier returns never touch a customer balance.
    - No rounding; Decimal accumulation.

Failure modes:
    - None raised.  An unknown customer id yields ``Decimal("0")``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.records import PaymentType
from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.domain.values import ZERO, non_negative


@dataclass(frozen=True, slots=True)
class BalanceBreakdown:
    """Components of a customer balance, each non-negative."""

    customer_id: str
    sales: Decimal
    payments: Decimal
    refunds: Decimal
    returns: Decimal

    @property
    def balance(self) -> Decimal:
        return self.sales - self.payments + self.refunds - self.returns


@dataclass(frozen=True, slots=True)
class Settlement:
    """Suggested payment-form values for settling a customer balance."""

    customer_id: str
    amount: Decimal
    type: PaymentType


def balance_breakdown(store: RecordStore, customer_id: str) -> BalanceBreakdown:
    sales = ZERO
    for sale in store.sales_for_customer(customer_id):
        for line in store.lines_for_sale(sale.id):
            sales += non_negative(line.qty_l) * non_negative(line.unit_price)

    payments = ZERO
    refunds = ZERO
    for payment in store.payments_for_customer(customer_id):
        if payment.is_refund:
            refunds += non_negative(payment.amount)
        else:
            payments += non_negative(payment.amount)

    returns = ZERO
    for record in store.customer_returns(customer_id):
        returns += non_negative(record.qty) * non_negative(record.unit_price_at_return)

    return BalanceBreakdown(
        customer_id=customer_id,
        sales=sales,
        payments=payments,
        refunds=refunds,
        returns=returns,
    )


@traced_engine("receivables", "1.0", fingerprint_fields=("customer_id",))
def outstanding_balance(store: RecordStore, customer_id: str) -> Decimal:
    """
    Net amount ``customer_id`` owes: sales - payments + refunds - returns.

    Positive means the customer owes the business; zero or negative means
    settled or in credit.
    """
    return balance_breakdown(store, customer_id).balance


def total_receivables(store: RecordStore) -> Decimal:
    """Sum of positive balances across all customers; credits are ignored."""
    total = ZERO
    for customer in store.customers:
        balance = outstanding_balance(store, customer.id)
        if balance > 0:
            total += balance
    return total


def suggested_settlement(store: RecordStore, customer_id: str) -> Settlement:
    """
    Pre-fill for the payment form.

    A customer in credit (negative balance) is offered a REFUND of the credit;
    anyone else a PAYMENT of the amount due.
    """
    balance = outstanding_balance(store, customer_id)
    return Settlement(
        customer_id=customer_id,
        amount=abs(balance),
        type=PaymentType.REFUND if balance < 0 else PaymentType.PAYMENT,
    )
