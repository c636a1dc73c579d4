"""
Records -- immutable record types of the operations ledger.

Responsibility:
    Define the ten record kinds held by a RecordStore snapshot: hubs,
    customers, products, price history, consignments and their lines,
    sales and their lines, payments, and returns.  Records are plain data;
    relationships are foreign-key ids, never object references.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Frozen dataclasses: a record never changes after construction.
    - Quantities and amounts are non-negative Decimals (clamped by
      ``to_amount`` in ``__post_init__``), whatever the caller passed.
    - Business dates are ``datetime.date`` (parsed by ``parse_iso_date``).
    - ``from_dict`` accepts camelCase or snake_case keys and applies
      defaults, so the engines never guard against missing fields.

Failure modes:
    - InvalidRecordError when a required date cannot be parsed or a return
      type is unknown.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from ledger_kernel.domain.values import ZERO, parse_iso_date, to_amount
from ledger_kernel.exceptions import InvalidRecordError


class ReturnType(str, Enum):
    """Direction of a goods return."""

    CUSTOMER = "Customer Return"       # Credits a customer's balance
    SUPPLIER = "Return to Supplier"    # Reduces hub stock only


class PaymentType(str, Enum):
    """Direction of a customer money movement."""

    PAYMENT = "PAYMENT"  # Received from the customer
    REFUND = "REFUND"    # Paid back to the customer


def camel_case(name: str) -> str:
    """``unit_price_at_return`` -> ``unitPriceAtReturn``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class _Record:
    """Shared load-boundary behaviour for all record types."""

    __slots__ = ()

    COLLECTION: ClassVar[str] = "record"
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ()
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ()
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ()

    def __post_init__(self) -> None:
        self._normalize()

    def _normalize(self) -> None:
        object.__setattr__(self, "id", "" if self.id is None else str(self.id))
        for name in self.TEXT_FIELDS:
            value = getattr(self, name)
            object.__setattr__(self, name, "" if value is None else str(value))
        for name in self.AMOUNT_FIELDS:
            object.__setattr__(self, name, to_amount(getattr(self, name)))
        for name in self.DATE_FIELDS:
            object.__setattr__(
                self, name, parse_iso_date(getattr(self, name), self.COLLECTION, name)
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Any:
        """
        Build a record from a loosely-typed mapping.

        Keys may be snake_case or camelCase.  Absent keys fall back to the
        field default, or to None (which ``__post_init__`` normalises).
        """
        kwargs: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            for key in (f.name, camel_case(f.name)):
                if key in data:
                    kwargs[f.name] = data[key]
                    break
            else:
                if f.default is MISSING and f.default_factory is MISSING:
                    kwargs[f.name] = None
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """camelCase, JSON-safe representation (dates ISO, Decimals as str)."""
        out: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            out[camel_case(f.name)] = value
        return out


@dataclass(frozen=True, slots=True)
class Hub(_Record):
    """A physical stock-holding location."""

    COLLECTION: ClassVar[str] = "hubs"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("name",)

    id: str
    name: str = ""
    address: str | None = None


@dataclass(frozen=True, slots=True)
class Customer(_Record):
    COLLECTION: ClassVar[str] = "customers"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("name", "salutation")

    id: str
    name: str = ""
    salutation: str = "Smt."
    phone: str | None = None
    notes: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.salutation} {self.name}".strip()


@dataclass(frozen=True, slots=True)
class Product(_Record):
    """
    A catalog product.

    Catalog names are bilingual (``"<Tamil> - Coconut Oil"``); ``short_name``
    is the first word of the name, cut at any parenthesised variant, which
    for the bilingual catalog is the Tamil oil name.
    """

    COLLECTION: ClassVar[str] = "products"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("name",)

    id: str
    name: str = ""

    @property
    def short_name(self) -> str:
        words = self.name.split(" (")[0].split()
        return words[0] if words else "Oil"


@dataclass(frozen=True, slots=True)
class PriceHistory(_Record):
    """Unit price of a product effective from ``effective_date`` onward."""

    COLLECTION: ClassVar[str] = "priceHistory"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("product_id",)
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("unit_price",)
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("effective_date",)

    id: str
    product_id: str
    effective_date: date
    unit_price: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class Consignment(_Record):
    """A stock receipt at a hub."""

    COLLECTION: ClassVar[str] = "consignments"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("consignment_no", "to_hub_id")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("transport_cost",)
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("receive_date",)

    id: str
    consignment_no: str
    receive_date: date
    to_hub_id: str
    transport_cost: Decimal = ZERO
    notes: str | None = None
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class ConsignmentLine(_Record):
    COLLECTION: ClassVar[str] = "consignmentLines"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("consignment_id", "product_id")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("qty_l", "unit_price")

    id: str
    consignment_id: str
    product_id: str
    qty_l: Decimal = ZERO
    unit_price: Decimal = ZERO

    @property
    def line_total(self) -> Decimal:
        return self.qty_l * self.unit_price


@dataclass(frozen=True, slots=True)
class Sale(_Record):
    """A customer invoice issued from a hub."""

    COLLECTION: ClassVar[str] = "sales"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("sale_no", "hub_id", "customer_id")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("reimbursement_amount",)
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("sale_date",)

    id: str
    sale_no: str
    sale_date: date
    hub_id: str
    customer_id: str
    reimbursement_amount: Decimal = ZERO
    notes: str | None = None
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class SaleLine(_Record):
    COLLECTION: ClassVar[str] = "saleLines"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("sale_id", "product_id")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("qty_l", "unit_price")

    id: str
    sale_id: str
    product_id: str
    qty_l: Decimal = ZERO
    unit_price: Decimal = ZERO

    @property
    def line_total(self) -> Decimal:
        return self.qty_l * self.unit_price


@dataclass(frozen=True, slots=True)
class Payment(_Record):
    """
    A money movement with a customer.

    Unknown or missing ``type`` values load as PAYMENT.
    """

    COLLECTION: ClassVar[str] = "payments"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("customer_id", "mode")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("amount",)
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("payment_date",)

    id: str
    payment_date: date
    customer_id: str
    amount: Decimal = ZERO
    mode: str = "GPay"
    type: PaymentType = PaymentType.PAYMENT
    reference: str | None = None
    notes: str | None = None
    created_by: str | None = None

    def __post_init__(self) -> None:
        self._normalize()
        try:
            kind = PaymentType(self.type)
        except ValueError:
            kind = PaymentType.__members__.get(str(self.type).upper(), PaymentType.PAYMENT)
        object.__setattr__(self, "type", kind)

    @property
    def is_refund(self) -> bool:
        return self.type is PaymentType.REFUND


@dataclass(frozen=True, slots=True)
class ReturnRecord(_Record):
    """
    Goods returned by a customer, or sent back to the supplier from a hub.

    ``reference_id`` optionally points at the originating sale (customer
    returns) or consignment (supplier returns).
    """

    COLLECTION: ClassVar[str] = "returns"
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("hub_id", "product_id")
    AMOUNT_FIELDS: ClassVar[tuple[str, ...]] = ("qty", "unit_price_at_return")
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("date",)

    id: str
    date: date
    type: ReturnType
    hub_id: str
    product_id: str
    qty: Decimal = ZERO
    unit_price_at_return: Decimal = ZERO
    customer_id: str | None = None
    reference_id: str | None = None
    notes: str | None = None
    created_by: str | None = None

    def __post_init__(self) -> None:
        self._normalize()
        try:
            kind = ReturnType(self.type)
        except ValueError:
            kind = ReturnType.__members__.get(str(self.type).upper())
            if kind is None:
                raise InvalidRecordError(self.COLLECTION, "type", self.type, "unknown return type")
        object.__setattr__(self, "type", kind)

    @property
    def value(self) -> Decimal:
        return self.qty * self.unit_price_at_return

    @property
    def is_customer_return(self) -> bool:
        return self.type is ReturnType.CUSTOMER
