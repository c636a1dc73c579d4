"""
Snapshot -- the RecordStore aggregate and its copy-on-write mutations.

Responsibility:
    Hold one immutable revision of every record collection and produce new
    revisions for create/update/delete operations.  Readers (engines,
    reports) always see a complete revision; a mutation never touches the
    snapshot it was given.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Copy-on-write: every mutation returns a new RecordStore with
      ``revision + 1``; the input is never modified (frozen dataclass,
      tuple collections).
    - Unique ids per collection: ``from_dict`` deduplicates with last write
      wins, keeping the position where the id was first seen.
    - Admin usernames are unique ignoring case and surrounding blanks.
    - Parent/line consistency: deleting a sale or consignment removes its
      lines; re-posting a document replaces its previous lines.

Failure modes:
    - ``from_dict`` never raises for a bad record; the record is dropped and
      a ``record_rejected`` warning is logged.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal, TypeVar

from ledger_kernel.domain.records import (
    Consignment,
    ConsignmentLine,
    Customer,
    Hub,
    Payment,
    PriceHistory,
    Product,
    ReturnRecord,
    Sale,
    SaleLine,
    camel_case,
)
from ledger_kernel.exceptions import InvalidRecordError
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.snapshot")

R = TypeVar("R", Hub, Customer, Product, PriceHistory, Consignment,
            ConsignmentLine, Sale, SaleLine, Payment, ReturnRecord)

# (attribute name, record type) in serialisation order
COLLECTIONS: tuple[tuple[str, type], ...] = (
    ("hubs", Hub),
    ("customers", Customer),
    ("products", Product),
    ("price_history", PriceHistory),
    ("consignments", Consignment),
    ("consignment_lines", ConsignmentLine),
    ("sales", Sale),
    ("sale_lines", SaleLine),
    ("payments", Payment),
    ("returns", ReturnRecord),
)


def dedupe_by_id(records: Iterable[R]) -> tuple[R, ...]:
    """Last record with a given id wins; first-seen order is kept."""
    by_id: dict[str, R] = {}
    for record in records:
        if record.id:
            by_id[record.id] = record
    return tuple(by_id.values())


def username_key(username: str) -> str:
    return username.strip().lower()


def dedupe_usernames(usernames: Iterable[Any]) -> tuple[str, ...]:
    """Stripped usernames, first spelling kept; case and blanks never duplicate."""
    by_key: dict[str, str] = {}
    for raw in usernames:
        name = str(raw).strip() if raw is not None else ""
        if name:
            by_key.setdefault(username_key(name), name)
    return tuple(by_key.values())


def _load_collection(record_type: type, raw: Iterable[Mapping[str, Any]] | None) -> tuple:
    records = []
    for item in raw or ():
        try:
            records.append(record_type.from_dict(item))
        except InvalidRecordError as exc:
            logger.warning("record_rejected", extra={
                "collection": exc.collection,
                "field": exc.field,
                "value": str(exc.value),
                "reason": exc.reason,
                "record_id": str(item.get("id")) if isinstance(item, Mapping) else None,
            })
    return dedupe_by_id(records)


@dataclass(frozen=True)
class RecordStore:
    """
    One immutable revision of the ledger's records.

    Contract:
        Passed by reference to every engine; never mutated.  Use the module
        level mutation functions to derive a new revision.
    Guarantees:
        - Every collection is a tuple with unique, non-empty ids.
        - ``revision`` increases by one per mutation.
    Non-goals:
        - Does not enforce referential integrity; engines skip dangling
          references instead.
    """

    hubs: tuple[Hub, ...] = ()
    customers: tuple[Customer, ...] = ()
    products: tuple[Product, ...] = ()
    price_history: tuple[PriceHistory, ...] = ()
    consignments: tuple[Consignment, ...] = ()
    consignment_lines: tuple[ConsignmentLine, ...] = ()
    sales: tuple[Sale, ...] = ()
    sale_lines: tuple[SaleLine, ...] = ()
    payments: tuple[Payment, ...] = ()
    returns: tuple[ReturnRecord, ...] = ()
    admin_usernames: tuple[str, ...] = ()
    revision: int = 0
    _index: dict[str, dict[str, Any]] = field(
        default=None, init=False, repr=False, compare=False, hash=False,  # type: ignore[assignment]
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {})

    # ------------------------------------------------------------------
    # Construction / serialisation
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> RecordStore:
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecordStore:
        """
        Build a snapshot from a plain mapping (persistence or JSON payload).

        Both ``priceHistory`` and ``price_history`` style keys are accepted.
        Duplicate ids are resolved last-write-wins.
        """
        kwargs: dict[str, Any] = {}
        for name, record_type in COLLECTIONS:
            raw = data.get(name, data.get(camel_case(name)))
            kwargs[name] = _load_collection(record_type, raw)
        admins = data.get("admin_usernames", data.get("adminUsernames")) or ()
        kwargs["admin_usernames"] = dedupe_usernames(admins)
        kwargs["revision"] = int(data.get("revision") or 0)
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """camelCase, JSON-safe mapping; the inverse of ``from_dict``."""
        out: dict[str, Any] = {
            camel_case(name): [record.to_dict() for record in getattr(self, name)]
            for name, _ in COLLECTIONS
        }
        out["adminUsernames"] = list(self.admin_usernames)
        out["revision"] = self.revision
        return out

    # ------------------------------------------------------------------
    # Lookups (memoised per revision)
    # ------------------------------------------------------------------

    def _by_id(self, name: str) -> dict[str, Any]:
        index = self._index.get(name)
        if index is None:
            index = {record.id: record for record in getattr(self, name)}
            self._index[name] = index
        return index

    def _grouped(self, name: str, key: str) -> dict[str, tuple]:
        cache_key = f"{name}.{key}"
        groups = self._index.get(cache_key)
        if groups is None:
            building: dict[str, list] = {}
            for record in getattr(self, name):
                building.setdefault(getattr(record, key), []).append(record)
            groups = {k: tuple(v) for k, v in building.items()}
            self._index[cache_key] = groups
        return groups

    def hub(self, hub_id: str) -> Hub | None:
        return self._by_id("hubs").get(hub_id)

    def customer(self, customer_id: str) -> Customer | None:
        return self._by_id("customers").get(customer_id)

    def product(self, product_id: str) -> Product | None:
        return self._by_id("products").get(product_id)

    def consignment(self, consignment_id: str) -> Consignment | None:
        return self._by_id("consignments").get(consignment_id)

    def sale(self, sale_id: str) -> Sale | None:
        return self._by_id("sales").get(sale_id)

    def return_record(self, return_id: str) -> ReturnRecord | None:
        return self._by_id("returns").get(return_id)

    def lines_for_sale(self, sale_id: str) -> tuple[SaleLine, ...]:
        return self._grouped("sale_lines", "sale_id").get(sale_id, ())

    def lines_for_consignment(self, consignment_id: str) -> tuple[ConsignmentLine, ...]:
        return self._grouped("consignment_lines", "consignment_id").get(consignment_id, ())

    def sales_for_customer(self, customer_id: str) -> tuple[Sale, ...]:
        return self._grouped("sales", "customer_id").get(customer_id, ())

    def payments_for_customer(self, customer_id: str) -> tuple[Payment, ...]:
        return self._grouped("payments", "customer_id").get(customer_id, ())

    def customer_returns(self, customer_id: str) -> tuple[ReturnRecord, ...]:
        """Customer-type returns booked against ``customer_id``."""
        return tuple(
            r for r in self._grouped("returns", "customer_id").get(customer_id, ())
            if r.is_customer_return
        )

    def is_admin(self, username: str | None) -> bool:
        if not username:
            return False
        wanted = username_key(username)
        return any(username_key(name) == wanted for name in self.admin_usernames)


# ----------------------------------------------------------------------
# Copy-on-write mutations
# ----------------------------------------------------------------------


def _next(store: RecordStore, **changes: Any) -> RecordStore:
    return replace(store, revision=store.revision + 1, **changes)


def _upsert(records: tuple[R, ...], record: R) -> tuple[R, ...]:
    """Replace in place when the id exists, else append."""
    if any(existing.id == record.id for existing in records):
        return tuple(record if existing.id == record.id else existing for existing in records)
    return records + (record,)


def _without(records: tuple[R, ...], record_id: str) -> tuple[R, ...]:
    return tuple(r for r in records if r.id != record_id)


def upsert_hub(store: RecordStore, hub: Hub) -> RecordStore:
    return _next(store, hubs=_upsert(store.hubs, hub))


def upsert_customer(store: RecordStore, customer: Customer) -> RecordStore:
    return _next(store, customers=_upsert(store.customers, customer))


def delete_customer(store: RecordStore, customer_id: str) -> RecordStore:
    """Remove a customer.  Their sales, payments and returns stay in place."""
    if store.customer(customer_id) is None:
        return store
    return _next(store, customers=_without(store.customers, customer_id))


def upsert_product(store: RecordStore, product: Product) -> RecordStore:
    return _next(store, products=_upsert(store.products, product))


def set_price(store: RecordStore, entry: PriceHistory) -> RecordStore:
    """
    Record a price.

    An existing entry for the same product and effective date is replaced
    (keeping its id), so there is at most one price per (product, date).
    """
    for existing in store.price_history:
        if (
            existing.product_id == entry.product_id
            and existing.effective_date == entry.effective_date
        ):
            updated = replace(entry, id=existing.id)
            return _next(store, price_history=_upsert(store.price_history, updated))
    return _next(store, price_history=_upsert(store.price_history, entry))


def post_consignment(
    store: RecordStore,
    consignment: Consignment,
    lines: Iterable[ConsignmentLine],
) -> RecordStore:
    """Create or replace a consignment together with its lines."""
    new_lines = tuple(
        replace(line, consignment_id=consignment.id)
        for line in lines if line.qty_l > 0
    )
    kept = tuple(l for l in store.consignment_lines if l.consignment_id != consignment.id)
    return _next(
        store,
        consignments=_upsert(store.consignments, consignment),
        consignment_lines=kept + new_lines,
    )


def delete_consignment(store: RecordStore, consignment_id: str) -> RecordStore:
    """Remove a consignment and cascade to its lines."""
    if store.consignment(consignment_id) is None and not store.lines_for_consignment(consignment_id):
        return store
    return _next(
        store,
        consignments=_without(store.consignments, consignment_id),
        consignment_lines=tuple(
            l for l in store.consignment_lines if l.consignment_id != consignment_id
        ),
    )


def post_sale(store: RecordStore, sale: Sale, lines: Iterable[SaleLine]) -> RecordStore:
    """Create or replace a sale together with its lines."""
    new_lines = tuple(
        replace(line, sale_id=sale.id) for line in lines if line.qty_l > 0
    )
    kept = tuple(l for l in store.sale_lines if l.sale_id != sale.id)
    return _next(
        store,
        sales=_upsert(store.sales, sale),
        sale_lines=kept + new_lines,
    )


def delete_sale(store: RecordStore, sale_id: str) -> RecordStore:
    """Remove a sale and cascade to its lines."""
    if store.sale(sale_id) is None and not store.lines_for_sale(sale_id):
        return store
    return _next(
        store,
        sales=_without(store.sales, sale_id),
        sale_lines=tuple(l for l in store.sale_lines if l.sale_id != sale_id),
    )


def upsert_payment(store: RecordStore, payment: Payment) -> RecordStore:
    return _next(store, payments=_upsert(store.payments, payment))


def delete_payment(store: RecordStore, payment_id: str) -> RecordStore:
    if not any(p.id == payment_id for p in store.payments):
        return store
    return _next(store, payments=_without(store.payments, payment_id))


def upsert_return(store: RecordStore, record: ReturnRecord) -> RecordStore:
    return _next(store, returns=_upsert(store.returns, record))


def delete_return(store: RecordStore, return_id: str) -> RecordStore:
    if not any(r.id == return_id for r in store.returns):
        return store
    return _next(store, returns=_without(store.returns, return_id))


def next_document_number(store: RecordStore, kind: Literal["CON", "S"]) -> str:
    """Next consignment (``CON-n``) or sale (``S-n``) number."""
    if kind == "CON":
        return f"CON-{len(store.consignments) + 1}"
    return f"S-{len(store.sales) + 1}"
