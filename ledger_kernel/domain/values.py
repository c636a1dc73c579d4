"""
Values -- numeric and date normalisation at the load boundary.

Responsibility:
    Convert loosely-typed input (JSON numbers, strings, None) into the two
    primitive types the engines operate on: ``Decimal`` for every quantity
    and amount, ``datetime.date`` for every business date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Quantities and amounts are Decimal, never float.  Floats are converted
      through ``str()`` so ``0.1`` stays ``Decimal("0.1")``.
    - Missing, non-numeric, non-finite, or negative inputs clamp to zero.
    - Dates are zero-padded ISO ``YYYY-MM-DD``; anything else is rejected
      with InvalidRecordError so that date ordering never depends on
      incidental string behaviour.

Failure modes:
    - InvalidRecordError from ``parse_iso_date`` for unparseable dates.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ledger_kernel.exceptions import InvalidRecordError

ZERO = Decimal("0")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")


def to_amount(value: Any) -> Decimal:
    """
    Coerce a raw numeric input to a non-negative Decimal.

    Postconditions:
        - Returns a finite Decimal >= 0.
        - None, "", booleans, unparseable strings, NaN and infinities -> 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount if amount > ZERO else ZERO


def non_negative(value: Decimal) -> Decimal:
    """Clamp an already-typed Decimal at zero."""
    return value if value > ZERO else ZERO


def parse_iso_date(value: Any, collection: str = "record", field: str = "date") -> date:
    """
    Parse a business date.

    Preconditions:
        ``value`` is a ``date``, a ``datetime``, or a zero-padded
        ``YYYY-MM-DD`` string (an optional time suffix is discarded).

    Raises:
        InvalidRecordError: if the value is missing or not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _ISO_DATE.match(value.strip())
        if match:
            year, month, day = (int(part) for part in match.groups())
            try:
                return date(year, month, day)
            except ValueError as exc:
                raise InvalidRecordError(collection, field, value, str(exc)) from exc
    raise InvalidRecordError(collection, field, value, "expected YYYY-MM-DD")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_quantity(value: Decimal) -> str:
    """Render a Decimal without trailing zeros or exponent (``30.50`` -> ``30.5``)."""
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")
