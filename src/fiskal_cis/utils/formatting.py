"""
Wire formatting helpers

The authority's schema fixes the textual forms of timestamps, booleans
and amounts; these helpers are the only place they are produced.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

# dd.mm.yyyyThh:mm:ss with a literal T
TIMESTAMP_FORMAT = "%d.%m.%YT%H:%M:%S"
TIMESTAMP_PATTERN = re.compile(r"^\d{2}\.\d{2}\.\d{4}T\d{2}:\d{2}:\d{2}$")

AMOUNT_PATTERN = re.compile(r"^[+-]?\d{1,15}(\.\d{1,2})?$")

TWO_PLACES = Decimal("0.01")


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the authority's timestamp format"""
    return value.strftime(TIMESTAMP_FORMAT)


def normalize_amount(value: Union[str, int, Decimal]) -> str:
    """Replace a ``,`` decimal separator with ``.`` and strip whitespace"""
    return str(value).strip().replace(",", ".")


def format_amount(value: Union[str, int, Decimal]) -> str:
    """
    Render an amount with exactly two decimals and a ``.`` separator

    Halves round away from zero. Raises InvalidOperation for anything
    that is not a finite number.
    """
    amount = value if isinstance(value, Decimal) else Decimal(normalize_amount(value))
    if not amount.is_finite():
        raise InvalidOperation(value)
    return str(amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def format_bool(value: bool) -> str:
    return "true" if value else "false"
