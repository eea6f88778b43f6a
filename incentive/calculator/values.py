# ==============================================================================
# incentive/calculator/values.py
# ------------------------------------------------------------------------------
# Helpers that turn raw cell values into exact decimals and calendar dates,
# and render decimals back into fixed-point strings.
# ==============================================================================

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import pandas as pd

_ISO_DATE = re.compile(r'^\s*(\d{4})-(\d{1,2})-(\d{1,2})')

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)


def is_missing(value):
    """True for None and for the NaN/NaT placeholders pandas leaves in empty cells."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NA:
        return True
    # pandas.NaT refuses to equal itself.
    try:
        return bool(value != value)
    except (TypeError, ValueError, ArithmeticError):
        return False


def parse_decimal(value):
    """
    Parses a cell value as an exact Decimal.

    Thousands separators are stripped the way the spreadsheets write them.
    Floats go through str() so 0.1 stays 0.1.

    Returns:
        Decimal or None: None when the value is missing or not a finite number.
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    text = str(value).replace(',', '').strip()
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_date(value):
    """
    Reduces a value to a calendar date, ignoring any time-of-day.

    Accepts date and datetime objects (pandas.Timestamp included) and strings
    starting with YYYY-MM-DD. Returns None when no valid date can be read.
    """
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = _ISO_DATE.match(str(value))
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_decimal(value, places=2):
    """Renders a Decimal with a fixed number of places, rounding half up."""
    if not isinstance(value, Decimal) or not value.is_finite():
        value = ZERO
    quantum = Decimal(1).scaleb(-places)
    rendered = value.quantize(quantum, rounding=ROUND_HALF_UP)
    if rendered.is_zero():
        # Avoid "-0.00" for tiny negative inputs.
        rendered = abs(rendered)
    return f'{rendered:.{places}f}'
