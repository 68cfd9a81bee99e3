"""
Field Formatters

Functions that turn raw loop values into the strings substituted for
template placeholders. Each FieldType has one formatter.

Usage:
    format_value(loop.sale, FieldType.CURRENCY)   # "$350,000.00"
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from .types import FieldType

logger = logging.getLogger(__name__)

# Type alias for formatter functions
FormatterFunc = Callable[[Any], str]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        value = value.replace('$', '').replace(',', '').strip()
    return Decimal(str(value))


def format_currency(value: Any) -> str:
    """
    Format a number as US currency.

    Examples:
        None -> "$0"
        0 -> "$0"
        1234.5 -> "$1,234.50"
        "500000" -> "$500,000.00"
    """
    if _is_empty(value):
        return "$0"

    try:
        amount = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Could not format as currency: {value}")
        return str(value)

    if amount == 0:
        return "$0"
    return f"${amount:,.2f}"


def format_number(value: Any) -> str:
    """
    Format a number without trailing formatting.

    Examples:
        None -> "0"
        1500.00 -> "1500"
        "2.50" -> "2.5"
    """
    if _is_empty(value):
        return "0"

    try:
        number = float(_to_decimal(value))
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Could not format as number: {value}")
        return str(value)

    if number.is_integer():
        return str(int(number))
    return str(number)


def format_date(value: Any) -> str:
    """
    Format a date as month/day/year.

    Examples:
        None -> ""
        "2026-01-05" -> "1/5/2026"
        date(2026, 12, 31) -> "12/31/2026"
    """
    if _is_empty(value):
        return ""

    if isinstance(value, datetime):
        value = value.date()

    if isinstance(value, str):
        raw = value.strip()
        parsed = None
        for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%Y-%m-%dT%H:%M:%S"):
            try:
                parsed = datetime.strptime(raw[:19], fmt).date()
                break
            except ValueError:
                continue
        if parsed is None:
            logger.warning(f"Could not parse date: {value}")
            return raw
        value = parsed

    if isinstance(value, date):
        return f"{value.month}/{value.day}/{value.year}"

    return str(value)


def format_text(value: Any) -> str:
    """Plain string conversion; None becomes an empty string."""
    if value is None:
        return ""
    return str(value)


FORMATTERS: Dict[FieldType, FormatterFunc] = {
    FieldType.TEXT: format_text,
    FieldType.NUMBER: format_number,
    FieldType.DATE: format_date,
    FieldType.CURRENCY: format_currency,
}


def format_value(value: Any, field_type: Optional[FieldType]) -> str:
    """Format a value per its field type; unknown types fall back to text."""
    formatter = FORMATTERS.get(field_type, format_text)
    return formatter(value)
