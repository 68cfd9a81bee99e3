# utils.py
"""
Utility functions for the loop management application.
"""

import re
from datetime import date, datetime
from typing import Any, Optional

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = 'America/New_York'


def sanitize_name(text: str) -> str:
    """
    Replace every character outside [A-Za-z0-9] with an underscore.

    Used to build generated document file names:
        "Listing Agreement (v2)" -> "Listing_Agreement__v2_"
    """
    return re.sub(r'[^A-Za-z0-9]', '_', text or '')


def local_today() -> date:
    """Today's date in the configured APP_TIMEZONE."""
    tz_name = DEFAULT_TIMEZONE
    if has_app_context():
        tz_name = current_app.config.get('APP_TIMEZONE', DEFAULT_TIMEZONE)
    return datetime.now(pytz.timezone(tz_name)).date()


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret query-string / form values like 'true', '1', 'yes'."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_int(value: Any) -> Optional[int]:
    """Parse a positive integer, returning None for anything else."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
