"""Shared parsing helpers for request parameters.

parse_datetime_input:  raises ValueError on bad input (callers turn it into a 400)
parse_bool_input:      strict boolean parsing for JSON bodies and query strings
"""
from datetime import date, datetime, time, timezone


def parse_datetime_input(value):
    """Parse a date or datetime string into an aware UTC datetime.

    Returns None for empty input. Supports:
    - YYYY-MM-DD            (midnight UTC)
    - YYYY-MM-DDTHH:MM:SS   (optionally with offset or trailing Z)
    - DD.MM.YYYY            (midnight UTC)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = datetime.strptime(text, "%d.%m.%Y")
            except ValueError as exc:
                raise ValueError(
                    "Invalid date format. Use YYYY-MM-DD, an ISO-8601 datetime or DD.MM.YYYY."
                ) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool_input(value, default=False):
    """Parse JSON booleans and their common string spellings. Raises ValueError otherwise."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(f"Expected a boolean, got {value!r}")
