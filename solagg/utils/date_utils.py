"""Date normalization for user-supplied day filters."""

from __future__ import annotations

from datetime import datetime

from solagg.core.exceptions import UnsupportedDateFormat

# Tried in order; the first that parses wins (so 07/08/2024 is 7 August).
ACCEPTED_DATE_FORMATS = (
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%SZ",
    "%m/%d/%Y",
    "%d-%m-%Y",
)


def normalize_date(date_str: str) -> str:
    """
    Return the ISO date (YYYY-MM-DD) for any accepted textual date.

    Raises:
        UnsupportedDateFormat: if no accepted format matches.
    """
    text = (date_str or "").strip()
    for fmt in ACCEPTED_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise UnsupportedDateFormat(f"date {date_str!r} is not in a supported format")
