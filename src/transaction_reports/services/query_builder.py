"""
Turns request parameters into MongoDB filter documents.

Every report endpoint and the listing endpoint share one month semantics:
the calendar month of `dateOfSale`, in any year unless a reference year is
configured.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from transaction_reports.errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10

MONTH_REQUIRED = "Month parameter is required"

# Largest skip a MongoDB query accepts (signed 64-bit)
MAX_SKIP = 2**63 - 1

_LEADING_INT = re.compile(r"\s*\+?(\d+)", re.ASCII)

# "january" -> 1, "jan" -> 1, ...
_MONTHS: Dict[str, int] = {}
for _n in range(1, 13):
    _MONTHS[calendar.month_name[_n].lower()] = _n
    _MONTHS[calendar.month_abbr[_n].lower()] = _n


@dataclass(frozen=True)
class Pagination:
    page: int
    per_page: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page


def parse_month(value: Optional[str]) -> Optional[int]:
    """
    Month name, abbreviation or number -> 1..12.
    Returns None when the value is absent or blank.
    """
    if value is None or not value.strip():
        return None

    text = value.strip().lower()
    if text.isdecimal():
        # int() refuses very long digit strings
        if len(text) <= 2 and 1 <= int(text) <= 12:
            return int(text)
    elif text in _MONTHS:
        return _MONTHS[text]

    raise ValidationError("Invalid month parameter", detail=f"unrecognised month {value!r}")


def require_month(value: Optional[str]) -> int:
    month = parse_month(value)
    if month is None:
        raise ValidationError(MONTH_REQUIRED)
    return month


def month_filter(month: int, year: Optional[int] = None, timezone: str = "UTC") -> Dict[str, Any]:
    """Predicate selecting records whose dateOfSale falls in `month`."""
    if year is None:
        return {
            "$expr": {
                "$eq": [{"$month": {"date": "$dateOfSale", "timezone": timezone}}, month]
            }
        }

    tz = ZoneInfo(timezone)
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year + 1, 1, 1, tzinfo=tz) if month == 12 else datetime(year, month + 1, 1, tzinfo=tz)
    return {"dateOfSale": {"$gte": start, "$lt": end}}


def search_filter(search: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Case-insensitive substring match on title, description, or the price
    rendered as text. Blank search matches everything (returns None).
    """
    if search is None or not search.strip():
        return None

    pattern = re.escape(search.strip())
    return {
        "$or": [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
            {
                "$expr": {
                    "$regexMatch": {
                        "input": {"$toString": "$price"},
                        "regex": pattern,
                        "options": "i",
                    }
                }
            },
        ]
    }


def combine(*predicates: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    parts: List[Dict[str, Any]] = [p for p in predicates if p]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


def _positive_int(value: Any, default: int, name: str) -> int:
    # Leading digits only: "1.5" -> 1, "20abc" -> 20, "abc" -> default
    match = _LEADING_INT.match("" if value is None else str(value))
    if match is None:
        return default
    try:
        number = int(match.group(1))
    except ValueError as e:
        raise ValidationError(f"Invalid {name} parameter", detail=f"{name} has too many digits") from e
    return number if number > 0 else default


def paginate(page: Any = None, per_page: Any = None, max_per_page: Optional[int] = None) -> Pagination:
    resolved_page = _positive_int(page, DEFAULT_PAGE, "page")
    resolved_per_page = _positive_int(per_page, DEFAULT_PER_PAGE, "perPage")
    if max_per_page is not None:
        resolved_per_page = min(resolved_per_page, max_per_page)
    paging = Pagination(page=resolved_page, per_page=resolved_per_page)
    if paging.skip > MAX_SKIP:
        raise ValidationError("Invalid page parameter", detail=f"page {resolved_page} is out of range")
    if paging.limit > MAX_SKIP:
        raise ValidationError("Invalid perPage parameter", detail=f"perPage {resolved_per_page} is out of range")
    return paging


def listing_query(
    month: Optional[str],
    search: Optional[str],
    year: Optional[int] = None,
    timezone: str = "UTC",
) -> Dict[str, Any]:
    """Filter for /api/transactions: optional month AND optional search."""
    number = parse_month(month)
    by_month = month_filter(number, year, timezone) if number is not None else None
    return combine(by_month, search_filter(search))
