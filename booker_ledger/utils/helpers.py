# utils/helpers.py
import calendar
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional, Tuple, Union

NumberLike = Union[float, int, str]
DateLike = Union[date, datetime, str]

_log = logging.getLogger(__name__)


def new_id() -> str:
    """Primary keys are uuid4 strings."""
    return str(uuid.uuid4())


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def now_ts() -> str:
    """Audit timestamp (UTC, ISO 8601 with seconds)."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def to_iso_date(value: DateLike) -> str:
    """
    Normalize a date-ish value to 'YYYY-MM-DD'.

    Accepts date, datetime, or a string that starts with an ISO date
    ('2024-03-01' or '2024-03-01T10:00:00'). Raises ValueError otherwise.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError as e:
        raise ValueError(f"Not an ISO date: {value!r}") from e


def month_bounds(year: int, month: int) -> Tuple[str, str]:
    """Inclusive first/last ISO day of a calendar month."""
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be 1..12, got {month!r}")
    last = calendar.monthrange(int(year), int(month))[1]
    return (
        date(int(year), int(month), 1).isoformat(),
        date(int(year), int(month), last).isoformat(),
    )


def previous_month(year: int, month: int) -> Tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def year_month(iso_date: str) -> Tuple[int, int]:
    d = date.fromisoformat(to_iso_date(iso_date))
    return d.year, d.month


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number with thousands separators and fixed decimals.
    On parse failure returns `sentinel` if given, else str(v).
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"
