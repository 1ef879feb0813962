"""
Calendar helpers shared by every screen.

Weeks start on Monday and are keyed by the ISO date of that Monday ("2024-01-08").
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional

WEEK = timedelta(days=7)


def parse_date(raw) -> Optional[date]:
    """
    Try to parse a date from the formats the backend and the forms produce:
    - already a date / datetime
    - '2025-08-21' (ISO) or an ISO timestamp '2025-08-21T10:15:00+00:00'
    - '21.08.2025', '21-08-2025' or '21/08/2025'

    Returns a `date` or None if parsing fails.
    """
    if raw is None:
        return None

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    if not isinstance(raw, str):
        return None

    raw = raw.strip()
    if not raw:
        return None

    # ISO date, or the date part of an ISO timestamp
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        pass

    for fmt in ("%d.%m.%Y", "%d-%m-%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    return None


def week_monday(d: date) -> date:
    """Monday of the week containing d. Sunday belongs to the week that started six days earlier."""
    if isinstance(d, datetime):
        d = d.date()
    return d - timedelta(days=d.weekday())


def week_key(d: date) -> str:
    return week_monday(d).isoformat()


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def iter_mondays(first: date, last: date) -> Iterator[date]:
    """Every Monday from first to last inclusive (both already Mondays)."""
    cursor = first
    while cursor <= last:
        yield cursor
        cursor += WEEK


def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def month_end(d: date) -> date:
    if d.month == 12:
        return date(d.year, 12, 31)
    return date(d.year, d.month + 1, 1) - timedelta(days=1)


def month_key(d: date) -> str:
    return f"{d.year}-{d.month:02d}"


def shift_months(d: date, months: int) -> date:
    """First day of the month `months` away from d's month."""
    idx = d.year * 12 + (d.month - 1) + months
    return date(idx // 12, idx % 12 + 1, 1)


def last_n_month_starts(today: date, n: int = 12) -> List[date]:
    """Month starts for the last n months, oldest first, ending with today's month."""
    return [shift_months(today, -i) for i in range(n - 1, -1, -1)]


MONTHS_RU = ["янв", "фев", "мар", "апр", "май", "июн", "июл", "авг", "сен", "окт", "ноя", "дек"]


def month_label(d: date) -> str:
    return f"{MONTHS_RU[d.month - 1]} {d.year}"
