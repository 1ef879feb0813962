# ui/formatting.py
"""ru-RU display helpers: '1 500,50 ₽', '21.08.2025'."""
import math
from datetime import date
from typing import Optional

from passport_engine.logic.positions import round_half_up
from passport_engine.logic.weeks import parse_date

NBSP = "\u00a0"
RUB = "₽"


def _group_thousands(int_part: str) -> str:
    sign = ""
    if int_part.startswith("-"):
        sign, int_part = "-", int_part[1:]
    groups = []
    while len(int_part) > 3:
        groups.insert(0, int_part[-3:])
        int_part = int_part[:-3]
    groups.insert(0, int_part)
    return sign + NBSP.join(groups)


def format_number(value: Optional[float], decimals: int = 2) -> str:
    """Trailing zero decimals are dropped: 1500 -> '1 500', 1500.5 -> '1 500,5'."""
    value = float(value or 0.0)
    if math.isinf(value):
        return "∞"
    text = f"{value:.{decimals}f}"
    if "." in text:
        int_part, frac = text.split(".")
        frac = frac.rstrip("0")
    else:
        int_part, frac = text, ""
    if int_part in ("-0",) and not frac:
        int_part = "0"
    out = _group_thousands(int_part)
    return f"{out},{frac}" if frac else out


def format_money(value: Optional[float]) -> str:
    return f"{format_number(value, 2)}{NBSP}{RUB}"


def format_money_int(value: Optional[float]) -> str:
    return f"{format_number(round_half_up(float(value or 0.0)), 0)}{NBSP}{RUB}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    if value is not None and math.isinf(value):
        return "∞"
    return f"{format_number(value, decimals)}{NBSP}%"


def format_date(value) -> str:
    d = parse_date(value)
    return d.strftime("%d.%m.%Y") if d else "—"


def format_week(monday) -> str:
    """'08.01' for a week key; used on chart axes."""
    d = parse_date(monday)
    return d.strftime("%d.%m") if d else ""


def format_period(start: Optional[date], end: Optional[date]) -> str:
    return f"{format_date(start)} – {format_date(end)}"


def format_amount_input(value: Optional[float]) -> str:
    """Plain text for an editable amount field: 1500.0 -> '1500', 1500.5 -> '1500.5'."""
    value = float(value or 0.0)
    return str(int(value)) if value.is_integer() else repr(value)
