"""
Weekly revenue recognition for a single charge.

Service is rendered from the week AFTER the start date: the signup week is an onboarding
week with no recognised revenue. The amount is spread evenly over the Mondays from that
first service week to the week of the end date. A contract shorter than the offset books
its whole amount on the week of its end date.

A week counts as rendered when its Monday is not later than the current week's Monday and
lies strictly before freeze_start (if the charge was ever paused).
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

from .weeks import WEEK, iter_mondays, parse_date, week_monday

logger = logging.getLogger(__name__)


@dataclass
class ChargeAllocation:
    weekly: "OrderedDict[str, float]" = field(default_factory=OrderedDict)
    weeks_in_contract: int = 0
    weeks_rendered: int = 0
    rendered_amount: float = 0.0
    first_monday: Optional[date] = None
    last_monday: Optional[date] = None
    short_contract: bool = False

    @property
    def total(self) -> float:
        return sum(self.weekly.values())


def charge_bounds(charge) -> Optional[Tuple[date, date]]:
    """
    (start, end) for a charge:
      start = start_date, else created_at
      end   = end_date, else start_date, else created_at
    None when neither a start date nor a creation timestamp is known.
    """
    created = parse_date(getattr(charge, "created_at", None))
    start = getattr(charge, "start_date", None) or created
    if start is None:
        return None
    end = getattr(charge, "end_date", None) or getattr(charge, "start_date", None) or created or start
    return start, end


def _is_rendered(monday: date, current_monday: date, freeze_start: Optional[date]) -> bool:
    if monday > current_monday:
        return False
    return freeze_start is None or monday < freeze_start


def allocate_charge(charge, today: Optional[date] = None) -> Optional[ChargeAllocation]:
    """
    Spread charge.amount over its service weeks.

    Returns None when the charge has no usable dates. Zero or negative amounts produce
    the normal week layout with zero per-week amounts.
    """
    bounds = charge_bounds(charge)
    if bounds is None:
        logger.debug("allocate_charge -> charge %s has no dates, skipped", getattr(charge, "id", None))
        return None

    start, end = bounds
    today = today or date.today()
    current_monday = week_monday(today)
    freeze_start = getattr(charge, "freeze_start", None)

    amount = float(getattr(charge, "amount", 0.0) or 0.0)
    if amount <= 0:
        amount = 0.0

    first_monday = week_monday(start) + WEEK
    last_monday = week_monday(end)

    alloc = ChargeAllocation(first_monday=first_monday, last_monday=last_monday)

    if first_monday > last_monday:
        alloc.short_contract = True
        alloc.weekly[last_monday.isoformat()] = amount
        alloc.weeks_in_contract = 1
        if _is_rendered(last_monday, current_monday, freeze_start):
            alloc.weeks_rendered = 1
            alloc.rendered_amount = amount
        return alloc

    mondays = list(iter_mondays(first_monday, last_monday))
    per_week = amount / len(mondays)

    alloc.weeks_in_contract = len(mondays)
    for monday in mondays:
        alloc.weekly[monday.isoformat()] = per_week
        if _is_rendered(monday, current_monday, freeze_start):
            alloc.weeks_rendered += 1
            alloc.rendered_amount += per_week

    return alloc
