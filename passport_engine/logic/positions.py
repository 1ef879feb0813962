"""
Debt / credit position of a client (optionally of one service of a client).

Weeks rendered so far are compared with weeks paid for, where
weeks_paid = total_paid / (total_charged / weeks_in_contract).

The week difference is rounded first (half up) and only then multiplied by the weekly
rate. Reports built on money-first rounding would show different totals.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .allocation import allocate_charge


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


@dataclass
class DebtPosition:
    amount_per_week: float = 0.0
    weeks_paid: float = 0.0
    debt_weeks: int = 0
    client_debt: Optional[float] = None
    operator_debt: Optional[float] = None

    @property
    def kind(self) -> Optional[str]:
        if self.client_debt is not None:
            return "client"
        if self.operator_debt is not None:
            return "operator"
        return None


def debt_position(
    total_charged: float,
    total_paid: float,
    weeks_in_contract: int,
    weeks_rendered: int,
) -> DebtPosition:
    pos = DebtPosition()
    if weeks_in_contract <= 0 or total_charged <= 0:
        return pos

    pos.amount_per_week = total_charged / weeks_in_contract
    pos.weeks_paid = total_paid / pos.amount_per_week

    if weeks_rendered > pos.weeks_paid:
        pos.debt_weeks = round_half_up(weeks_rendered - pos.weeks_paid)
        pos.client_debt = pos.debt_weeks * pos.amount_per_week
    elif pos.weeks_paid > weeks_rendered:
        pos.debt_weeks = round_half_up(pos.weeks_paid - weeks_rendered)
        pos.operator_debt = pos.debt_weeks * pos.amount_per_week
    return pos


@dataclass
class PositionRow:
    key: object = None
    label: str = ""
    charged: float = 0.0
    paid: float = 0.0
    rendered: float = 0.0
    weeks_in_contract: int = 0
    weeks_rendered: int = 0
    position: DebtPosition = field(default_factory=DebtPosition)

    @property
    def to_pay(self) -> float:
        return self.charged - self.paid

    @property
    def client_debt(self) -> Optional[float]:
        return self.position.client_debt

    @property
    def operator_debt(self) -> Optional[float]:
        return self.position.operator_debt

    @property
    def debt_weeks(self) -> int:
        return self.position.debt_weeks


def summarize_position(
    charges: Iterable,
    payments: Iterable,
    today: Optional[date] = None,
    key: object = None,
    label: str = "",
) -> PositionRow:
    """Aggregate allocations of the given charges and compare them with the payments."""
    row = PositionRow(key=key, label=label)
    for c in charges:
        row.charged += float(c.amount or 0.0)
        alloc = allocate_charge(c, today=today)
        if alloc is None:
            continue
        row.weeks_in_contract += alloc.weeks_in_contract
        row.weeks_rendered += alloc.weeks_rendered
        row.rendered += alloc.rendered_amount
    row.paid = sum(float(p.amount or 0.0) for p in payments)
    row.position = debt_position(row.charged, row.paid, row.weeks_in_contract, row.weeks_rendered)
    return row


def unique_services(charges: Iterable) -> List[str]:
    """Service names in first-seen order."""
    seen: Dict[str, None] = {}
    for c in charges:
        seen.setdefault(c.service_name, None)
    return list(seen)


def positions_by_service(
    charges: Sequence,
    payments: Sequence,
    today: Optional[date] = None,
) -> List[PositionRow]:
    """
    One row per service of a client's charges. Payments are matched to the service by
    their service_name.
    """
    rows = []
    for name in unique_services(charges):
        rows.append(
            summarize_position(
                [c for c in charges if c.service_name == name],
                [p for p in payments if p.service_name == name],
                today=today,
                key=name,
                label=name,
            )
        )
    return rows


def positions_by_client(
    charges: Sequence,
    payments: Sequence,
    client_names: Dict[int, str],
    today: Optional[date] = None,
) -> List[PositionRow]:
    client_ids: Dict[int, None] = {}
    for c in charges:
        client_ids.setdefault(c.client_id, None)

    rows = []
    for client_id in client_ids:
        rows.append(
            summarize_position(
                [c for c in charges if c.client_id == client_id],
                [p for p in payments if p.client_id == client_id],
                today=today,
                key=client_id,
                label=client_names.get(client_id, f"Клиент #{client_id}"),
            )
        )
    return rows


@dataclass
class DebtTotals:
    charged: float = 0.0
    paid: float = 0.0
    to_pay: float = 0.0
    rendered: float = 0.0
    debt: float = 0.0


def _totals(rows: Sequence[PositionRow], attr: str) -> DebtTotals:
    t = DebtTotals()
    for r in rows:
        t.charged += r.charged
        t.paid += r.paid
        t.to_pay += r.to_pay
        t.rendered += r.rendered
        t.debt += getattr(r, attr) or 0.0
    return t


def split_debtors(
    rows: Sequence[PositionRow],
) -> Tuple[List[PositionRow], DebtTotals, List[PositionRow], DebtTotals]:
    """
    (rows we owe service to, their totals, rows that owe us, their totals).
    """
    we_owe = [r for r in rows if r.operator_debt is not None and r.operator_debt > 0]
    owe_us = [r for r in rows if r.client_debt is not None and r.client_debt > 0]
    return we_owe, _totals(we_owe, "operator_debt"), owe_us, _totals(owe_us, "client_debt")


@dataclass
class ClientStats:
    charged: float = 0.0
    paid: float = 0.0
    start: Optional[date] = None
    end: Optional[date] = None


def client_list_stats(charges: Iterable, payments: Iterable) -> Dict[int, ClientStats]:
    """Charged / paid totals and the earliest start / latest end per client."""
    stats: Dict[int, ClientStats] = {}
    for c in charges:
        if c.client_id is None:
            continue
        s = stats.setdefault(c.client_id, ClientStats())
        s.charged += float(c.amount or 0.0)
        if c.start_date and (s.start is None or c.start_date < s.start):
            s.start = c.start_date
        if c.end_date and (s.end is None or c.end_date > s.end):
            s.end = c.end_date
    for p in payments:
        if p.client_id is None:
            continue
        stats.setdefault(p.client_id, ClientStats()).paid += float(p.amount or 0.0)
    return stats
