"""
Dashboard aggregates: MRR, churn, active clients, subscription KPIs and the weekly series
behind the bar charts. Everything is recomputed from the charge / payment lists.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .allocation import allocate_charge, charge_bounds
from .positions import round_half_up
from .weeks import (
    WEEK,
    iter_mondays,
    last_n_month_starts,
    month_end,
    month_key,
    month_label,
    week_monday,
)

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = 52 / 12
CHART_PADDING_WEEKS = 4
WINDOW_WEEKS = 25


# ---------- MRR ----------

@dataclass
class ChargeMRR:
    client_id: int
    first_monday: date
    last_monday: date
    num_weeks: int
    amount_per_month: float


def charge_mrr_rows(charges: Iterable) -> List[ChargeMRR]:
    rows = []
    for c in charges:
        alloc = allocate_charge(c)
        if alloc is None:
            continue
        per_month = float(c.amount or 0.0) / alloc.weeks_in_contract * WEEKS_PER_MONTH
        rows.append(
            ChargeMRR(
                client_id=c.client_id,
                first_monday=alloc.first_monday,
                last_monday=alloc.last_monday,
                num_weeks=alloc.weeks_in_contract,
                amount_per_month=per_month,
            )
        )
    return rows


def mrr_for_month(rows: Iterable[ChargeMRR], m_start: date) -> float:
    """Sum of monthly contributions of charges whose service weeks overlap the month."""
    m_end = month_end(m_start)
    return sum(
        r.amount_per_month
        for r in rows
        if r.first_monday <= m_end and r.last_monday >= m_start
    )


def mrr_by_month(charges: Sequence, today: Optional[date] = None, months: int = 12) -> pd.DataFrame:
    today = today or date.today()
    rows = charge_mrr_rows(charges)
    data = [
        {"month_start": m, "label": month_label(m), "mrr": mrr_for_month(rows, m)}
        for m in last_n_month_starts(today, months)
    ]
    return pd.DataFrame(data, columns=["month_start", "label", "mrr"])


# ---------- clients ----------

def active_client_ids(charges: Iterable, today: Optional[date] = None) -> Set[int]:
    """Clients with at least one charge ending today or later."""
    today = today or date.today()
    out = set()
    for c in charges:
        bounds = charge_bounds(c)
        if bounds is not None and bounds[1] >= today:
            out.add(c.client_id)
    return out


def _last_charge_end(charges: Iterable) -> Dict[int, date]:
    last: Dict[int, date] = {}
    for c in charges:
        bounds = charge_bounds(c)
        if bounds is None:
            continue
        end = bounds[1]
        if c.client_id not in last or end > last[c.client_id]:
            last[c.client_id] = end
    return last


def _renewed_after(charges: Sequence, client_id: int, end: date) -> bool:
    return any(
        c.client_id == client_id and c.start_date is not None and c.start_date > end
        for c in charges
    )


@dataclass
class ChurnSummary:
    ended: int = 0
    churned: int = 0

    @property
    def churn_rate(self) -> float:
        return self.churned / self.ended * 100 if self.ended else 0.0

    @property
    def retention_rate(self) -> float:
        return 100 - self.churn_rate if self.ended else 100.0


def churn_summary(charges: Sequence, today: Optional[date] = None) -> ChurnSummary:
    """Among clients whose last period is over, how many did not renew."""
    today = today or date.today()
    summary = ChurnSummary()
    for client_id, last_end in _last_charge_end(charges).items():
        if last_end >= today:
            continue
        summary.ended += 1
        if not _renewed_after(charges, client_id, last_end):
            summary.churned += 1
    return summary


def churn_pct(churned: int, at_risk: int) -> float:
    """Share of at-risk clients that churned, in percent, rounded half up to 0.1."""
    if not at_risk:
        return 0.0
    return round_half_up(churned / at_risk * 1000) / 10


def churn_by_month(charges: Sequence, today: Optional[date] = None, months: int = 12) -> pd.DataFrame:
    """
    Per month: new clients (first service week falls in the month), clients at risk
    (last charge ends in the month), churned (at risk and no charge starting later).
    """
    today = today or date.today()

    first_month: Dict[int, str] = {}
    for c in charges:
        alloc = allocate_charge(c, today=today)
        if alloc is None:
            continue
        key = month_key(week_monday(charge_bounds(c)[0]) + WEEK)
        if c.client_id not in first_month or key < first_month[c.client_id]:
            first_month[c.client_id] = key
    last_end = _last_charge_end(charges)

    data = []
    for m_start in last_n_month_starts(today, months):
        key = month_key(m_start)
        m_end = month_end(m_start)
        new_clients = sum(1 for v in first_month.values() if v == key)
        at_risk = 0
        churned = 0
        for client_id, end in last_end.items():
            if end < m_start or end > m_end:
                continue
            at_risk += 1
            if not _renewed_after(charges, client_id, end):
                churned += 1
        rate = churn_pct(churned, at_risk)
        data.append({
            "key": key,
            "label": month_label(m_start),
            "churn_rate": rate,
            "new_clients": new_clients,
            "churned": churned,
            "at_risk": at_risk,
        })
    return pd.DataFrame(data, columns=["key", "label", "churn_rate", "new_clients", "churned", "at_risk"])


# ---------- KPI cards ----------

def status_churn_rate(v: float) -> str:
    if v < 5:
        return "green"
    if v <= 10:
        return "yellow"
    return "red"


def status_retention_rate(v: float) -> str:
    if v > 85:
        return "green"
    if v >= 70:
        return "yellow"
    return "red"


def status_debt_to_mrr(v: float) -> str:
    if math.isinf(v) or v > 15:
        return "red"
    if v < 5:
        return "green"
    return "yellow"


def status_mrr_growth(v: float) -> str:
    if v > 5:
        return "green"
    if v >= 0:
        return "yellow"
    return "red"


def status_ltv_arpu(v: float) -> str:
    if v >= 12:
        return "green"
    if v >= 6:
        return "yellow"
    return "red"


@dataclass
class SubscriptionMetrics:
    mrr: float = 0.0
    mrr_prev: float = 0.0
    mrr_growth_pct: float = 0.0
    churn_rate: float = 0.0
    retention_rate: float = 100.0
    arpu: float = 0.0
    ltv: float = 0.0
    ltv_arpu: float = 0.0
    active_clients: int = 0
    debt: float = 0.0
    debt_to_mrr_pct: float = 0.0

    def statuses(self) -> Dict[str, Optional[str]]:
        return {
            "mrr": None,
            "mrr_growth": status_mrr_growth(self.mrr_growth_pct),
            "churn": status_churn_rate(self.churn_rate),
            "retention": status_retention_rate(self.retention_rate),
            "arpu": None,
            "ltv": None,
            "ltv_arpu": status_ltv_arpu(self.ltv_arpu) if self.arpu > 0 else None,
            "active_clients": None,
            "debt": status_debt_to_mrr(self.debt_to_mrr_pct),
        }


def subscription_metrics(
    charges: Sequence,
    payments: Sequence,
    today: Optional[date] = None,
) -> SubscriptionMetrics:
    today = today or date.today()
    m = SubscriptionMetrics()

    by_month = mrr_by_month(charges, today=today, months=12)
    m.mrr = float(by_month["mrr"].iloc[-1]) if not by_month.empty else 0.0
    m.mrr_prev = float(by_month["mrr"].iloc[-2]) if len(by_month) >= 2 else 0.0
    m.mrr_growth_pct = (m.mrr - m.mrr_prev) / m.mrr_prev * 100 if m.mrr_prev > 0 else 0.0

    churn = churn_summary(charges, today=today)
    m.churn_rate = churn.churn_rate
    m.retention_rate = churn.retention_rate

    m.active_clients = len(active_client_ids(charges, today=today))
    m.arpu = m.mrr / m.active_clients if m.active_clients else 0.0

    charged_by_client: Dict[int, float] = {}
    for c in charges:
        charged_by_client[c.client_id] = charged_by_client.get(c.client_id, 0.0) + float(c.amount or 0.0)
    m.ltv = sum(charged_by_client.values()) / len(charged_by_client) if charged_by_client else 0.0
    m.ltv_arpu = m.ltv / m.arpu if m.arpu > 0 else 0.0

    total_charged = sum(float(c.amount or 0.0) for c in charges)
    total_paid = sum(float(p.amount or 0.0) for p in payments)
    m.debt = total_charged - total_paid
    if m.mrr > 0:
        m.debt_to_mrr_pct = m.debt / m.mrr * 100
    else:
        m.debt_to_mrr_pct = math.inf if m.debt > 0 else 0.0
    return m


# ---------- weekly series ----------

def _padded_week_keys(data_keys: Iterable[str], today: date) -> List[str]:
    keys = sorted(data_keys)
    current = week_monday(today)
    earliest = date.fromisoformat(keys[0]) if keys else current
    latest = date.fromisoformat(keys[-1]) if keys else current
    earliest = week_monday(earliest - CHART_PADDING_WEEKS * WEEK)
    latest = latest + CHART_PADDING_WEEKS * WEEK
    return [m.isoformat() for m in iter_mondays(earliest, latest)]


def weekly_client_counts(charges: Sequence, today: Optional[date] = None) -> pd.DataFrame:
    """Distinct clients with service in each week."""
    today = today or date.today()
    by_week: Dict[str, Set[int]] = {}
    for c in charges:
        alloc = allocate_charge(c, today=today)
        if alloc is None:
            continue
        for key in alloc.weekly:
            by_week.setdefault(key, set()).add(c.client_id)

    current_key = week_monday(today).isoformat()
    keys = _padded_week_keys(by_week.keys(), today)
    return pd.DataFrame(
        {
            "week": keys,
            "clients": [len(by_week.get(k, ())) for k in keys],
            "is_current": [k == current_key for k in keys],
        },
        columns=["week", "clients", "is_current"],
    )


def weekly_charge_series(
    charges: Sequence,
    payments: Sequence,
    today: Optional[date] = None,
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Weekly allocated amounts for the client chart.

    Returns (frame, services). The frame has one row per week with columns week, total,
    paid, is_future, is_current and one column per service holding that service's share.
    Payments are consumed week by week from the earliest week on, so `paid` shows how far
    the money received so far covers the schedule.
    """
    today = today or date.today()
    services: List[str] = []
    by_week: Dict[str, Dict[str, float]] = {}
    for c in charges:
        alloc = allocate_charge(c, today=today)
        if alloc is None:
            continue
        if c.service_name not in services:
            services.append(c.service_name)
        for key, value in alloc.weekly.items():
            rec = by_week.setdefault(key, {})
            rec[c.service_name] = rec.get(c.service_name, 0.0) + value

    total_paid = sum(float(p.amount or 0.0) for p in payments)
    current_key = week_monday(today).isoformat()

    rows = []
    consumed = 0.0
    for key in _padded_week_keys(by_week.keys(), today):
        split = by_week.get(key, {})
        total = sum(split.values())
        paid = 0.0 if total <= 0 else min(total, max(0.0, total_paid - consumed))
        consumed += paid
        row = {
            "week": key,
            "total": total,
            "paid": paid,
            "is_future": date.fromisoformat(key) > today,
            "is_current": key == current_key,
        }
        for s in services:
            row[s] = split.get(s, 0.0)
        rows.append(row)

    logger.debug("weekly_charge_series -> %d weeks, %d services", len(rows), len(services))
    columns = ["week", "total", "paid", "is_future", "is_current"] + services
    return pd.DataFrame(rows, columns=columns), services


def chart_window(n_weeks: int, current_index: int, size: int = WINDOW_WEEKS) -> Tuple[int, int]:
    """
    Default visible slice [start, end) of a weekly chart: `size` weeks with the current
    week about twelve bars from the left edge.
    """
    size = min(size, n_weeks)
    max_start = max(0, n_weeks - size)
    start = max(0, min(current_index - 12, max_start)) if current_index >= 0 else 0
    return start, start + size


def current_week_index(frame: pd.DataFrame) -> int:
    hits = frame.index[frame["is_current"]].tolist() if not frame.empty else []
    return int(hits[0]) if hits else -1
