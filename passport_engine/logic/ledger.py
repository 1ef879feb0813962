"""
Balances derived from the journal (double-entry movements).

account_card: opening / turnover / closing of one account per group (service or client)
over a period. turnover_sheet: debit and credit turnover of every account per service.

Active accounts (receivables, bank) carry a debit balance: debit - credit.
Passive accounts carry a credit balance: credit - debit.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from ..config import ACCOUNT_NAMES, ACTIVE_ACCOUNTS
from .weeks import parse_date

PERIOD_MIN = date(1970, 1, 1)
PERIOD_MAX = date(2099, 12, 31)

NO_SERVICE = "(без услуги)"

DOCUMENT_LABELS = {
    "charge": "Начисление",
    "payment": "Оплата",
    "weekly_recognition": "Признание выручки",
    "cancellation": "Отмена",
    "pause_reversal": "Заморозка (сторно)",
    "charge_resume": "Возобновление",
}


def document_label(document_type: str) -> str:
    return DOCUMENT_LABELS.get(document_type, document_type or "—")


def account_name(code: str) -> str:
    return ACCOUNT_NAMES.get(code, code)


def is_active_account(code: str) -> bool:
    return code in ACTIVE_ACCOUNTS


def account_balance(code: str, debit: float, credit: float) -> float:
    return debit - credit if is_active_account(code) else credit - debit


def balance_side(balance: float, code: str) -> str:
    """'Дт' / 'Кт' / '—' for a closing balance computed with account_balance."""
    if balance == 0:
        return "—"
    debit_side = balance > 0 if is_active_account(code) else balance < 0
    return "Дт" if debit_side else "Кт"


def resolve_period(period_from, period_to) -> tuple:
    return parse_date(period_from) or PERIOD_MIN, parse_date(period_to) or PERIOD_MAX


def by_service(entry) -> str:
    return entry.service_name


def by_client(entry) -> Optional[int]:
    return entry.client_id


@dataclass
class CardRow:
    """
    charged is the side that increases the account balance, paid the side that decreases
    it; for receivables that is debit and credit respectively.
    """

    key: object = None
    label: str = ""
    opening: float = 0.0
    charged: float = 0.0
    paid: float = 0.0
    closing: float = 0.0


@dataclass
class AccountCard:
    account: str
    period_from: date
    period_to: date
    rows: List[CardRow] = field(default_factory=list)
    total: CardRow = field(default_factory=lambda: CardRow(label="Итого"))


def _touches(entry, account: str) -> bool:
    return entry.debit_account_code == account or entry.credit_account_code == account


def _signed(entry, account: str, active: bool) -> float:
    """Movement of `account` caused by entry, positive when the balance grows."""
    amount = float(entry.amount)
    if entry.debit_account_code == account:
        return amount if active else -amount
    return -amount if active else amount


def account_card(
    entries: Iterable,
    account: str = "62",
    period_from=None,
    period_to=None,
    group_by: Callable = by_service,
    labels: Optional[Dict[object, str]] = None,
) -> AccountCard:
    p_from, p_to = resolve_period(period_from, period_to)
    active = is_active_account(account)
    relevant = [e for e in entries if _touches(e, account)]

    groups = sorted({group_by(e) for e in relevant}, key=lambda k: (k is None, k))
    card = AccountCard(account=account, period_from=p_from, period_to=p_to)

    for key in groups:
        own = [e for e in relevant if group_by(e) == key]
        row = CardRow(key=key, label=(labels or {}).get(key, str(key)))

        for e in own:
            if e.entry_date < p_from:
                row.opening += _signed(e, account, active)
            elif e.entry_date <= p_to:
                increases = (e.debit_account_code == account) == active
                if increases:
                    row.charged += float(e.amount)
                else:
                    row.paid += float(e.amount)

        row.closing = row.opening + row.charged - row.paid
        card.rows.append(row)

    for r in card.rows:
        card.total.opening += r.opening
        card.total.charged += r.charged
        card.total.paid += r.paid
        card.total.closing += r.closing
    return card


@dataclass
class Movement:
    entry_date: date
    document: str
    debit_account_code: str
    credit_account_code: str
    amount: float
    document_extra: Optional[str] = None


def card_details(
    entries: Iterable,
    account: str,
    group: object,
    period_from=None,
    period_to=None,
    group_by: Callable = by_service,
) -> List[Movement]:
    """Movements of one account card row inside the period, oldest first."""
    p_from, p_to = resolve_period(period_from, period_to)
    picked = [
        e for e in entries
        if _touches(e, account) and group_by(e) == group and p_from <= e.entry_date <= p_to
    ]
    picked.sort(key=lambda e: e.entry_date)
    return [
        Movement(
            entry_date=e.entry_date,
            document=document_label(e.document_type),
            debit_account_code=e.debit_account_code,
            credit_account_code=e.credit_account_code,
            amount=float(e.amount),
            document_extra=e.document_extra,
        )
        for e in picked
    ]


@dataclass
class TurnoverRow:
    account: str
    debit: float = 0.0
    credit: float = 0.0

    @property
    def name(self) -> str:
        return account_name(self.account)

    @property
    def closing(self) -> float:
        return account_balance(self.account, self.debit, self.credit)

    @property
    def side(self) -> str:
        return balance_side(self.closing, self.account)


@dataclass
class ServiceTurnover:
    service_name: str
    rows: List[TurnoverRow] = field(default_factory=list)

    @property
    def total_debit(self) -> float:
        return sum(r.debit for r in self.rows)

    @property
    def total_credit(self) -> float:
        return sum(r.credit for r in self.rows)


@dataclass
class TurnoverSheet:
    services: List[ServiceTurnover] = field(default_factory=list)

    @property
    def total_debit(self) -> float:
        return sum(s.total_debit for s in self.services)

    @property
    def total_credit(self) -> float:
        return sum(s.total_credit for s in self.services)


def totals_side(total_debit: float, total_credit: float) -> str:
    if total_debit == total_credit:
        return "—"
    return "Дт" if total_debit >= total_credit else "Кт"


def turnover_sheet(entries: Iterable, period_from=None, period_to=None) -> TurnoverSheet:
    """
    Debit / credit turnover per account within each service. Without a period every
    entry is included.
    """
    p_from, p_to = resolve_period(period_from, period_to)
    per_service: Dict[str, Dict[str, TurnoverRow]] = {}

    for e in entries:
        if not (p_from <= e.entry_date <= p_to):
            continue
        accounts = per_service.setdefault(e.service_name or NO_SERVICE, {})
        dt = accounts.setdefault(e.debit_account_code, TurnoverRow(e.debit_account_code))
        dt.debit += float(e.amount)
        kt = accounts.setdefault(e.credit_account_code, TurnoverRow(e.credit_account_code))
        kt.credit += float(e.amount)

    sheet = TurnoverSheet()
    for name in sorted(per_service):
        rows = sorted(per_service[name].values(), key=lambda r: r.account)
        sheet.services.append(ServiceTurnover(service_name=name, rows=rows))
    return sheet
