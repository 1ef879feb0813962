"""
Charge lifecycle rules used by the client card: display status, form validation,
renewal / switch proposals, cancellation preview and the per-charge action menu.

Nothing here talks to the backend; every check runs before a write is attempted and
raises ValidationError with the message shown to the user.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import DEFAULT_SUBSCRIPTION_DAYS
from ..errors import ValidationError
from ..models import SERVICE_KINDS
from .weeks import add_days, parse_date

STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_PAUSED = "paused"
STATUS_CANCELLED = "cancelled"

STATUS_LABELS = {
    STATUS_UPCOMING: "Запланирована",
    STATUS_ACTIVE: "Активна",
    STATUS_EXPIRED: "Истекла",
    STATUS_PAUSED: "На паузе",
    STATUS_CANCELLED: "Отменена",
}

STATUS_SORT = {
    STATUS_UPCOMING: 0,
    STATUS_ACTIVE: 1,
    STATUS_PAUSED: 2,
    STATUS_EXPIRED: 3,
    STATUS_CANCELLED: 4,
}

SUBSCRIPTION_ONE_TIME = "one-time"
SUBSCRIPTION_PRIMARY = "primary"
SUBSCRIPTION_RENEWAL = "renewal"


def charge_display_status(charge, today: Optional[date] = None) -> str:
    today = today or date.today()
    if charge.status == STATUS_PAUSED:
        return STATUS_PAUSED
    if charge.status == STATUS_CANCELLED:
        return STATUS_CANCELLED
    if charge.end_date and charge.end_date < today:
        return STATUS_EXPIRED
    if charge.start_date and charge.start_date > today:
        return STATUS_UPCOMING
    return STATUS_ACTIVE


def sort_charges_for_display(charges: Iterable, today: Optional[date] = None) -> List:
    """Upcoming, active, paused, expired, cancelled; newest start first inside a status."""
    today = today or date.today()
    by_start = sorted(charges, key=lambda c: c.start_date or date.min, reverse=True)
    return sorted(by_start, key=lambda c: STATUS_SORT.get(charge_display_status(c, today), 5))


def parse_amount(raw) -> Optional[float]:
    """'1 500,50' -> 1500.5. None for empty or non-numeric input."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace("\u00a0", "").replace(" ", "").replace(",", ".")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _missing_fields_error(missing: Sequence[str]) -> ValidationError:
    return ValidationError("Заполните обязательные поля: " + ", ".join(missing), fields=missing)


@dataclass
class ChargeForm:
    service_name: str
    start_date: date
    end_date: date
    amount: float
    comment: Optional[str] = None


def validate_charge_form(service_name, start_date, end_date, amount, comment=None) -> ChargeForm:
    missing = []
    name = (service_name or "").strip()
    start = parse_date(start_date)
    end = parse_date(end_date)
    if not name:
        missing.append("Услуга")
    if start is None:
        missing.append("Начало")
    if end is None:
        missing.append("Конец")
    value = parse_amount(amount)
    if amount is None or str(amount).strip() == "":
        missing.append("Стоимость")
    elif value is None:
        missing.append("Стоимость (число)")
    if missing:
        raise _missing_fields_error(missing)

    if start > end:
        raise ValidationError("Дата начала не может быть позже даты окончания.", fields=["Начало", "Конец"])

    return ChargeForm(
        service_name=name,
        start_date=start,
        end_date=end,
        amount=value,
        comment=(comment or "").strip() or None,
    )


@dataclass
class PaymentForm:
    charge_id: int
    payment_date: date
    amount: float
    comment: Optional[str] = None


def validate_payment_form(charge_id, payment_date, amount, comment=None) -> PaymentForm:
    missing = []
    pay_date = parse_date(payment_date)
    if not charge_id:
        missing.append("Начисление")
    if pay_date is None:
        missing.append("Дата")
    value = parse_amount(amount)
    if amount is None or str(amount).strip() == "":
        missing.append("Сумма")
    elif value is None:
        missing.append("Сумма (число)")
    if missing:
        raise _missing_fields_error(missing)

    return PaymentForm(
        charge_id=int(charge_id),
        payment_date=pay_date,
        amount=value,
        comment=(comment or "").strip() or None,
    )


@dataclass
class ServiceForm:
    name: str
    base_cost: float
    type: str
    duration_days: Optional[int] = None


def validate_service_form(name, cost, kind="one-time", duration_days=None) -> ServiceForm:
    """Empty cost means 0. Subscriptions need a positive duration in days."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise _missing_fields_error(["Название"])

    value = 0.0 if cost is None or str(cost).strip() == "" else parse_amount(cost)
    if value is None or value < 0:
        raise ValidationError("Введите корректную стоимость", fields=["Стоимость"])

    if kind not in SERVICE_KINDS:
        raise ValidationError(f"Неизвестный тип услуги: {kind}", fields=["Тип"])

    duration = None
    if kind == "subscription":
        try:
            duration = int(duration_days) if duration_days not in (None, "") else None
        except (TypeError, ValueError):
            duration = None
        if not duration or duration <= 0:
            raise ValidationError("Укажите длительность подписки в днях", fields=["Длительность"])

    return ServiceForm(name=clean_name, base_cost=value, type=kind, duration_days=duration)


def validate_client_form(name, legal_name=None, manager_id=None) -> dict:
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError("Укажите название клиента", fields=["Название"])
    return {
        "name": clean_name,
        "legal_name": (legal_name or "").strip() or None,
        "manager_id": int(manager_id) if manager_id not in (None, "") else None,
    }


def validate_employee_form(name, position_id=None) -> dict:
    clean_name = (name or "").strip()
    if not clean_name:
        raise _missing_fields_error(["Имя"])
    return {
        "name": clean_name,
        "position_id": int(position_id) if position_id not in (None, "") else None,
    }


# ---------- periods ----------

def _live_charges(charges: Iterable, service_name: str, exclude_id=None) -> List:
    return [
        c for c in charges
        if c.service_name == service_name and c.status != STATUS_CANCELLED and c.id != exclude_id
    ]


def latest_end_date(charges: Iterable) -> Optional[date]:
    ends = [c.end_date for c in charges if c.end_date]
    return max(ends) if ends else None


def check_period_overlap(
    charges: Sequence,
    service_name: str,
    start: date,
    end: date,
    exclude_id=None,
) -> None:
    """
    Raise ValidationError when [start, end] overlaps a non-cancelled period of the same
    service. Periods that only touch at a boundary day do not overlap.
    """
    same = _live_charges(charges, service_name, exclude_id=exclude_id)
    overlap = any(
        c.start_date and c.end_date and start < c.end_date and end > c.start_date
        for c in same
    )
    if not overlap:
        return

    message = "Период пересекается с уже существующим начислением."
    latest = latest_end_date(same)
    if latest is not None:
        message += f" Ближайшая доступная дата начала: {add_days(latest, 1).strftime('%d.%m.%Y')}."
    raise ValidationError(message, fields=["Начало", "Конец"])


def infer_subscription_type(service, charges: Iterable, service_name: str) -> str:
    if service is not None and service.type == SUBSCRIPTION_ONE_TIME:
        return SUBSCRIPTION_ONE_TIME
    if _live_charges(charges, service_name):
        return SUBSCRIPTION_RENEWAL
    return SUBSCRIPTION_PRIMARY


def find_other_active_subscription(charges: Iterable, service_name: str):
    """A live subscription charge on a different service, or None."""
    for c in charges:
        if (
            c.service_name != service_name
            and c.status != STATUS_CANCELLED
            and c.subscription_type is not None
            and c.subscription_type != SUBSCRIPTION_ONE_TIME
        ):
            return c
    return None


def duration_of(service) -> int:
    if service is not None and service.duration_days:
        return int(service.duration_days)
    return DEFAULT_SUBSCRIPTION_DAYS


def default_end_date(start, service) -> Optional[date]:
    """start + service duration, or None when the service has no duration."""
    start = parse_date(start)
    if start is None or service is None or not service.duration_days:
        return None
    return add_days(start, int(service.duration_days))


def propose_switch_period(
    charges: Sequence,
    existing_service_name: str,
    duration_days: Optional[int] = None,
) -> Optional[Tuple[date, date]]:
    """
    Period of a new subscription that replaces the current one: it starts the day after
    the current service's latest period ends.
    """
    latest = latest_end_date(_live_charges(charges, existing_service_name))
    if latest is None:
        return None
    start = add_days(latest, 1)
    return start, add_days(start, duration_days or DEFAULT_SUBSCRIPTION_DAYS)


@dataclass
class RenewalProposal:
    service_name: str
    start_date: Optional[date]
    end_date: Optional[date]
    amount: float


def propose_renewal(charge, charges: Sequence, services: Iterable) -> RenewalProposal:
    """Next period for the charge's service, same amount."""
    service = next((s for s in services if s.name == charge.service_name), None)
    latest = latest_end_date(_live_charges(charges, charge.service_name))
    start = add_days(latest, 1) if latest else None
    end = add_days(start, duration_of(service)) if start else None
    return RenewalProposal(
        service_name=charge.service_name,
        start_date=start,
        end_date=end,
        amount=float(charge.amount or 0.0),
    )


# ---------- cancellation ----------

def validate_cancel_date(charge, cancel_date) -> date:
    when = parse_date(cancel_date)
    if when is None:
        raise _missing_fields_error(["Дата отмены"])
    if charge.end_date and when > charge.end_date:
        raise ValidationError("Дата отмены не может быть позже даты окончания начисления.", fields=["Дата отмены"])
    return when


@dataclass
class CancellationPreview:
    total_days: int
    earned_days: int
    earned: float
    unearned: float


def cancellation_preview(charge, cancel_date) -> Optional[CancellationPreview]:
    """
    Informational split of the charge into the part already provided and the part to be
    reversed, by elapsed days. The accounting itself is done by the cancel procedure.
    """
    when = parse_date(cancel_date)
    if charge.start_date is None or charge.end_date is None or when is None:
        return None

    total_days = max(1, (charge.end_date - charge.start_date).days + 1)
    earned_days = max(0, min((when - charge.start_date).days + 1, total_days))
    amount = float(charge.amount or 0.0)
    earned = round(amount * earned_days / total_days, 2)
    return CancellationPreview(
        total_days=total_days,
        earned_days=earned_days,
        earned=earned,
        unearned=amount - earned,
    )


ACTION_RENEW = "renew"
ACTION_RESUME = "resume"
ACTION_EDIT = "edit"
ACTION_PAUSE = "pause"
ACTION_CANCEL = "cancel"
ACTION_DELETE = "delete"

ACTION_LABELS = {
    ACTION_RENEW: "Продлить",
    ACTION_RESUME: "Возобновить",
    ACTION_EDIT: "Изменить",
    ACTION_PAUSE: "Приостановить",
    ACTION_CANCEL: "Отменить услугу",
    ACTION_DELETE: "Удалить запись",
}


def available_actions(charge, today: Optional[date] = None) -> List[str]:
    status = charge_display_status(charge, today)
    actions = []
    if status in (STATUS_ACTIVE, STATUS_EXPIRED, STATUS_PAUSED) and charge.subscription_type != SUBSCRIPTION_ONE_TIME:
        actions.append(ACTION_RENEW)
    if status == STATUS_PAUSED:
        actions.append(ACTION_RESUME)
    if status != STATUS_CANCELLED:
        actions.append(ACTION_EDIT)
    if status == STATUS_ACTIVE:
        actions.append(ACTION_PAUSE)
    if status != STATUS_CANCELLED:
        actions.append(ACTION_CANCEL)
    actions.append(ACTION_DELETE)
    return actions
