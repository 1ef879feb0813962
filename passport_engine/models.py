from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .logic.weeks import parse_date


def normalize_relation(value: Any) -> List[Dict[str, Any]]:
    """
    PostgREST returns an embedded many-to-one relation either as an object or as a
    one-element list depending on how the foreign key is detected. Always hand back a list.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, dict)]
    return []


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass
class Position:
    id: int
    name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Position":
        return cls(id=int(row["id"]), name=str(row.get("name") or ""))


@dataclass
class Employee:
    id: int
    name: str
    position_id: Optional[int] = None
    positions: List[Position] = field(default_factory=list)
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Employee":
        return cls(
            id=int(row["id"]),
            name=str(row.get("name") or ""),
            position_id=_to_int(row.get("position_id")),
            positions=[Position.from_row(p) for p in normalize_relation(row.get("positions"))],
            created_at=row.get("created_at"),
        )


@dataclass
class Client:
    id: int
    name: str
    legal_name: Optional[str] = None
    manager_id: Optional[int] = None
    employees: List[Employee] = field(default_factory=list)
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Client":
        return cls(
            id=int(row["id"]),
            name=str(row.get("name") or ""),
            legal_name=_to_str(row.get("legal_name")),
            manager_id=_to_int(row.get("manager_id")),
            employees=[Employee.from_row(e) for e in normalize_relation(row.get("employees"))],
            created_at=row.get("created_at"),
        )

    def manager_name(self, employees: Optional[List[Employee]] = None) -> Optional[str]:
        """Embedded manager first, then a lookup in the employee list by manager_id."""
        if self.employees:
            return self.employees[0].name
        if self.manager_id is not None and employees:
            for emp in employees:
                if emp.id == self.manager_id:
                    return emp.name
        return None


SERVICE_KINDS = ("one-time", "subscription")


@dataclass
class Service:
    id: int
    name: str
    base_cost: float = 0.0
    type: Optional[str] = None
    duration_days: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Service":
        return cls(
            id=int(row["id"]),
            name=str(row.get("name") or ""),
            base_cost=_to_float(row.get("base_cost")),
            type=_to_str(row.get("type")),
            duration_days=_to_int(row.get("duration_days")),
            created_at=row.get("created_at"),
        )

    @property
    def is_subscription(self) -> bool:
        return self.type == "subscription"


@dataclass
class Charge:
    id: int
    client_id: int
    service_name: str
    amount: float
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    service_id: Optional[int] = None
    comment: Optional[str] = None
    created_at: Optional[str] = None
    subscription_type: Optional[str] = None
    status: Optional[str] = None
    freeze_start: Optional[date] = None
    freeze_end: Optional[date] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Charge":
        return cls(
            id=_to_int(row.get("id")) or 0,
            client_id=_to_int(row.get("client_id")) or 0,
            service_name=str(row.get("service_name") or ""),
            amount=_to_float(row.get("amount")),
            start_date=parse_date(row.get("start_date")),
            end_date=parse_date(row.get("end_date")),
            service_id=_to_int(row.get("service_id")),
            comment=_to_str(row.get("comment")),
            created_at=row.get("created_at"),
            subscription_type=_to_str(row.get("subscription_type")),
            status=_to_str(row.get("status")),
            freeze_start=parse_date(row.get("freeze_start")),
            freeze_end=parse_date(row.get("freeze_end")),
            updated_at=row.get("updated_at"),
        )

    @property
    def is_paused(self) -> bool:
        return self.status == "paused"


@dataclass
class Payment:
    id: int
    client_id: int
    amount: float
    service_name: str = ""
    service_id: Optional[int] = None
    charge_id: Optional[int] = None
    payment_date: Optional[date] = None
    comment: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Payment":
        return cls(
            id=_to_int(row.get("id")) or 0,
            client_id=_to_int(row.get("client_id")) or 0,
            amount=_to_float(row.get("amount")),
            service_name=str(row.get("service_name") or ""),
            service_id=_to_int(row.get("service_id")),
            charge_id=_to_int(row.get("charge_id")),
            payment_date=parse_date(row.get("payment_date")),
            comment=_to_str(row.get("comment")),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """One double-entry movement. Written only by the accounting procedures."""

    id: int
    entry_date: date
    debit_account_code: str
    credit_account_code: str
    amount: float
    client_id: Optional[int] = None
    service_name: str = ""
    document_type: str = ""
    document_id: Optional[int] = None
    document_extra: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LedgerEntry":
        entry_date = parse_date(row.get("entry_date")) or parse_date(row.get("created_at"))
        if entry_date is None:
            raise ValueError(f"journal entry {row.get('id')} has no entry_date or created_at")
        return cls(
            id=_to_int(row.get("id")) or 0,
            entry_date=entry_date,
            debit_account_code=str(row.get("debit_account_code") or ""),
            credit_account_code=str(row.get("credit_account_code") or ""),
            amount=_to_float(row.get("amount")),
            client_id=_to_int(row.get("client_id")),
            service_name=str(row.get("service_name") or ""),
            document_type=str(row.get("document_type") or ""),
            document_id=_to_int(row.get("document_id")),
            document_extra=_to_str(row.get("document_extra")),
            created_at=row.get("created_at"),
        )
