"""
Supabase access for every screen.

Each function takes an optional `sb` client (tests pass a fake one) and falls back to the
shared client from config. Backend failures are raised as BackendError; the pages decide
how to show them.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError

from .config import get_supabase_client
from .errors import BackendError, ProcedureError, ValidationError
from .models import Charge, Client, Employee, LedgerEntry, Payment, Position, Service

logger = logging.getLogger(__name__)

CLIENT_COLUMNS = "id, name, legal_name, manager_id, created_at, employees(id, name)"
EMPLOYEE_COLUMNS = "id, name, position_id, created_at, positions(id, name)"
SERVICE_COLUMNS = "id, name, base_cost, type, duration_days, created_at"
JOURNAL_COLUMNS = (
    "id, entry_date, debit_account_code, credit_account_code, amount, client_id, "
    "service_name, document_type, document_id, document_extra, created_at"
)

PAUSE_PROCEDURE = "pause_charge_with_accounting"
RESUME_PROCEDURE = "resume_charge_with_accounting"
CANCEL_PROCEDURE = "cancel_charge_with_accounting"


def _client(sb=None):
    return sb if sb is not None else get_supabase_client()


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    return str(message) if message else str(exc)


def _run(operation: str, call: Callable[[], Any]):
    """Execute a query builder call, converting backend failures to BackendError."""
    try:
        return call()
    except APIError as e:
        logger.warning("%s failed: %s", operation, _error_message(e))
        raise BackendError(_error_message(e), operation=operation) from e
    except httpx.HTTPError as e:
        logger.error("%s: transport error %s", operation, e)
        raise BackendError(f"Нет связи с сервером: {e}", operation=operation) from e


def _rows(response) -> List[Dict[str, Any]]:
    # response.data is a list of dicts
    return list(response.data or [])


def _iso(value) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _serialize(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _iso(v) if isinstance(v, date) else v for k, v in payload.items()}


# ---------- clients ----------

def fetch_clients(sb=None) -> List[Client]:
    """All clients, newest first, with the embedded manager."""
    sb = _client(sb)
    resp = _run(
        "fetch_clients",
        lambda: sb.table("clients").select(CLIENT_COLUMNS).order("id", desc=True).execute(),
    )
    rows = _rows(resp)
    logger.debug("fetch_clients -> %d rows", len(rows))
    return [Client.from_row(r) for r in rows]


def fetch_client(client_id: int, sb=None) -> Optional[Client]:
    sb = _client(sb)
    resp = _run(
        "fetch_client",
        lambda: sb.table("clients").select(CLIENT_COLUMNS).eq("id", client_id).execute(),
    )
    rows = _rows(resp)
    return Client.from_row(rows[0]) if rows else None


def insert_client(payload: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("insert_client", lambda: sb.table("clients").insert(_serialize(payload)).execute())
    logger.info("insert_client -> %s", payload.get("name"))


def update_client(client_id: int, patch: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("update_client", lambda: sb.table("clients").update(_serialize(patch)).eq("id", client_id).execute())
    logger.info("update_client -> client %s: %s", client_id, sorted(patch))


# ---------- employees / positions ----------

def fetch_employees(sb=None) -> List[Employee]:
    sb = _client(sb)
    resp = _run(
        "fetch_employees",
        lambda: sb.table("employees").select(EMPLOYEE_COLUMNS).order("name").execute(),
    )
    rows = _rows(resp)
    logger.debug("fetch_employees -> %d rows", len(rows))
    return [Employee.from_row(r) for r in rows]


def insert_employee(payload: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("insert_employee", lambda: sb.table("employees").insert(_serialize(payload)).execute())
    logger.info("insert_employee -> %s", payload.get("name"))


def update_employee_position(employee_id: int, position_id: Optional[int], sb=None) -> None:
    sb = _client(sb)
    _run(
        "update_employee_position",
        lambda: sb.table("employees").update({"position_id": position_id}).eq("id", employee_id).execute(),
    )
    logger.info("update_employee_position -> employee %s position %s", employee_id, position_id)


def fetch_positions(sb=None) -> List[Position]:
    sb = _client(sb)
    resp = _run(
        "fetch_positions",
        lambda: sb.table("positions").select("id, name").order("name").execute(),
    )
    return [Position.from_row(r) for r in _rows(resp)]


# ---------- services ----------

def fetch_services(sb=None) -> List[Service]:
    sb = _client(sb)
    resp = _run(
        "fetch_services",
        lambda: sb.table("services").select(SERVICE_COLUMNS).order("name").execute(),
    )
    rows = _rows(resp)
    logger.debug("fetch_services -> %d rows", len(rows))
    return [Service.from_row(r) for r in rows]


def insert_service(payload: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("insert_service", lambda: sb.table("services").insert(_serialize(payload)).execute())
    logger.info("insert_service -> %s", payload.get("name"))


# ---------- charges ----------

def fetch_charges(client_id: Optional[int] = None, sb=None) -> List[Charge]:
    """Charges of one client (newest start first), or of everyone when client_id is None."""
    sb = _client(sb)

    def call():
        query = sb.table("charges").select("*")
        if client_id is not None:
            query = query.eq("client_id", client_id)
        return query.order("start_date", desc=True).execute()

    rows = _rows(_run("fetch_charges", call))
    logger.debug("fetch_charges -> %d rows for client %s", len(rows), client_id)
    return [Charge.from_row(r) for r in rows]


def insert_charge(payload: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("insert_charge", lambda: sb.table("charges").insert(_serialize(payload)).execute())
    logger.info(
        "insert_charge -> client %s, %s, %s",
        payload.get("client_id"), payload.get("service_name"), payload.get("amount"),
    )


def update_charge(charge_id: int, patch: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("update_charge", lambda: sb.table("charges").update(_serialize(patch)).eq("id", charge_id).execute())
    logger.info("update_charge -> charge %s", charge_id)


def delete_charge(charge_id: int, sb=None) -> None:
    sb = _client(sb)
    _run("delete_charge", lambda: sb.table("charges").delete().eq("id", charge_id).execute())
    logger.info("delete_charge -> charge %s", charge_id)


# ---------- payments ----------

def fetch_payments(client_id: Optional[int] = None, sb=None) -> List[Payment]:
    sb = _client(sb)

    def call():
        query = sb.table("payments").select("*")
        if client_id is not None:
            query = query.eq("client_id", client_id)
        return query.order("payment_date", desc=True).execute()

    rows = _rows(_run("fetch_payments", call))
    logger.debug("fetch_payments -> %d rows for client %s", len(rows), client_id)
    return [Payment.from_row(r) for r in rows]


def insert_payment(payload: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("insert_payment", lambda: sb.table("payments").insert(_serialize(payload)).execute())
    logger.info("insert_payment -> client %s, %s", payload.get("client_id"), payload.get("amount"))


def update_payment(payment_id: int, patch: Dict[str, Any], sb=None) -> None:
    sb = _client(sb)
    _run("update_payment", lambda: sb.table("payments").update(_serialize(patch)).eq("id", payment_id).execute())
    logger.info("update_payment -> payment %s", payment_id)


def delete_payment(payment_id: int, sb=None) -> None:
    sb = _client(sb)
    _run("delete_payment", lambda: sb.table("payments").delete().eq("id", payment_id).execute())
    logger.info("delete_payment -> payment %s", payment_id)


# ---------- journal ----------

def fetch_journal_entries(client_id: Optional[int] = None, sb=None) -> List[LedgerEntry]:
    """Journal movements in date order. Read-only: entries are written by the procedures."""
    sb = _client(sb)

    def call():
        query = sb.table("journal_entries").select(JOURNAL_COLUMNS)
        if client_id is not None:
            query = query.eq("client_id", client_id)
        return query.order("entry_date").execute()

    rows = _rows(_run("fetch_journal_entries", call))
    logger.debug("fetch_journal_entries -> %d rows for client %s", len(rows), client_id)
    entries = []
    for r in rows:
        try:
            entries.append(LedgerEntry.from_row(r))
        except ValueError as e:
            # an undated movement would land in every opening balance
            logger.warning("fetch_journal_entries: skipped %s", e)
    return entries


# ---------- accounting procedures ----------

def _call_procedure(name: str, params: Dict[str, Any], sb=None) -> Any:
    """
    Run a named procedure. Business errors come back in the body as {"error": "..."}
    and are raised as ProcedureError.
    """
    sb = _client(sb)
    resp = _run(name, lambda: sb.rpc(name, params).execute())
    data = getattr(resp, "data", None)
    if isinstance(data, dict) and "error" in data:
        # any error key means the procedure rolled back, even with an empty message
        message = str(data["error"] or "") or "Операция отклонена сервером"
        logger.warning("%s rejected: %s", name, message)
        raise ProcedureError(message, operation=name)
    logger.info("%s -> %s", name, params)
    return data


def pause_charge(charge_id: int, pause_date, sb=None) -> Any:
    return _call_procedure(PAUSE_PROCEDURE, {"p_charge_id": charge_id, "p_pause_date": _iso(pause_date)}, sb=sb)


def resume_charge(charge_id: int, resume_date, sb=None) -> Any:
    return _call_procedure(RESUME_PROCEDURE, {"p_charge_id": charge_id, "p_resume_date": _iso(resume_date)}, sb=sb)


def cancel_charge(charge_id: int, cancel_date, sb=None) -> Any:
    return _call_procedure(CANCEL_PROCEDURE, {"p_charge_id": charge_id, "p_cancel_date": _iso(cancel_date)}, sb=sb)


# ---------- confirmed card actions ----------

CARD_ACTIONS: Dict[str, Callable[..., Any]] = {
    "save_client": lambda p, sb: update_client(p["client_id"], p["patch"], sb=sb),
    "update_charge": lambda p, sb: update_charge(p["id"], p["patch"], sb=sb),
    "delete_charge": lambda p, sb: delete_charge(p["id"], sb=sb),
    "update_payment": lambda p, sb: update_payment(p["id"], p["patch"], sb=sb),
    "delete_payment": lambda p, sb: delete_payment(p["id"], sb=sb),
    "pause": lambda p, sb: pause_charge(p["id"], p["date"], sb=sb),
    "resume": lambda p, sb: resume_charge(p["id"], p["date"], sb=sb),
    "cancel": lambda p, sb: cancel_charge(p["id"], p["date"], sb=sb),
}


def run_card_action(action: str, payload: Dict[str, Any], sb=None) -> Any:
    """Perform a client-card action the user has already confirmed."""
    handler = CARD_ACTIONS.get(action)
    if handler is None:
        raise ValidationError(f"Неизвестное действие: {action}")
    return handler(payload, sb)
