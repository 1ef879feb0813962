"""
Shared fixtures: an in-memory stand-in for the Supabase query builder and small
factories for charges, payments and journal entries.
"""
from datetime import date
from types import SimpleNamespace

import pytest

from passport_engine.models import Charge, Client, Employee, LedgerEntry, Payment, Service


class FakeQuery:
    """Records a chained PostgREST call and answers it from the owning FakeSupabase."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = None
        self.payload = None
        self.filters = []
        self.ordering = []

    def select(self, columns="*"):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, patch):
        self.op = "update"
        self.payload = patch
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def _matches(self, row):
        return all(row.get(col) == val for col, val in self.filters)

    def execute(self):
        self.db.calls.append(self)
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "select":
            data = [dict(r) for r in rows if self._matches(r)]
            for column, desc in reversed(self.ordering):
                data.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            return SimpleNamespace(data=data)
        if self.op == "insert":
            row = dict(self.payload)
            row.setdefault("id", len(rows) + 1)
            rows.append(row)
            return SimpleNamespace(data=[row])
        if self.op == "update":
            for r in rows:
                if self._matches(r):
                    r.update(self.payload)
            return SimpleNamespace(data=[r for r in rows if self._matches(r)])
        if self.op == "delete":
            kept = [r for r in rows if not self._matches(r)]
            removed = len(rows) - len(kept)
            self.db.tables[self.table] = kept
            return SimpleNamespace(data=[{}] * removed)
        raise AssertionError(f"unexpected op {self.op}")


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        failure = self.db.failures.get(("rpc", self.name))
        if failure is not None:
            raise failure
        return SimpleNamespace(data=self.db.rpc_results.get(self.name))


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.failures = {}
        self.rpc_results = {}
        self.calls = []
        self.rpc_calls = []

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)


@pytest.fixture
def fake_sb():
    return FakeSupabase()


def make_charge(
    amount=1000.0,
    start=date(2024, 1, 1),
    end=date(2024, 1, 29),
    client_id=1,
    service_name="Абонемент",
    charge_id=1,
    **extra,
):
    return Charge(
        id=charge_id,
        client_id=client_id,
        service_name=service_name,
        amount=amount,
        start_date=start,
        end_date=end,
        **extra,
    )


def make_payment(amount=1000.0, client_id=1, service_name="Абонемент", payment_id=1, **extra):
    return Payment(id=payment_id, client_id=client_id, amount=amount, service_name=service_name, **extra)


def make_entry(entry_date, debit, credit, amount, service_name="Абонемент", client_id=1, entry_id=1, **extra):
    return LedgerEntry(
        id=entry_id,
        entry_date=entry_date,
        debit_account_code=debit,
        credit_account_code=credit,
        amount=amount,
        client_id=client_id,
        service_name=service_name,
        **extra,
    )


def make_service(name="Абонемент", kind="subscription", duration_days=30, base_cost=3000.0, service_id=1):
    return Service(id=service_id, name=name, base_cost=base_cost, type=kind, duration_days=duration_days)


def make_client(name="Клиент", client_id=1, manager_id=None, employees=None):
    return Client(id=client_id, name=name, manager_id=manager_id, employees=list(employees or []))


def make_employee(name="Анна", employee_id=1):
    return Employee(id=employee_id, name=name)
