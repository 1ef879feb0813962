"""
Supabase access tests against the in-memory query builder.
"""
from datetime import date

import httpx
import pytest
from postgrest.exceptions import APIError

from passport_engine import data_layer
from passport_engine.errors import BackendError, ProcedureError, ValidationError
from passport_engine.models import LedgerEntry, normalize_relation


class TestRelations:
    def test_object_shape(self):
        assert normalize_relation({"id": 1, "name": "Анна"}) == [{"id": 1, "name": "Анна"}]

    def test_list_shape(self):
        assert normalize_relation([{"id": 1}]) == [{"id": 1}]

    def test_missing(self):
        assert normalize_relation(None) == []

    def test_manager_from_either_shape(self, fake_sb):
        fake_sb.tables["clients"] = [
            {"id": 1, "name": "Альфа", "employees": {"id": 5, "name": "Анна"}},
            {"id": 2, "name": "Бета", "employees": [{"id": 6, "name": "Иван"}]},
        ]
        clients = data_layer.fetch_clients(sb=fake_sb)

        assert [c.name for c in clients] == ["Бета", "Альфа"]
        assert [c.manager_name() for c in clients] == ["Иван", "Анна"]


class TestFetch:
    def test_charges_filtered_and_newest_first(self, fake_sb):
        fake_sb.tables["charges"] = [
            {"id": 1, "client_id": 1, "service_name": "Йога", "amount": 100, "start_date": "2024-01-01"},
            {"id": 2, "client_id": 2, "service_name": "Йога", "amount": 200, "start_date": "2024-02-01"},
            {"id": 3, "client_id": 1, "service_name": "Бассейн", "amount": "300.5", "start_date": "2024-03-01"},
        ]
        charges = data_layer.fetch_charges(client_id=1, sb=fake_sb)

        assert [c.id for c in charges] == [3, 1]
        assert charges[0].amount == 300.5
        assert charges[0].start_date == date(2024, 3, 1)
        assert fake_sb.calls[-1].ordering == [("start_date", True)]

    def test_all_charges_without_filter(self, fake_sb):
        fake_sb.tables["charges"] = [{"id": 1, "client_id": 1}, {"id": 2, "client_id": 2}]
        assert len(data_layer.fetch_charges(sb=fake_sb)) == 2
        assert fake_sb.calls[-1].filters == []

    def test_journal_in_date_order(self, fake_sb):
        fake_sb.tables["journal_entries"] = [
            {"id": 2, "entry_date": "2024-02-01", "debit_account_code": "51", "credit_account_code": "62", "amount": 5},
            {"id": 1, "entry_date": "2024-01-01", "debit_account_code": "62", "credit_account_code": "98", "amount": 5},
        ]
        entries = data_layer.fetch_journal_entries(sb=fake_sb)
        assert [e.id for e in entries] == [1, 2]


class TestWrites:
    def test_insert_serializes_dates(self, fake_sb):
        data_layer.insert_charge(
            {"client_id": 1, "service_name": "Йога", "amount": 100.0,
             "start_date": date(2024, 3, 1), "end_date": date(2024, 3, 31)},
            sb=fake_sb,
        )
        assert fake_sb.tables["charges"][0]["start_date"] == "2024-03-01"
        assert fake_sb.tables["charges"][0]["end_date"] == "2024-03-31"

    def test_update_and_delete_target_one_row(self, fake_sb):
        fake_sb.tables["payments"] = [{"id": 1, "amount": 10}, {"id": 2, "amount": 20}]

        data_layer.update_payment(2, {"amount": 25}, sb=fake_sb)
        data_layer.delete_payment(1, sb=fake_sb)

        assert fake_sb.tables["payments"] == [{"id": 2, "amount": 25}]

    def test_api_error_becomes_backend_error(self, fake_sb):
        fake_sb.failures[("clients", "insert")] = APIError({"message": "duplicate key value", "code": "23505"})

        with pytest.raises(BackendError) as exc:
            data_layer.insert_client({"name": "Альфа"}, sb=fake_sb)
        assert exc.value.message == "duplicate key value"
        assert exc.value.operation == "insert_client"

    def test_transport_error_becomes_backend_error(self, fake_sb):
        fake_sb.failures[("services", "select")] = httpx.ConnectError("connection refused")

        with pytest.raises(BackendError, match="Нет связи с сервером"):
            data_layer.fetch_services(sb=fake_sb)


class TestProcedures:
    def test_pause_params(self, fake_sb):
        data_layer.pause_charge(7, date(2024, 3, 15), sb=fake_sb)
        assert fake_sb.rpc_calls == [
            ("pause_charge_with_accounting", {"p_charge_id": 7, "p_pause_date": "2024-03-15"}),
        ]

    def test_resume_and_cancel_params(self, fake_sb):
        data_layer.resume_charge(7, date(2024, 4, 1), sb=fake_sb)
        data_layer.cancel_charge(7, "2024-04-10", sb=fake_sb)
        assert fake_sb.rpc_calls[0][1] == {"p_charge_id": 7, "p_resume_date": "2024-04-01"}
        assert fake_sb.rpc_calls[1][1] == {"p_charge_id": 7, "p_cancel_date": "2024-04-10"}

    def test_in_band_error_raises(self, fake_sb):
        fake_sb.rpc_results["cancel_charge_with_accounting"] = {"error": "Начисление уже отменено"}

        with pytest.raises(ProcedureError) as exc:
            data_layer.cancel_charge(7, date(2024, 4, 10), sb=fake_sb)
        assert exc.value.message == "Начисление уже отменено"

    def test_success_body_is_returned(self, fake_sb):
        fake_sb.rpc_results["pause_charge_with_accounting"] = {"success": True}
        assert data_layer.pause_charge(7, date(2024, 3, 15), sb=fake_sb) == {"success": True}


class TestCardActions:
    @pytest.mark.parametrize(
        "action, payload, expected",
        [
            ("pause", {"id": 4, "date": date(2024, 3, 1)}, ("pause_charge_with_accounting", {"p_charge_id": 4, "p_pause_date": "2024-03-01"})),
            ("resume", {"id": 4, "date": date(2024, 3, 8)}, ("resume_charge_with_accounting", {"p_charge_id": 4, "p_resume_date": "2024-03-08"})),
            ("cancel", {"id": 4, "date": date(2024, 3, 9)}, ("cancel_charge_with_accounting", {"p_charge_id": 4, "p_cancel_date": "2024-03-09"})),
        ],
    )
    def test_procedures(self, fake_sb, action, payload, expected):
        data_layer.run_card_action(action, payload, sb=fake_sb)
        assert fake_sb.rpc_calls == [expected]

    def test_table_writes(self, fake_sb):
        fake_sb.tables["clients"] = [{"id": 1, "name": "Альфа"}]
        fake_sb.tables["charges"] = [{"id": 2, "amount": 100}, {"id": 3, "amount": 300}]
        fake_sb.tables["payments"] = [{"id": 5, "amount": 10}, {"id": 6, "amount": 20}]

        data_layer.run_card_action("save_client", {"client_id": 1, "patch": {"legal_name": "ООО Альфа"}}, sb=fake_sb)
        data_layer.run_card_action("update_charge", {"id": 2, "patch": {"end_date": date(2024, 4, 1)}}, sb=fake_sb)
        data_layer.run_card_action("delete_charge", {"id": 3}, sb=fake_sb)
        data_layer.run_card_action("update_payment", {"id": 5, "patch": {"amount": 15}}, sb=fake_sb)
        data_layer.run_card_action("delete_payment", {"id": 6}, sb=fake_sb)

        assert fake_sb.tables["clients"][0]["legal_name"] == "ООО Альфа"
        assert fake_sb.tables["charges"] == [{"id": 2, "amount": 100, "end_date": "2024-04-01"}]
        assert fake_sb.tables["payments"] == [{"id": 5, "amount": 15}]

    def test_unknown_action(self, fake_sb):
        with pytest.raises(ValidationError):
            data_layer.run_card_action("archive", {"id": 1}, sb=fake_sb)
        assert fake_sb.calls == [] and fake_sb.rpc_calls == []


class TestProcedureErrorShapes:
    @pytest.mark.parametrize("body", [{"error": None}, {"error": ""}])
    def test_empty_error_is_still_a_failure(self, fake_sb, body):
        fake_sb.rpc_results["resume_charge_with_accounting"] = body

        with pytest.raises(ProcedureError) as exc:
            data_layer.resume_charge(7, date(2024, 4, 1), sb=fake_sb)
        assert exc.value.message == "Операция отклонена сервером"


class TestUndatedJournalRows:
    def test_row_without_any_date_is_skipped(self, fake_sb):
        fake_sb.tables["journal_entries"] = [
            {"id": 1, "entry_date": "2024-01-01", "debit_account_code": "62", "credit_account_code": "98", "amount": 5},
            {"id": 2, "entry_date": None, "created_at": None, "debit_account_code": "51", "credit_account_code": "62", "amount": 5},
            {"id": 3, "created_at": "2024-02-03T10:00:00+00:00", "debit_account_code": "51", "credit_account_code": "62", "amount": 5},
        ]
        entries = data_layer.fetch_journal_entries(sb=fake_sb)

        assert [e.id for e in entries] == [1, 3]
        assert entries[1].entry_date == date(2024, 2, 3)

    def test_from_row_rejects_undated(self):
        with pytest.raises(ValueError):
            LedgerEntry.from_row({"id": 9, "amount": 1})
