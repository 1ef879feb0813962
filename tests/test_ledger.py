"""
Account card and turnover sheet tests.
"""
from datetime import date

import pytest

from conftest import make_entry
from passport_engine.logic.ledger import (
    PERIOD_MAX,
    PERIOD_MIN,
    account_balance,
    account_card,
    balance_side,
    by_client,
    card_details,
    document_label,
    is_active_account,
    turnover_sheet,
)


@pytest.fixture
def journal():
    return [
        # before the period
        make_entry(date(2024, 1, 5), "62", "98", 10000, service_name="Йога", entry_id=1, document_type="charge"),
        make_entry(date(2024, 1, 10), "51", "62", 4000, service_name="Йога", entry_id=2, document_type="payment"),
        # inside February
        make_entry(date(2024, 2, 1), "62", "98", 6000, service_name="Бассейн", client_id=2, entry_id=3, document_type="charge"),
        make_entry(date(2024, 2, 12), "51", "62", 3000, service_name="Йога", entry_id=4, document_type="payment"),
        make_entry(date(2024, 2, 19), "98", "90", 2500, service_name="Йога", entry_id=5, document_type="weekly_recognition"),
        make_entry(date(2024, 2, 20), "51", "62", 1000, service_name="Бассейн", client_id=2, entry_id=6, document_type="payment"),
        # after the period
        make_entry(date(2024, 3, 4), "62", "98", 9999, service_name="Йога", entry_id=7, document_type="charge"),
    ]


class TestAccountClassification:
    def test_active_accounts(self):
        assert is_active_account("62")
        assert is_active_account("51")
        assert not is_active_account("90")
        assert not is_active_account("98")

    def test_sign_flips_for_passive(self):
        assert account_balance("62", debit=100, credit=30) == 70
        assert account_balance("98", debit=100, credit=30) == -70

    def test_balance_side(self):
        assert balance_side(70, "62") == "Дт"
        assert balance_side(-70, "62") == "Кт"
        assert balance_side(70, "98") == "Кт"
        assert balance_side(0, "98") == "—"


class TestAccountCard:
    def test_receivables_by_service(self, journal):
        card = account_card(journal, "62", date(2024, 2, 1), date(2024, 2, 29))
        rows = {r.key: r for r in card.rows}

        assert rows["Йога"].opening == 6000
        assert rows["Йога"].charged == 0
        assert rows["Йога"].paid == 3000
        assert rows["Йога"].closing == 3000

        assert rows["Бассейн"].opening == 0
        assert rows["Бассейн"].charged == 6000
        assert rows["Бассейн"].paid == 1000
        assert rows["Бассейн"].closing == 5000

    def test_closing_identity_holds_for_every_row(self, journal):
        for account in ("62", "51", "90", "98"):
            card = account_card(journal, account, date(2024, 2, 1), date(2024, 2, 29))
            for r in card.rows:
                assert r.closing == r.opening + r.charged - r.paid

    def test_total_is_sum_of_rows(self, journal):
        card = account_card(journal, "62", date(2024, 2, 1), date(2024, 2, 29))
        for attr in ("opening", "charged", "paid", "closing"):
            assert getattr(card.total, attr) == sum(getattr(r, attr) for r in card.rows)

    def test_passive_account_grows_on_credit(self, journal):
        card = account_card(journal, "98", date(2024, 2, 1), date(2024, 2, 29))
        rows = {r.key: r for r in card.rows}

        # 98 was credited 10000 in January: opening is a positive credit balance
        assert rows["Йога"].opening == 10000
        assert rows["Йога"].paid == 2500
        assert rows["Йога"].closing == 7500

    def test_open_period_defaults(self, journal):
        card = account_card(journal, "62")

        assert card.period_from == PERIOD_MIN
        assert card.period_to == PERIOD_MAX
        assert card.total.opening == 0
        assert card.total.closing == 10000 - 4000 + 6000 - 3000 - 1000 + 9999

    def test_group_by_client_with_labels(self, journal):
        card = account_card(journal, "62", group_by=by_client, labels={1: "Альфа", 2: "Бета"})
        assert [r.label for r in card.rows] == ["Альфа", "Бета"]

    def test_card_details_sorted_with_labels(self, journal):
        moves = card_details(journal, "62", "Йога", date(2024, 1, 1), date(2024, 2, 29))

        assert [m.entry_date for m in moves] == [date(2024, 1, 5), date(2024, 1, 10), date(2024, 2, 12)]
        assert moves[0].document == "Начисление"
        assert moves[1].document == "Оплата"

    def test_unknown_document_type_is_shown_as_is(self):
        assert document_label("manual") == "manual"


class TestTurnoverSheet:
    def test_per_service_per_account(self, journal):
        sheet = turnover_sheet(journal, date(2024, 2, 1), date(2024, 2, 29))

        assert [s.service_name for s in sheet.services] == ["Бассейн", "Йога"]
        yoga = {r.account: r for r in sheet.services[1].rows}
        assert yoga["51"].debit == 3000
        assert yoga["62"].credit == 3000
        assert yoga["62"].closing == -3000
        assert yoga["62"].side == "Кт"
        assert yoga["90"].closing == 2500
        assert yoga["90"].side == "Кт"

    def test_debit_equals_credit_overall(self, journal):
        sheet = turnover_sheet(journal)
        assert sheet.total_debit == sheet.total_credit
        for svc in sheet.services:
            assert svc.total_debit == svc.total_credit

    def test_missing_service_name_is_grouped(self):
        sheet = turnover_sheet([make_entry(date(2024, 1, 1), "51", "62", 10, service_name="")])
        assert sheet.services[0].service_name == "(без услуги)"
