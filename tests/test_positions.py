"""
Debt position tests.
"""
from datetime import date

import pytest

from conftest import make_charge, make_payment
from passport_engine.logic.positions import (
    client_list_stats,
    debt_position,
    positions_by_client,
    positions_by_service,
    round_half_up,
    split_debtors,
    summarize_position,
)

TODAY = date(2024, 6, 1)


class TestDebtPosition:
    def test_client_owes_rendered_unpaid_weeks(self):
        pos = debt_position(total_charged=4000, total_paid=1000, weeks_in_contract=4, weeks_rendered=3)

        assert pos.amount_per_week == 1000
        assert pos.debt_weeks == 2
        assert pos.client_debt == 2000
        assert pos.operator_debt is None
        assert pos.kind == "client"

    def test_operator_owes_prepaid_weeks(self):
        pos = debt_position(total_charged=4000, total_paid=4000, weeks_in_contract=4, weeks_rendered=1)

        assert pos.operator_debt == 3000
        assert pos.client_debt is None
        assert pos.kind == "operator"

    def test_balanced_has_no_debt(self):
        pos = debt_position(4000, 2000, 4, 2)
        assert pos.kind is None

    def test_week_count_is_rounded_before_multiplying(self):
        """1.5 weeks owed rounds to 2 weeks, then × rate: not 1.5 × rate."""
        pos = debt_position(total_charged=3000, total_paid=500, weeks_in_contract=3, weeks_rendered=2)

        assert pos.amount_per_week == 1000
        assert pos.debt_weeks == 2
        assert pos.client_debt == 2000

    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4999) == 2

    @pytest.mark.parametrize("weeks, charged", [(0, 1000), (4, 0)])
    def test_guarded_against_zero(self, weeks, charged):
        pos = debt_position(charged, 500, weeks, 2)
        assert pos.kind is None
        assert pos.amount_per_week == 0

    @pytest.mark.parametrize("paid", [0, 250, 1000, 1999, 2000, 2600, 4000, 9000])
    @pytest.mark.parametrize("rendered", [0, 1, 2, 4])
    def test_debts_are_mutually_exclusive(self, paid, rendered):
        pos = debt_position(4000, paid, 4, rendered)
        assert pos.client_debt is None or pos.operator_debt is None


class TestSummaries:
    def test_summarize_position(self):
        charges = [make_charge(amount=12000, start=date(2024, 1, 1), end=date(2024, 1, 29))]
        payments = [make_payment(amount=6000)]

        row = summarize_position(charges, payments, today=date(2024, 1, 22), label="Абонемент")

        assert row.charged == 12000
        assert row.paid == 6000
        assert row.to_pay == 6000
        assert row.weeks_in_contract == 4
        assert row.weeks_rendered == 3
        assert row.rendered == pytest.approx(9000)
        assert row.client_debt == 3000

    def test_positions_by_service_matches_payments_by_service_name(self):
        charges = [
            make_charge(amount=4000, service_name="Йога", charge_id=1),
            make_charge(amount=8000, service_name="Бассейн", charge_id=2),
        ]
        payments = [make_payment(amount=8000, service_name="Бассейн")]

        rows = positions_by_service(charges, payments, today=TODAY)

        assert [r.label for r in rows] == ["Йога", "Бассейн"]
        assert rows[0].paid == 0
        assert rows[1].paid == 8000

    def test_split_debtors_with_totals(self):
        charges = [
            make_charge(amount=4000, client_id=1, charge_id=1),
            make_charge(amount=4000, client_id=2, charge_id=2),
            make_charge(amount=4000, client_id=3, charge_id=3, start=date(2024, 5, 27), end=date(2024, 6, 24)),
        ]
        payments = [
            make_payment(amount=1000, client_id=1),
            make_payment(amount=4000, client_id=2),
            make_payment(amount=4000, client_id=3),
        ]
        rows = positions_by_client(charges, payments, {1: "Альфа", 2: "Бета"}, today=TODAY)

        we_owe, we_owe_totals, owe_us, owe_us_totals = split_debtors(rows)

        assert [r.label for r in owe_us] == ["Альфа"]
        assert owe_us_totals.debt == 3000
        assert [r.label for r in we_owe] == ["Клиент #3"]
        assert we_owe_totals.paid == 4000

    def test_client_list_stats(self):
        charges = [
            make_charge(amount=100, start=date(2024, 2, 1), end=date(2024, 2, 28), charge_id=1),
            make_charge(amount=200, start=date(2024, 1, 1), end=date(2024, 1, 31), charge_id=2),
        ]
        payments = [make_payment(amount=50), make_payment(amount=25, client_id=7)]

        stats = client_list_stats(charges, payments)

        assert stats[1].charged == 300
        assert stats[1].paid == 50
        assert stats[1].start == date(2024, 1, 1)
        assert stats[1].end == date(2024, 2, 28)
        assert stats[7].charged == 0
        assert stats[7].paid == 25
