"""
Weekly revenue allocation tests.
"""
from datetime import date, datetime

import pytest

from conftest import make_charge
from passport_engine.logic.allocation import allocate_charge, charge_bounds

TODAY = date(2024, 6, 1)


class TestAllocationScenarios:
    def test_short_contract_books_everything_on_end_week(self):
        c = make_charge(amount=7000, start=date(2024, 1, 1), end=date(2024, 1, 5))
        alloc = allocate_charge(c, today=TODAY)

        assert alloc.short_contract
        assert dict(alloc.weekly) == {"2024-01-01": 7000}
        assert alloc.weeks_in_contract == 1

    def test_multi_week_even_split(self):
        c = make_charge(amount=12000, start=date(2024, 1, 1), end=date(2024, 1, 29))
        alloc = allocate_charge(c, today=TODAY)

        assert list(alloc.weekly) == ["2024-01-08", "2024-01-15", "2024-01-22", "2024-01-29"]
        assert all(v == 3000 for v in alloc.weekly.values())
        assert alloc.weeks_in_contract == 4
        assert alloc.weeks_rendered == 4


class TestAllocationProperties:
    @pytest.mark.parametrize(
        "amount, start, end",
        [
            (1000, date(2024, 1, 3), date(2024, 3, 17)),
            (999.99, date(2024, 2, 29), date(2024, 5, 1)),
            (7000, date(2024, 1, 1), date(2024, 1, 5)),
            (10, date(2024, 1, 7), date(2024, 1, 8)),
        ],
    )
    def test_sum_equals_amount(self, amount, start, end):
        alloc = allocate_charge(make_charge(amount=amount, start=start, end=end), today=TODAY)
        assert alloc.total == pytest.approx(amount, abs=1e-6)

    def test_signup_week_is_never_allocated(self):
        wednesday = date(2024, 1, 10)
        alloc = allocate_charge(make_charge(start=wednesday, end=date(2024, 2, 28)), today=TODAY)

        assert "2024-01-08" not in alloc.weekly
        assert next(iter(alloc.weekly)) == "2024-01-15"

    def test_freeze_excludes_weeks_from_rendered(self):
        c = make_charge(
            amount=8000,
            start=date(2024, 1, 1),
            end=date(2024, 2, 26),
            freeze_start=date(2024, 1, 22),
        )
        alloc = allocate_charge(c, today=TODAY)

        # 08.01 and 15.01 are before the freeze; everything from 22.01 is excluded
        assert alloc.weeks_in_contract == 8
        assert alloc.weeks_rendered == 2
        assert alloc.rendered_amount == pytest.approx(2000)

    def test_future_weeks_are_not_rendered(self):
        c = make_charge(amount=4000, start=date(2024, 1, 1), end=date(2024, 1, 29))
        alloc = allocate_charge(c, today=date(2024, 1, 16))

        assert alloc.weeks_rendered == 2


class TestAllocationEdges:
    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_amount_allocates_zero(self, amount):
        alloc = allocate_charge(make_charge(amount=amount), today=TODAY)

        assert alloc is not None
        assert alloc.weeks_in_contract == 4
        assert all(v == 0 for v in alloc.weekly.values())

    def test_missing_end_defaults_to_start(self):
        c = make_charge(start=date(2024, 1, 3), end=None)
        assert charge_bounds(c) == (date(2024, 1, 3), date(2024, 1, 3))

    def test_missing_dates_fall_back_to_created_at(self):
        c = make_charge(start=None, end=None, created_at="2024-01-10T09:00:00+00:00")
        assert charge_bounds(c) == (date(2024, 1, 10), date(2024, 1, 10))

    def test_created_at_as_datetime(self):
        c = make_charge(start=None, end=None, created_at=datetime(2024, 1, 10, 9, 0))
        assert charge_bounds(c) == (date(2024, 1, 10), date(2024, 1, 10))

    def test_no_dates_at_all_is_skipped(self):
        c = make_charge(start=None, end=None)
        assert allocate_charge(c, today=TODAY) is None
