"""
ru-RU display helper tests.
"""
import math
from datetime import date

import pytest

from ui.formatting import (
    NBSP,
    format_amount_input,
    format_date,
    format_money,
    format_money_int,
    format_number,
    format_percent,
    format_period,
    format_week,
)


class TestNumbers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, "0"),
            (999, "999"),
            (1500, f"1{NBSP}500"),
            (1500.5, f"1{NBSP}500,5"),
            (1234567.891, f"1{NBSP}234{NBSP}567,89"),
            (-2500, f"-2{NBSP}500"),
            (None, "0"),
        ],
    )
    def test_format_number(self, value, expected):
        assert format_number(value) == expected

    def test_money(self):
        assert format_money(1500.5) == f"1{NBSP}500,5{NBSP}₽"
        assert format_money_int(1500.4) == f"1{NBSP}500{NBSP}₽"

    def test_percent(self):
        assert format_percent(12.34) == f"12,3{NBSP}%"
        assert format_percent(math.inf) == "∞"

    def test_amount_input(self):
        assert format_amount_input(1000000.0) == "1000000"
        assert format_amount_input(99.5) == "99.5"


class TestDates:
    def test_format_date(self):
        assert format_date("2025-08-21") == "21.08.2025"
        assert format_date(None) == "—"

    def test_week_and_period(self):
        assert format_week("2024-01-08") == "08.01"
        assert format_period(date(2024, 1, 1), None) == "01.01.2024 – —"


class TestHalfUp:
    @pytest.mark.parametrize("value, expected", [(2.5, f"3{NBSP}₽"), (0.5, f"1{NBSP}₽"), (1500.5, f"1{NBSP}501{NBSP}₽"), (2.4, f"2{NBSP}₽")])
    def test_money_int_rounds_halves_up(self, value, expected):
        assert format_money_int(value) == expected
