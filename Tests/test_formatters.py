# Tests/test_formatters.py
from datetime import datetime, timezone

from Services.formatters import format_currency, format_date


def test_currency_groups_thousands_with_prefix():
    assert format_currency(1234567) == "ETB 1,234,567"
    assert format_currency(1234567.0) == "ETB 1,234,567"


def test_currency_keeps_fraction():
    assert format_currency(1500.5) == "ETB 1,500.5"


def test_currency_falls_back_to_zero():
    for value in (None, "1000", float("nan"), float("inf"), True):
        result = format_currency(value)
        assert result == "ETB 0"
        assert "NaN" not in result


def test_format_date():
    assert format_date("2024-01-05T10:00:00.000000+00:00") == "January 5, 2024"
    assert format_date(datetime(2023, 12, 31, tzinfo=timezone.utc)) == "December 31, 2023"
    assert format_date(None) == ""
    assert format_date("not a date") == "not a date"
