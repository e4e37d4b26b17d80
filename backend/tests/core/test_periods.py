from datetime import date, datetime, timedelta, timezone

import pytest

from fitpass.core.exceptions import InvalidPeriodException
from fitpass.core.periods import parse_period, period_bounds, period_start, previous_period


class TestParsePeriod:
    def test_none_defaults_to_previous_month(self):
        assert parse_period(None, today=date(2024, 6, 15)) == date(2024, 5, 1)

    def test_blank_string_defaults_to_previous_month(self):
        assert parse_period("  ", today=date(2024, 6, 15)) == date(2024, 5, 1)

    def test_january_rolls_back_a_year(self):
        assert parse_period(None, today=date(2025, 1, 31)) == date(2024, 12, 1)

    def test_iso_string(self):
        assert parse_period("2024-05-01") == date(2024, 5, 1)

    def test_date_and_datetime(self):
        assert parse_period(date(2024, 5, 1)) == date(2024, 5, 1)
        assert parse_period(datetime(2024, 5, 1, 12, 0)) == date(2024, 5, 1)

    @pytest.mark.parametrize("raw", ["2024-05-15", "2024-13-01", "May 2024", "2024/05/01"])
    def test_rejects_malformed_values(self, raw):
        with pytest.raises(InvalidPeriodException) as exc_info:
            parse_period(raw)
        assert exc_info.value.code == "INVALID_PERIOD"
        assert exc_info.value.status_code == 400


def test_previous_period_uses_utc_today():
    expected = (datetime.now(timezone.utc).date().replace(day=1) - timedelta(days=1)).replace(day=1)
    assert previous_period() == expected


def test_period_start_normalizes_timezones():
    # 23:30 on April 30 in UTC-2 is already May 1 in UTC
    local = datetime(2024, 4, 30, 23, 30, tzinfo=timezone(timedelta(hours=-2)))
    assert period_start(local) == date(2024, 5, 1)
    assert period_start(date(2024, 5, 17)) == date(2024, 5, 1)


def test_period_bounds_cover_the_month():
    start, end = period_bounds(date(2024, 12, 1))
    assert start == datetime(2024, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)
