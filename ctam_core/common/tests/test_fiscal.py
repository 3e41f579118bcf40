from datetime import date, datetime, timezone

import pytest

from ctam_core.common.fiscal import fiscal_year_for, to_display_year


@pytest.mark.parametrize(
    "day,expected",
    [
        (date(2024, 9, 30), 2024),
        (date(2024, 10, 1), 2025),
        (date(2024, 12, 31), 2025),
        (date(2025, 1, 1), 2025),
        (date(2025, 9, 30), 2025),
    ],
)
def test_fiscal_year_rolls_over_in_october(day, expected):
    assert fiscal_year_for(day) == expected


def test_start_month_is_configurable(settings):
    settings.CTAM_FISCAL_YEAR_START_MONTH = 1
    assert fiscal_year_for(date(2024, 10, 1)) == 2024


def test_aware_datetimes_use_local_date(settings):
    settings.TIME_ZONE = "Asia/Bangkok"
    # 2024-09-30 20:00 UTC is already October 1st in Bangkok
    assert fiscal_year_for(datetime(2024, 9, 30, 20, 0, tzinfo=timezone.utc)) == 2025


def test_display_year_is_buddhist_era():
    assert to_display_year(2025) == 2568
