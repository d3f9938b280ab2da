from datetime import datetime, timezone

import pytest

from ticketflow.core.cron import CronError, cron_matches, validate_cron


def _at(hour, minute, day=2, month=3, second=0):
    # 2026-03-02 is a Monday
    return datetime(2026, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "expression, now, expected",
    [
        ("0 0/5 * * * ?", _at(10, 5, second=42), True),
        ("0 0/5 * * * ?", _at(10, 6), False),
        ("*/15 * * * *", _at(9, 45), True),
        ("*/15 * * * *", _at(9, 46), False),
        ("30 9 * * 1-5", _at(9, 30), True),
        ("30 9 * * 0,6", _at(9, 30), False),
        ("0 12 1 * *", _at(12, 0, day=1), True),
        ("0 10-14/2 * * *", _at(12, 0), True),
        ("0 10-14/2 * * *", _at(13, 0), False),
    ],
)
def test_cron_matches(expression, now, expected):
    assert cron_matches(expression, now) is expected


def test_weekday_seven_is_sunday():
    sunday = datetime(2026, 3, 8, 8, 0, tzinfo=timezone.utc)
    assert cron_matches("0 8 * * 7", sunday) is True
    assert cron_matches("0 8 * * 0", sunday) is True


@pytest.mark.parametrize(
    "expression",
    ["", "* * *", "61 * * * *", "*/0 * * * *", "a b c d e", "5-1 * * * *", "1,,2 * * * *"],
)
def test_invalid_expressions_raise_and_never_match(expression):
    with pytest.raises(CronError):
        validate_cron(expression)
    assert cron_matches(expression, _at(0, 0)) is False
