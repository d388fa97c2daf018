from datetime import date, datetime, timedelta, timezone

from officetrack.core.timeutil import (
    as_utc,
    day_string,
    is_weekend,
    iter_days,
    minute_of_day,
    minutes_between,
    parse_day,
)

T0 = datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc)


def test_minutes_between_rounds_half_up():
    assert minutes_between(T0, T0 + timedelta(seconds=29, milliseconds=999)) == 0
    assert minutes_between(T0, T0 + timedelta(seconds=30)) == 1
    assert minutes_between(T0, T0 + timedelta(minutes=14, seconds=31)) == 15
    assert minutes_between(T0, T0 + timedelta(hours=8)) == 480


def test_minutes_between_treats_naive_as_utc():
    naive = datetime(2024, 6, 10, 10, 0)
    assert minutes_between(T0, naive) == 60


def test_as_utc_converts_other_offsets():
    plus_two = datetime(2024, 6, 10, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two) == T0
    assert as_utc(plus_two).tzinfo == timezone.utc


def test_day_string_and_minute_of_day_use_utc():
    late_evening = datetime(2024, 6, 10, 23, 30, tzinfo=timezone(timedelta(hours=-2)))
    assert day_string(late_evening) == "2024-06-11"
    assert minute_of_day(late_evening) == 90


def test_parse_day_is_strict():
    assert parse_day("2024-06-10") == date(2024, 6, 10)
    assert parse_day("2024-6-10") is None
    assert parse_day("2024-02-30") is None
    assert parse_day("") is None
    assert parse_day(None) is None


def test_iter_days_is_inclusive_and_weekend_detection():
    days = list(iter_days(date(2024, 6, 7), date(2024, 6, 10)))
    assert [d.isoformat() for d in days] == [
        "2024-06-07",
        "2024-06-08",
        "2024-06-09",
        "2024-06-10",
    ]
    assert [is_weekend(d) for d in days] == [False, True, True, False]
