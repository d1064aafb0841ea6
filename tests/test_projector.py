from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from nlschedule import config
from nlschedule.projector import next_occurrence, project
from nlschedule.recurrence import RecurrenceRule, parse_recurrence
from nlschedule.utils import from_epoch_ms, to_epoch_ms

UTC = timezone.utc


def ms(*args, tz=UTC) -> int:
    return to_epoch_ms(datetime(*args, tzinfo=tz))


def test_every_two_weeks_from_new_year():
    rule = parse_recurrence('every 2 weeks')
    assert next_occurrence(rule, ms(2024, 1, 1), timezone_spec='UTC') == ms(2024, 1, 15)


def test_daily_interval_preserves_time():
    rule = RecurrenceRule(kind='daily', interval=3)
    assert project(rule, datetime(2024, 6, 12, 8, 45, tzinfo=UTC)) == datetime(2024, 6, 15, 8, 45, tzinfo=UTC)


@pytest.mark.parametrize('anchor', range(7))
@pytest.mark.parametrize('base', [
    datetime(2024, 6, 12, 12, 0, tzinfo=UTC),
    datetime(2024, 6, 16, 23, 59, tzinfo=UTC),
    datetime(2024, 12, 30, 0, 0, tzinfo=UTC),
    datetime(2024, 2, 29, 17, 0, tzinfo=UTC),
])
def test_weekly_anchor_lands_on_anchor_strictly_after_base(anchor, base):
    rule = RecurrenceRule(kind='weekly', anchor_day_of_week=anchor)
    result = project(rule, base)
    assert result > base
    assert result - base <= timedelta(days=7)
    assert (result.weekday() + 1) % 7 == anchor


def test_weekly_anchor_with_interval():
    rule = RecurrenceRule(kind='weekly', interval=2, anchor_day_of_week=1)
    # Wednesday -> Monday after next
    assert project(rule, datetime(2024, 6, 12, 17, tzinfo=UTC)) == datetime(2024, 6, 24, 17, tzinfo=UTC)


def test_weekly_without_anchor():
    rule = RecurrenceRule(kind='weekly', interval=3)
    assert project(rule, datetime(2024, 6, 12, tzinfo=UTC)) == datetime(2024, 7, 3, tzinfo=UTC)


@pytest.mark.parametrize('dom,base,expected', [
    (1, datetime(2024, 3, 15, 12, tzinfo=UTC), datetime(2024, 4, 1, 12, tzinfo=UTC)),
    (20, datetime(2024, 3, 15, 12, tzinfo=UTC), datetime(2024, 3, 20, 12, tzinfo=UTC)),
    # same day and time is not after the base
    (15, datetime(2024, 3, 15, 12, tzinfo=UTC), datetime(2024, 4, 15, 12, tzinfo=UTC)),
    (1, datetime(2024, 12, 5, tzinfo=UTC), datetime(2025, 1, 1, tzinfo=UTC)),
])
def test_monthly_anchor(dom, base, expected):
    rule = RecurrenceRule(kind='monthly', anchor_day_of_month=dom)
    assert project(rule, base) == expected


def test_monthly_anchor_with_interval():
    rule = RecurrenceRule(kind='monthly', interval=3, anchor_day_of_month=10)
    assert project(rule, datetime(2024, 1, 20, tzinfo=UTC)) == datetime(2024, 4, 10, tzinfo=UTC)


@pytest.mark.parametrize('policy,base,expected', [
    ('clamp', datetime(2024, 4, 10, 17, tzinfo=UTC), datetime(2024, 4, 30, 17, tzinfo=UTC)),
    ('skip', datetime(2024, 4, 10, 17, tzinfo=UTC), datetime(2024, 5, 31, 17, tzinfo=UTC)),
    ('clamp', datetime(2024, 1, 31, 17, tzinfo=UTC), datetime(2024, 2, 29, 17, tzinfo=UTC)),
    ('skip', datetime(2024, 1, 31, 17, tzinfo=UTC), datetime(2024, 3, 31, 17, tzinfo=UTC)),
    ('clamp', datetime(2023, 1, 31, 17, tzinfo=UTC), datetime(2023, 2, 28, 17, tzinfo=UTC)),
])
def test_short_month_policy(monkeypatch, policy, base, expected):
    monkeypatch.setattr(config, 'MONTHLY_ANCHOR_POLICY', policy)
    rule = RecurrenceRule(kind='monthly', anchor_day_of_month=31)
    assert project(rule, base) == expected


@pytest.mark.parametrize('base,expected', [
    (datetime(2024, 1, 31, tzinfo=UTC), datetime(2024, 2, 29, tzinfo=UTC)),
    (datetime(2023, 1, 31, tzinfo=UTC), datetime(2023, 2, 28, tzinfo=UTC)),
    (datetime(2024, 3, 15, tzinfo=UTC), datetime(2024, 4, 15, tzinfo=UTC)),
])
def test_monthly_without_anchor_clamps(base, expected):
    assert project(RecurrenceRule(kind='monthly'), base) == expected


def test_yearly_from_leap_day_clamps():
    rule = RecurrenceRule(kind='yearly')
    assert project(rule, datetime(2024, 2, 29, 9, tzinfo=UTC)) == datetime(2025, 2, 28, 9, tzinfo=UTC)
    rule = RecurrenceRule(kind='yearly', interval=4)
    assert project(rule, datetime(2024, 2, 29, 9, tzinfo=UTC)) == datetime(2028, 2, 29, 9, tzinfo=UTC)


def test_anchor_time_overrides_time_of_day():
    rule = RecurrenceRule(kind='daily', anchor_time_of_day=540)
    assert project(rule, datetime(2024, 6, 12, 17, 30, tzinfo=UTC)) == datetime(2024, 6, 13, 9, 0, tzinfo=UTC)


def test_without_preserving_time_uses_default_due_time():
    rule = RecurrenceRule(kind='daily')
    result = project(rule, datetime(2024, 6, 12, 8, 12, 33, tzinfo=UTC), preserve_time_of_day=False)
    assert result == datetime(2024, 6, 13, 17, 0, tzinfo=UTC)


def test_naive_base_is_utc():
    rule = RecurrenceRule(kind='daily')
    assert project(rule, datetime(2024, 6, 12, 8)) == datetime(2024, 6, 13, 8, tzinfo=UTC)


def test_wall_clock_survives_dst_change():
    ny = ZoneInfo('America/New_York')
    rule = RecurrenceRule(kind='daily')
    # 17:00 EST on the day before clocks go forward
    base = ms(2024, 3, 9, 17, tz=ny)
    result = next_occurrence(rule, base, timezone_spec='America/New_York')
    assert result == ms(2024, 3, 10, 21)
    assert from_epoch_ms(result, ny).hour == 17


def test_next_occurrence_accepts_datetime():
    rule = RecurrenceRule(kind='daily')
    assert next_occurrence(rule, datetime(2024, 6, 12, 8, tzinfo=UTC), timezone_spec='UTC') == ms(2024, 6, 13, 8)
