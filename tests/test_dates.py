"""Calendar arithmetic for due dates and reminders."""

from django.utils import timezone
from datetime import date, timedelta
from decimal import Decimal

from payments.dates import (
    last_day_of_month, clamp_day_to_month, add_months, next_due_date,
    reminder_date, floor_reminder, tomorrow, months_between,
    months_covered_by_amount, advance_by_frequency, parse_payment_date,
)
from tests.factories import NOW, local_dt


def test_last_day_of_month_handles_leap_years():
    assert last_day_of_month(2024, 2) == 29
    assert last_day_of_month(2023, 2) == 28
    assert last_day_of_month(2024, 12) == 31
    assert last_day_of_month(2024, 4) == 30


def test_clamp_day_to_month():
    assert clamp_day_to_month(2024, 2, 31) == 29
    assert clamp_day_to_month(2023, 2, 31) == 28
    assert clamp_day_to_month(2024, 4, 15) == 15


def test_add_months_crosses_year_end():
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
    assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)


def test_next_due_date_keeps_due_day_and_clamps():
    due = next_due_date(31, date(2024, 1, 31), 1)

    local = timezone.localtime(due)
    assert local.date() == date(2024, 2, 29)
    assert (local.hour, local.minute) == (0, 0)
    assert timezone.is_aware(due)


def test_next_due_date_several_months_ahead():
    due = next_due_date(15, date(2024, 11, 20), 2)
    assert timezone.localtime(due).date() == date(2025, 1, 15)


def test_reminder_date_is_lead_days_before_due():
    reminder = reminder_date(date(2030, 5, 30), now=NOW)
    assert reminder == local_dt(2030, 5, 27, 10)


def test_reminder_date_in_the_past_moves_to_tomorrow():
    reminder = reminder_date(date(2030, 5, 16), now=NOW)
    assert reminder == local_dt(2030, 5, 16, 10)


def test_reminder_date_today_moves_to_tomorrow():
    reminder = reminder_date(date(2030, 5, 18), now=NOW)
    assert reminder == local_dt(2030, 5, 16, 10)


def test_floor_reminder_keeps_future_values():
    future = local_dt(2030, 6, 1, 10)
    assert floor_reminder(future, now=NOW) == future
    assert floor_reminder(None, now=NOW) is None


def test_tomorrow_at_hour():
    assert tomorrow(NOW, 9) == local_dt(2030, 5, 16, 9)
    assert tomorrow(NOW) == local_dt(2030, 5, 16, 0)


def test_months_between_is_inclusive():
    assert months_between(date(2024, 1, 15), date(2024, 12, 1)) == 12
    assert months_between(date(2024, 1, 1), date(2024, 1, 31)) == 1
    assert months_between(date(2024, 5, 1), date(2024, 1, 1)) == 0
    assert months_between(None, date(2024, 1, 1)) == 0


def test_months_covered_by_amount():
    assert months_covered_by_amount(2500, 1000) == {'months_paid': 2, 'remainder': Decimal('500')}
    assert months_covered_by_amount(100, 0) == {'months_paid': 0, 'remainder': Decimal('100')}
    assert months_covered_by_amount(999, 1000) == {'months_paid': 0, 'remainder': Decimal('999')}


def test_advance_by_frequency():
    start = local_dt(2024, 1, 31, 10)

    assert advance_by_frequency(start, 'DAILY') == start + timedelta(days=1)
    assert advance_by_frequency(start, 'WEEKLY') == start + timedelta(days=7)
    assert advance_by_frequency(start, 'MONTHLY') == local_dt(2024, 2, 29, 10)
    assert advance_by_frequency(start, 'NONE') is None
    assert advance_by_frequency(None, 'DAILY') is None


def test_parse_payment_date():
    assert parse_payment_date('2030-05-15') == local_dt(2030, 5, 15, 0)
    assert parse_payment_date(date(2030, 5, 15)) == local_dt(2030, 5, 15, 0)
    assert parse_payment_date(NOW) == NOW
    assert parse_payment_date('not a date') is None
    assert parse_payment_date('2024-02-30') is None
    assert parse_payment_date('') is None
