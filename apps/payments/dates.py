# payments/dates.py

"""
Calendar arithmetic for fee schedules and reminders.

All returned datetimes are timezone-aware in the operational timezone
(settings.TIME_ZONE). Months are 1-based (January = 1).
"""

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import calendar
import logging

from core.utils import safe_decimal, get_current_time, ZERO

logger = logging.getLogger(__name__)


# =============================================================================
# SCHEDULING POLICY
# =============================================================================

# Days before a monthly/EMI due date that the reminder fires
REMINDER_LEAD_DAYS = 3

# Hour of day reminders are scheduled for
REMINDER_HOUR = 10

# Partial one-time payments are chased the next day
FOLLOWUP_DAYS = 1
FOLLOWUP_DUE_HOUR = 10
FOLLOWUP_REMINDER_HOUR = 9

WEEKLY_REMINDER_DAYS = 7


# =============================================================================
# HELPERS
# =============================================================================

def _now(now=None):
    return timezone.localtime(now) if now is not None else get_current_time()


def to_local_date(value):
    """Calendar date of a date/datetime in the operational timezone."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localtime(value).date()
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_payment_date(value):
    """
    Coerce a payment date to an aware datetime.

    Accepts datetimes, dates and ISO strings. Returns None when the value
    cannot be parsed.
    """
    if value is None or value == '':
        return None
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
            if parsed is None:
                parsed_date = parse_date(value)
                return start_of_day(parsed_date) if parsed_date else None
        except ValueError:
            return None
        value = parsed
    if isinstance(value, datetime):
        return timezone.make_aware(value) if timezone.is_naive(value) else value
    if isinstance(value, date):
        return start_of_day(value)
    return None


def at_hour(day, hour=0):
    """Aware datetime for ``day`` at ``hour``:00 local time."""
    return timezone.make_aware(datetime.combine(to_local_date(day), time(hour=hour)))


def start_of_day(value):
    return at_hour(value, 0)


# =============================================================================
# CALENDAR FUNCTIONS
# =============================================================================

def last_day_of_month(year, month):
    """
    Number of days in a month.

    Example:
        >>> last_day_of_month(2024, 2)   # 29
        >>> last_day_of_month(2023, 2)   # 28
    """
    return calendar.monthrange(year, month)[1]


def clamp_day_to_month(year, month, day):
    """Clamp a due day to the length of the target month."""
    return min(day, last_day_of_month(year, month))


def add_months(value, months, day=None):
    """
    Move a date forward by whole calendar months.

    Args:
        value: Starting date or datetime
        months: Number of months to add (may be negative)
        day: Preferred day of month (defaults to the starting day)

    Returns:
        date: Result with the day clamped to the target month
    """
    start = to_local_date(value)
    total = start.year * 12 + (start.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    return date(year, month, clamp_day_to_month(year, month, day or start.day))


def next_due_date(due_day, from_date=None, months_ahead=1):
    """
    Next monthly due date.

    The due day is kept across months and clamped when the target month is
    shorter (due day 31 falls on 29 Feb in a leap year).

    Returns:
        datetime: Start of the due day, timezone-aware
    """
    from_date = from_date if from_date is not None else _now()
    return start_of_day(add_months(from_date, months_ahead, day=due_day))


def tomorrow(now=None, hour=0):
    """Tomorrow's local date at ``hour``:00."""
    return at_hour(_now(now).date() + timedelta(days=FOLLOWUP_DAYS), hour)


def floor_reminder(value, now=None, hour=REMINDER_HOUR):
    """
    Replace a reminder that is today or earlier with tomorrow.

    A same-day or past reminder is never returned.
    """
    if value is None:
        return None
    if to_local_date(value) <= _now(now).date():
        floored = tomorrow(now, hour)
        logger.debug(f"Reminder {value} is not in the future, moved to {floored}")
        return floored
    return value


def reminder_date(due_date, lead_days=REMINDER_LEAD_DAYS, now=None, hour=REMINDER_HOUR):
    """
    Reminder datetime ``lead_days`` before a due date.

    Example:
        >>> reminder_date(date(2030, 5, 10))   # 2030-05-07 10:00 local
    """
    if due_date is None:
        return None
    candidate = at_hour(to_local_date(due_date) - timedelta(days=lead_days), hour)
    return floor_reminder(candidate, now=now, hour=hour)


def months_between(start, end):
    """
    Inclusive number of calendar months from ``start`` to ``end``.

    Returns 0 when either bound is missing or end precedes start.
    """
    if start is None or end is None:
        return 0
    start = to_local_date(start)
    end = to_local_date(end)
    if end < start:
        return 0
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def months_covered_by_amount(amount, installment):
    """
    Whole months an amount pays for at a given monthly installment.

    Example:
        >>> months_covered_by_amount(2500, 1000)
        {'months_paid': 2, 'remainder': Decimal('500')}
    """
    amount = safe_decimal(amount)
    installment = safe_decimal(installment)

    if installment <= ZERO:
        return {'months_paid': 0, 'remainder': amount}

    months_paid = int(amount // installment) if amount > ZERO else 0
    remainder = amount - (installment * Decimal(months_paid))
    return {'months_paid': months_paid, 'remainder': remainder}


def advance_by_frequency(value, frequency):
    """
    Next occurrence of a reminder for a cadence.

    Returns None for the NONE cadence (or an unknown one).
    """
    if value is None:
        return None
    value = timezone.localtime(value) if timezone.is_aware(value) else value

    if frequency == 'DAILY':
        return value + timedelta(days=1)
    if frequency == 'WEEKLY':
        return value + timedelta(days=WEEKLY_REMINDER_DAYS)
    if frequency == 'MONTHLY':
        return at_hour(add_months(value, 1), value.hour)
    return None
