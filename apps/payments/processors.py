# payments/processors.py

"""
Plan-specific payment processors.

Each processor takes the current account state and an incoming payment and
returns a dict of field updates for the account. Processors never write to
the database; PaymentRecordService applies the updates.

Contract:
    processor(account, payment_data, transaction_id, now) -> dict
"""

from django.utils import timezone
import logging

from core.utils import safe_decimal
from .models import PlanType, PaymentStatus, ReminderFrequency, SubscriptionStatus, EmiStatus
from .calculations import calculate_payment_summary, determine_status
from .dates import (
    REMINDER_LEAD_DAYS, FOLLOWUP_DUE_HOUR, FOLLOWUP_REMINDER_HOUR,
    next_due_date, reminder_date, tomorrow, start_of_day, to_local_date,
)

logger = logging.getLogger(__name__)


class PlanProcessingError(Exception):
    """A payment cannot be applied to the account's plan"""
    pass


# =============================================================================
# HELPERS
# =============================================================================

def _paid_at(payment_data, now):
    paid_at = payment_data.get('date') or now
    if hasattr(paid_at, 'hour') and timezone.is_naive(paid_at):
        paid_at = timezone.make_aware(paid_at)
    elif not hasattr(paid_at, 'hour'):
        paid_at = start_of_day(paid_at)
    return paid_at


def _balance_updates(account, payment_data, plan_type, is_last_emi=False):
    summary = calculate_payment_summary(account, payment_data.get('amount'))
    return {
        'received_amount': summary['total_paid'],
        'total_due': summary['total_due'],
        'outstanding_amount': summary['outstanding_amount'],
        'collection_rate': summary['collection_rate'],
        'payment_status': determine_status(
            summary['total_paid'], summary['total_due'], plan_type, is_last_emi
        ),
    }


def _cleared_reminders():
    return {
        'reminder_enabled': False,
        'reminder_frequency': ReminderFrequency.NONE,
        'next_reminder_date': None,
        'next_due_date': None,
        'next_payment_date': None,
    }


def next_pending_emi_index(schedule):
    """Index of the first unpaid installment, or len(schedule) when all are paid."""
    for index, item in enumerate(schedule or []):
        if item.get('status') != EmiStatus.PAID:
            return index
    return len(schedule or [])


def _emi_item_reminders(item, now):
    item_due = to_local_date(item['due_date'])
    if item_due < to_local_date(now):
        due = tomorrow(now, FOLLOWUP_DUE_HOUR)
    else:
        due = start_of_day(item_due)

    return {
        'next_due_date': due,
        'next_payment_date': due,
        'next_reminder_date': reminder_date(item_due, REMINDER_LEAD_DAYS, now=now),
        'reminder_enabled': True,
        'reminder_frequency': ReminderFrequency.MONTHLY,
    }


# =============================================================================
# PROCESSORS
# =============================================================================

def process_one_time_payment(account, payment_data, transaction_id, now):
    """
    Lump-sum plan.

    Full payment clears every reminder. A partial payment is chased daily
    from tomorrow unless the caller asked to stop reminders.
    """
    updates = _balance_updates(account, payment_data, PlanType.ONE_TIME)
    updates['last_payment_date'] = _paid_at(payment_data, now)

    if updates['received_amount'] >= updates['total_due']:
        updates.update(_cleared_reminders())
        updates['outstanding_amount'] = safe_decimal(0)
        return updates

    if payment_data.get('stop_reminders'):
        updates.update(_cleared_reminders())
        return updates

    due = tomorrow(now, FOLLOWUP_DUE_HOUR)
    updates.update({
        'reminder_enabled': True,
        'reminder_frequency': ReminderFrequency.DAILY,
        'next_due_date': due,
        'next_payment_date': due,
        'next_reminder_date': tomorrow(now, FOLLOWUP_REMINDER_HOUR),
    })
    return updates


def process_monthly_subscription_payment(account, payment_data, transaction_id, now):
    """
    Monthly subscription.

    Each payment rolls the due day one month past the payment date and
    schedules a reminder ahead of it. There is no amortizing balance, so
    outstanding is always zero.
    """
    paid_at = _paid_at(payment_data, now)
    updates = _balance_updates(account, payment_data, PlanType.MONTHLY_SUBSCRIPTION)

    due_day = account.monthly_due_day or to_local_date(paid_at).day
    due = next_due_date(due_day, paid_at, 1)

    updates.update({
        'outstanding_amount': safe_decimal(0),
        'last_payment_date': paid_at,
        'next_due_date': due,
        'next_payment_date': due,
        'next_reminder_date': reminder_date(due, REMINDER_LEAD_DAYS, now=now),
        'reminder_enabled': payment_data.get('reminder_enabled') is not False,
        'reminder_frequency': ReminderFrequency.MONTHLY,
        'subscription_status': SubscriptionStatus.ACTIVE,
    })
    logger.debug(
        f"Monthly payment on account {account.pk}: next due {due}, "
        f"reminder {updates['next_reminder_date']}"
    )
    return updates


def process_emi_payment(account, payment_data, transaction_id, now):
    """
    EMI plan.

    Settles the installment at ``emi_index``, which must be the current
    pending installment. Settling the last one completes the plan.
    """
    schedule = [dict(item) for item in (account.emi_schedule or [])]
    emi_index = payment_data.get('emi_index')

    if not schedule:
        raise PlanProcessingError("EMI schedule not found for this account")
    if emi_index is None:
        raise PlanProcessingError("EMI index is required for EMI payments")

    try:
        emi_index = int(emi_index)
    except (TypeError, ValueError):
        raise PlanProcessingError(f"Invalid EMI index: {emi_index}")

    if emi_index < 0 or emi_index >= len(schedule):
        raise PlanProcessingError(f"EMI index {emi_index} is outside the schedule")
    if schedule[emi_index].get('status') == EmiStatus.PAID:
        raise PlanProcessingError(f"EMI {emi_index + 1} is already paid")
    if emi_index != account.current_emi_index:
        raise PlanProcessingError(
            f"EMI index {emi_index} does not match the current installment "
            f"({account.current_emi_index})"
        )

    paid_at = _paid_at(payment_data, now)
    schedule[emi_index].update({
        'status': EmiStatus.PAID,
        'paid_date': paid_at.isoformat(),
        'paid_amount': str(safe_decimal(payment_data.get('amount'))),
        'transaction_id': transaction_id or '',
    })

    new_index = next_pending_emi_index(schedule)
    is_last_emi = new_index >= len(schedule)

    updates = _balance_updates(account, payment_data, PlanType.EMI, is_last_emi)
    updates.update({
        'emi_schedule': schedule,
        'current_emi_index': new_index,
        'last_payment_date': paid_at,
    })

    if emi_index == 0:
        updates['subscription_status'] = SubscriptionStatus.ACTIVE

    if is_last_emi:
        updates.update(_cleared_reminders())
        updates['subscription_status'] = SubscriptionStatus.COMPLETED
        return updates

    updates.update(_emi_item_reminders(schedule[new_index], now))
    updates['reminder_enabled'] = payment_data.get('reminder_enabled') is not False
    return updates


def process_custom_payment(account, payment_data, transaction_id, now):
    """Balance math only; reminders are taken as given by the caller."""
    updates = _balance_updates(account, payment_data, PlanType.CUSTOM)
    updates['last_payment_date'] = _paid_at(payment_data, now)

    if payment_data.get('reminder_enabled') is not None:
        updates['reminder_enabled'] = bool(payment_data['reminder_enabled'])
        updates['next_reminder_date'] = payment_data.get('next_reminder_date')

    return updates


# =============================================================================
# LEDGER CORRECTIONS
# =============================================================================

def reopen_emi_installment(account, emi_number):
    """
    Mark a settled installment unpaid again after its payment left the ledger.

    Returns:
        dict: emi_schedule and current_emi_index updates, or {} when the
        installment is unknown or not paid
    """
    schedule = [dict(item) for item in (account.emi_schedule or [])]
    index = int(emi_number) - 1

    if index < 0 or index >= len(schedule) or schedule[index].get('status') != EmiStatus.PAID:
        return {}

    schedule[index].update({
        'status': EmiStatus.PENDING,
        'paid_date': None,
        'paid_amount': None,
        'transaction_id': None,
    })
    return {
        'emi_schedule': schedule,
        'current_emi_index': next_pending_emi_index(schedule),
    }


def reschedule_reminders(account, now=None):
    """
    Reminder state for an account whose balance was reopened by a ledger
    correction (soft delete, reduced amount).

    One-time accounts go back to the daily follow-up from tomorrow; EMI
    accounts are reminded ahead of their next unpaid installment. Monthly
    and custom schedules do not follow the balance and are left alone.

    Returns:
        dict: Field updates, {} when nothing changes
    """
    now = timezone.localtime(now or timezone.now())

    if account.payment_status not in (PaymentStatus.PENDING, PaymentStatus.PARTIAL):
        return {}

    if account.plan_type == PlanType.ONE_TIME:
        due = tomorrow(now, FOLLOWUP_DUE_HOUR)
        return {
            'reminder_enabled': True,
            'reminder_frequency': ReminderFrequency.DAILY,
            'next_due_date': due,
            'next_payment_date': due,
            'next_reminder_date': tomorrow(now, FOLLOWUP_REMINDER_HOUR),
        }

    if account.plan_type == PlanType.EMI:
        schedule = account.emi_schedule or []
        index = next_pending_emi_index(schedule)
        if index >= len(schedule):
            return {}
        updates = _emi_item_reminders(schedule[index], now)
        updates['subscription_status'] = SubscriptionStatus.ACTIVE
        return updates

    return {}


PLAN_PROCESSORS = {
    PlanType.ONE_TIME: process_one_time_payment,
    PlanType.MONTHLY_SUBSCRIPTION: process_monthly_subscription_payment,
    PlanType.EMI: process_emi_payment,
    PlanType.CUSTOM: process_custom_payment,
}


# =============================================================================
# DISPATCH
# =============================================================================

def apply_payment_plan(account, payment_data, transaction_id=None, now=None):
    """
    Run the processor for the payment's plan type.

    Args:
        account: FeeAccount the payment is for
        payment_data: Incoming payment dict (amount, date, plan_type, ...)
        transaction_id: Transaction reference stored on EMI items
        now: Clock override

    Returns:
        dict: {'success': True, 'updates': {...}} or
              {'success': False, 'error': str}
    """
    now = timezone.localtime(now or timezone.now())
    plan_type = payment_data.get('plan_type') or account.plan_type

    processor = PLAN_PROCESSORS.get(plan_type)
    if processor is None:
        logger.warning(f"Unsupported plan type '{plan_type}' for account {account.pk}")
        return {'success': False, 'error': f"Unsupported plan type: {plan_type}"}

    try:
        updates = processor(account, payment_data, transaction_id, now)
    except PlanProcessingError as e:
        logger.warning(f"Payment rejected for account {account.pk}: {e}")
        return {'success': False, 'error': str(e)}

    return {'success': True, 'updates': updates}
