# payments/reminders.py

"""
Payment reminder sweep.

Finds fee accounts whose next reminder is due, announces each one through
the payment_reminder_due signal and moves the account's next reminder
forward by its cadence. Run periodically via
``manage.py send_payment_reminders``.
"""

from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone
import logging

from academia.managers import require_tenant_id
from core.models import FinancialSettings
from core.utils import safe_decimal, format_money
from .models import FeeAccount, PlanType, PaymentStatus, ReminderFrequency, SubscriptionStatus, EmiStatus
from .dates import advance_by_frequency, floor_reminder
from .signals import payment_reminder_due

logger = logging.getLogger(__name__)

REMINDER_UPCOMING = 'UPCOMING'
REMINDER_FOLLOW_UP = 'FOLLOW_UP'


def get_due_reminders(tenant_id, now=None):
    """
    Accounts of a tenant with a reminder due at or before ``now``.

    Daily follow-ups stop once an account has received
    FinancialSettings.max_reminder_attempts reminders.
    """
    tenant_id = require_tenant_id(tenant_id)
    now = now or timezone.now()
    settings = FinancialSettings.get_instance(tenant_id)

    return FeeAccount.objects.for_tenant(tenant_id).filter(
        reminder_enabled=True,
        next_reminder_date__isnull=False,
        next_reminder_date__lte=now,
        account_status='ACTIVE',
    ).filter(
        Q(payment_status__in=[PaymentStatus.PENDING, PaymentStatus.PARTIAL])
        | Q(plan_type=PlanType.MONTHLY_SUBSCRIPTION, subscription_status=SubscriptionStatus.ACTIVE)
    ).exclude(
        reminder_frequency=ReminderFrequency.DAILY,
        reminders_count__gte=settings.max_reminder_attempts,
    ).order_by('next_reminder_date')


def _amount_due(account):
    if account.plan_type == PlanType.MONTHLY_SUBSCRIPTION:
        return account.monthly_installment
    if account.plan_type == PlanType.EMI:
        for item in account.emi_schedule or []:
            if item.get('status') != EmiStatus.PAID:
                return safe_decimal(item.get('amount'))
    return account.outstanding_amount


def dispatch_reminder(account, now=None):
    """
    Send one reminder for an account and schedule the next.

    Returns:
        dict: account_id, reminder_type, amount_due, next_reminder_date,
              delivered (receivers that handled the signal)
    """
    now = timezone.localtime(now or timezone.now())

    if account.next_due_date and account.next_due_date > now:
        reminder_type = REMINDER_UPCOMING
    else:
        reminder_type = REMINDER_FOLLOW_UP

    amount_due = _amount_due(account)

    responses = payment_reminder_due.send_robust(
        sender=FeeAccount,
        account=account,
        tenant_id=account.tenant_id,
        reminder_type=reminder_type,
        amount_due=amount_due,
        due_date=account.next_due_date,
    )
    delivered = 0
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(f"Reminder receiver {receiver} failed for account {account.pk}: {response}")
        else:
            delivered += 1

    next_at = advance_by_frequency(account.next_reminder_date, account.reminder_frequency)
    if next_at is not None:
        next_at = floor_reminder(next_at, now=now, hour=timezone.localtime(next_at).hour)

    account.reminders_count += 1
    account.last_reminder_sent_at = now
    account.next_reminder_date = next_at
    account.save(update_fields=[
        'reminders_count', 'last_reminder_sent_at', 'next_reminder_date', 'updated_at'
    ])

    currency = FinancialSettings.get_instance(account.tenant_id).currency
    logger.info(
        f"Dispatched {reminder_type} reminder #{account.reminders_count} for "
        f"{account.student_name} ({format_money(amount_due, currency)} due, "
        f"account {account.pk}); next {next_at}"
    )

    return {
        'account_id': account.pk,
        'reminder_type': reminder_type,
        'amount_due': amount_due,
        'next_reminder_date': next_at,
        'delivered': delivered,
    }


def send_due_reminders(tenant_id, now=None, dry_run=False):
    """
    Dispatch every due reminder of a tenant.

    Returns:
        dict: due, sent, failed counts (sent is 0 on a dry run)
    """
    tenant_id = require_tenant_id(tenant_id)
    now = now or timezone.now()

    accounts = list(get_due_reminders(tenant_id, now))
    results = {'due': len(accounts), 'sent': 0, 'failed': 0}

    if dry_run:
        logger.info(f"Dry run: {len(accounts)} reminders due for tenant {tenant_id}")
        return results

    for account in accounts:
        try:
            dispatch_reminder(account, now)
            results['sent'] += 1
        except DatabaseError as e:
            logger.exception(f"Failed to dispatch reminder for account {account.pk}: {e}")
            results['failed'] += 1

    logger.info(
        f"Reminder sweep for tenant {tenant_id}: {results['sent']} sent, "
        f"{results['failed']} failed of {results['due']} due"
    )
    return results
