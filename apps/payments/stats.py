# payments/stats.py

"""
Payment statistics.

Helpers over lists of PaymentRecord (history views) plus a tenant-wide
summary built with database aggregates.
"""

from django.db.models import Count, Sum, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone
from collections import Counter
from decimal import ROUND_CEILING
import logging

from core.utils import round_money, safe_decimal, calculate_percentage, ZERO

logger = logging.getLogger(__name__)


# =============================================================================
# RECORD LIST HELPERS
# =============================================================================

def calculate_payment_statistics(records):
    """
    Totals over a list of payment records.

    Returns:
        dict: total_paid, average_payment, payment_count,
              first_payment_date, last_payment_date, payment_modes
    """
    records = sorted(records, key=lambda r: r.paid_at)

    if not records:
        return {
            'total_paid': ZERO,
            'average_payment': ZERO,
            'payment_count': 0,
            'first_payment_date': None,
            'last_payment_date': None,
            'payment_modes': {},
        }

    total_paid = sum((safe_decimal(r.amount) for r in records), ZERO)

    return {
        'total_paid': round_money(total_paid),
        'average_payment': round_money(total_paid / len(records)),
        'payment_count': len(records),
        'first_payment_date': records[0].paid_at,
        'last_payment_date': records[-1].paid_at,
        'payment_modes': dict(Counter(r.payment_mode for r in records)),
    }


def group_payments_by_month(records):
    """
    Group payment records by local calendar month.

    Returns:
        dict: {'2024-10': {'payments': [...], 'total': Decimal, 'count': int}}
    """
    grouped = {}

    for record in records:
        month_key = timezone.localtime(record.paid_at).strftime('%Y-%m')
        bucket = grouped.setdefault(month_key, {'payments': [], 'total': ZERO, 'count': 0})
        bucket['payments'].append(record)
        bucket['total'] += safe_decimal(record.amount)
        bucket['count'] += 1

    return grouped


def calculate_projected_completion_date(records, remaining_balance):
    """
    Project when the balance will be cleared at the historical pace.

    Uses the average payment amount and the average gap between payments.
    Needs at least two payments and a positive balance, otherwise None.
    """
    remaining_balance = safe_decimal(remaining_balance)
    if len(records) < 2 or remaining_balance <= ZERO:
        return None

    records = sorted(records, key=lambda r: r.paid_at)
    total_paid = sum((safe_decimal(r.amount) for r in records), ZERO)
    average_payment = total_paid / len(records)
    if average_payment <= ZERO:
        return None

    span = records[-1].paid_at - records[0].paid_at
    average_gap = span / (len(records) - 1)

    remaining_payments = int((remaining_balance / average_payment).to_integral_value(rounding=ROUND_CEILING))
    return records[-1].paid_at + average_gap * remaining_payments


# =============================================================================
# TENANT SUMMARY
# =============================================================================

def get_payment_statistics(tenant_id, filters=None):
    """
    Tenant-wide payment statistics.

    Args:
        tenant_id: Tenant to report on
        filters (dict): Optional filters
            - date_from: Payments on or after this datetime
            - date_to: Payments on or before this datetime
            - payment_mode: Limit to one payment mode

    Returns:
        dict: Payment and account statistics
    """
    from .models import FeeAccount, PaymentRecord

    payments = PaymentRecord.objects.for_tenant(tenant_id).filter(
        is_deleted=False,
        status__in=PaymentRecord.COUNTED_STATUSES,
    )

    if filters:
        if filters.get('date_from'):
            payments = payments.filter(paid_at__gte=filters['date_from'])
        if filters.get('date_to'):
            payments = payments.filter(paid_at__lte=filters['date_to'])
        if filters.get('payment_mode'):
            payments = payments.filter(payment_mode=filters['payment_mode'])

    totals = payments.aggregate(
        total_collected=Sum('amount'),
        total_discount=Sum('discount'),
        payment_count=Count('id'),
        verified_count=Count('id', filter=Q(status='VERIFIED')),
    )

    by_mode = {
        row['payment_mode']: {
            'count': row['count'],
            'total': round_money(row['total']),
        }
        for row in payments.values('payment_mode').annotate(
            count=Count('id'), total=Sum('amount')
        ).order_by('payment_mode')
    }

    by_month = [
        {
            'month': row['month'],
            'count': row['count'],
            'total': round_money(row['total']),
        }
        for row in payments.annotate(month=TruncMonth('paid_at')).values('month').annotate(
            count=Count('id'), total=Sum('amount')
        ).order_by('month')
    ]

    accounts = FeeAccount.objects.for_tenant(tenant_id).exclude(account_status='CLOSED')
    account_totals = accounts.aggregate(
        total_due=Sum('total_due'),
        total_received=Sum('received_amount'),
        total_outstanding=Sum('outstanding_amount'),
        account_count=Count('id'),
    )
    by_status = dict(
        accounts.values_list('payment_status').annotate(count=Count('id')).order_by()
    )

    total_due = round_money(account_totals['total_due'] or ZERO)
    total_received = round_money(account_totals['total_received'] or ZERO)

    return {
        'total_collected': round_money(totals['total_collected'] or ZERO),
        'total_discount': round_money(totals['total_discount'] or ZERO),
        'payment_count': totals['payment_count'],
        'verified_count': totals['verified_count'],
        'by_payment_mode': by_mode,
        'by_month': by_month,
        'account_count': account_totals['account_count'],
        'total_due': total_due,
        'total_received': total_received,
        'total_outstanding': round_money(account_totals['total_outstanding'] or ZERO),
        'collection_rate': calculate_percentage(total_received, total_due),
        'accounts_by_status': by_status,
    }
