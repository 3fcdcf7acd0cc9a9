# tests/factories.py

"""Builders shared by the payment tests."""

from django.utils import timezone
from datetime import datetime
from decimal import Decimal

from payments.models import FeeAccount, PlanType

TENANT = 'academy_a'
OTHER_TENANT = 'academy_b'


def local_dt(year, month, day, hour=12, minute=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute))


# Fixed clock used across the suite
NOW = local_dt(2030, 5, 15, 12, 0)


def make_schedule(*due_dates, amount='1000.00'):
    return [
        {
            'emi_number': index + 1,
            'due_date': due.isoformat(),
            'amount': amount,
            'status': 'PENDING',
            'paid_date': None,
            'paid_amount': None,
            'transaction_id': None,
        }
        for index, due in enumerate(due_dates)
    ]


def create_account(tenant_id=TENANT, **fields):
    defaults = {
        'student_id': 'STU-001',
        'student_name': 'Asha Rao',
        'course_id': 'COURSE-PY',
        'course_name': 'Python Foundations',
        'course_fee': Decimal('5000.00'),
        'plan_type': PlanType.ONE_TIME,
    }
    defaults.update(fields)
    return FeeAccount.objects.create(tenant_id=tenant_id, **defaults)


def payment_data(account, amount, **extra):
    data = {
        'account_id': account.pk,
        'student_id': account.student_id,
        'student_name': account.student_name,
        'amount': Decimal(str(amount)),
        'date': NOW,
        'mode': 'UPI',
        'received_by': 'staff-1',
    }
    data.update(extra)
    return data
