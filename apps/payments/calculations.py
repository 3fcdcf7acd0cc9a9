# payments/calculations.py

"""
Balance and status calculations.

Pure functions over a FeeAccount (saved or not) and plain amounts. Nothing
here touches the database.
"""

from decimal import Decimal
import logging

from core.utils import safe_decimal, round_money, calculate_percentage, ZERO
from .models import PlanType, PaymentStatus

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100.00')

# Fee resolution sources, in precedence order
FEE_SOURCE_EXPLICIT = 'explicit'
FEE_SOURCE_COURSE = 'course'
FEE_SOURCE_COHORT = 'cohort'
FEE_SOURCE_NONE = 'none'


# =============================================================================
# TOTALS
# =============================================================================

def calculate_total_due(account):
    """
    Total amount owed on an account.

    EMI and CUSTOM accounts with a schedule owe the sum of their installments.
    Everything else owes course fee plus both registration fees.
    """
    schedule = getattr(account, 'emi_schedule', None) or []

    if account.plan_type in (PlanType.EMI, PlanType.CUSTOM) and schedule:
        return round_money(sum((safe_decimal(item.get('amount')) for item in schedule), ZERO))

    return round_money(
        safe_decimal(account.course_fee)
        + safe_decimal(account.course_registration_fee)
        + safe_decimal(account.student_registration_fee)
    )


def calculate_net_amount(amount, discount=ZERO, special_charges=ZERO, tax_amount=ZERO):
    """Amount actually settled by a payment after adjustments."""
    return round_money(
        safe_decimal(amount)
        - safe_decimal(discount)
        + safe_decimal(special_charges)
        + safe_decimal(tax_amount)
    )


def calculate_collection_rate(total_paid, total_due):
    """
    Percentage of the fee collected.

    A payment against a zero fee counts as fully collected.
    """
    total_paid = safe_decimal(total_paid)
    total_due = safe_decimal(total_due)

    if total_due > ZERO:
        return calculate_percentage(total_paid, total_due)
    return HUNDRED if total_paid > ZERO else Decimal('0.00')


def calculate_outstanding(total_paid, total_due, plan_type=None):
    if plan_type == PlanType.MONTHLY_SUBSCRIPTION:
        return Decimal('0.00')
    return round_money(max(ZERO, safe_decimal(total_due) - safe_decimal(total_paid)))


def calculate_payment_summary(account, incoming_amount=ZERO, previous_received=None):
    """
    Balance view of an account after an incoming amount.

    Args:
        account: FeeAccount instance
        incoming_amount: Amount being added on top of what was received
        previous_received: Override for the amount already received
            (defaults to the cached ``received_amount``)

    Returns:
        dict: total_paid, total_due, outstanding_amount, collection_rate
    """
    if previous_received is None:
        previous_received = account.received_amount

    total_due = calculate_total_due(account)
    total_paid = round_money(safe_decimal(previous_received) + safe_decimal(incoming_amount))

    return {
        'total_paid': total_paid,
        'total_due': total_due,
        'outstanding_amount': calculate_outstanding(total_paid, total_due, account.plan_type),
        'collection_rate': calculate_collection_rate(total_paid, total_due),
    }


def determine_status(total_paid, total_due, plan_type=None, is_last_emi=False):
    """
    Payment status from totals.

    Returns:
        str: PENDING, PARTIAL, PAID or OVERPAID; FULLY_PAID for an EMI
        account whose last installment is settled and whose ledger covers
        the total
    """
    total_paid = safe_decimal(total_paid)
    total_due = safe_decimal(total_due)

    if total_paid <= ZERO:
        return PaymentStatus.PENDING
    if total_paid < total_due:
        return PaymentStatus.PARTIAL
    if plan_type == PlanType.EMI and is_last_emi:
        return PaymentStatus.FULLY_PAID
    if total_due <= ZERO:
        return PaymentStatus.PAID
    if total_paid > total_due:
        return PaymentStatus.OVERPAID
    return PaymentStatus.PAID


# =============================================================================
# FEE RESOLUTION
# =============================================================================

def resolve_course_fee(explicit_fee=None, course_id=None, cohort_id=None,
                       course_lookup=None, cohort_lookup=None):
    """
    Resolve the course fee for an enrollment.

    Precedence:
        1. explicit fee given by the caller (when positive)
        2. fee of the course, via ``course_lookup(course_id)``
        3. fee of the cohort's course, via ``cohort_lookup(cohort_id)``
           returning a course id, then ``course_lookup``
        4. zero

    Lookups return None when nothing is found.

    Returns:
        dict: fee, source, course_id (the course the fee came from)
    """
    fee = safe_decimal(explicit_fee)
    if fee > ZERO:
        return {'fee': round_money(fee), 'source': FEE_SOURCE_EXPLICIT, 'course_id': course_id}

    if course_id and course_lookup:
        fee = safe_decimal(course_lookup(course_id))
        if fee > ZERO:
            return {'fee': round_money(fee), 'source': FEE_SOURCE_COURSE, 'course_id': course_id}

    if cohort_id and cohort_lookup and course_lookup:
        cohort_course_id = cohort_lookup(cohort_id)
        if cohort_course_id:
            fee = safe_decimal(course_lookup(cohort_course_id))
            if fee > ZERO:
                return {'fee': round_money(fee), 'source': FEE_SOURCE_COHORT, 'course_id': cohort_course_id}

    logger.debug(f"No course fee found for course={course_id} cohort={cohort_id}")
    return {'fee': Decimal('0.00'), 'source': FEE_SOURCE_NONE, 'course_id': course_id}


def resolve_registration_fees(account, settings):
    """
    Registration fees for an account.

    A non-zero value already on the account always wins; zero values fall
    back to the tenant's defaults.
    """
    course_registration_fee = safe_decimal(getattr(account, 'course_registration_fee', None))
    student_registration_fee = safe_decimal(getattr(account, 'student_registration_fee', None))

    if course_registration_fee <= ZERO:
        course_registration_fee = safe_decimal(settings.default_course_registration_fee)
    if student_registration_fee <= ZERO:
        student_registration_fee = safe_decimal(settings.default_student_registration_fee)

    return {
        'course_registration_fee': round_money(course_registration_fee),
        'student_registration_fee': round_money(student_registration_fee),
    }
