"""Balance, status and fee resolution calculations."""

from decimal import Decimal
from datetime import date

from core.models import FinancialSettings
from payments.models import FeeAccount, PlanType, PaymentStatus
from payments.calculations import (
    calculate_total_due, calculate_payment_summary, calculate_collection_rate,
    calculate_net_amount, determine_status, resolve_course_fee,
    resolve_registration_fees, FEE_SOURCE_EXPLICIT, FEE_SOURCE_COURSE,
    FEE_SOURCE_COHORT, FEE_SOURCE_NONE,
)
from tests.factories import make_schedule

COURSE_FEES = {'COURSE-PY': Decimal('8000'), 'COURSE-FREE': Decimal('0')}
COHORT_COURSES = {'COHORT-24A': 'COURSE-PY', 'COHORT-EMPTY': None}


def test_total_due_sums_fixed_fees():
    account = FeeAccount(
        course_fee=Decimal('5000'),
        course_registration_fee=Decimal('1000'),
        student_registration_fee=Decimal('500'),
        plan_type=PlanType.ONE_TIME,
    )
    assert calculate_total_due(account) == Decimal('6500.00')


def test_total_due_for_emi_uses_schedule():
    account = FeeAccount(
        course_fee=Decimal('9999'),
        plan_type=PlanType.EMI,
        emi_schedule=make_schedule(date(2030, 1, 1), date(2030, 2, 1), date(2030, 3, 1)),
    )
    assert calculate_total_due(account) == Decimal('3000.00')


def test_collection_rate():
    assert calculate_collection_rate(3000, 5000) == Decimal('60.00')
    assert calculate_collection_rate(100, 0) == Decimal('100.00')
    assert calculate_collection_rate(0, 0) == Decimal('0.00')


def test_net_amount():
    assert calculate_net_amount(1000, discount=100, special_charges=50, tax_amount=18) == Decimal('968.00')


def test_determine_status():
    assert determine_status(0, 5000) == PaymentStatus.PENDING
    assert determine_status(3000, 5000) == PaymentStatus.PARTIAL
    assert determine_status(5000, 5000) == PaymentStatus.PAID
    assert determine_status(6000, 5000) == PaymentStatus.OVERPAID
    assert determine_status(100, 0) == PaymentStatus.PAID
    assert determine_status(3000, 3000, PlanType.EMI, is_last_emi=True) == PaymentStatus.FULLY_PAID
    assert determine_status(1000, 3000, PlanType.EMI) == PaymentStatus.PARTIAL


def test_payment_summary_never_goes_negative():
    account = FeeAccount(course_fee=Decimal('5000'), received_amount=Decimal('4000'))

    summary = calculate_payment_summary(account, Decimal('2000'))

    assert summary['total_paid'] == Decimal('6000.00')
    assert summary['total_due'] == Decimal('5000.00')
    assert summary['outstanding_amount'] == Decimal('0.00')
    assert summary['collection_rate'] == Decimal('120.00')


def test_payment_summary_previous_received_override():
    account = FeeAccount(course_fee=Decimal('5000'), received_amount=Decimal('4000'))

    summary = calculate_payment_summary(account, Decimal('1000'), previous_received=Decimal('0'))

    assert summary['total_paid'] == Decimal('1000.00')
    assert summary['outstanding_amount'] == Decimal('4000.00')


def test_monthly_subscription_has_no_outstanding():
    account = FeeAccount(
        course_fee=Decimal('12000'),
        plan_type=PlanType.MONTHLY_SUBSCRIPTION,
    )
    summary = calculate_payment_summary(account, Decimal('1000'))
    assert summary['outstanding_amount'] == Decimal('0.00')


def test_resolve_course_fee_precedence():
    lookups = {'course_lookup': COURSE_FEES.get, 'cohort_lookup': COHORT_COURSES.get}

    explicit = resolve_course_fee(Decimal('7000'), 'COURSE-PY', 'COHORT-24A', **lookups)
    assert (explicit['fee'], explicit['source']) == (Decimal('7000.00'), FEE_SOURCE_EXPLICIT)

    course = resolve_course_fee(None, 'COURSE-PY', 'COHORT-24A', **lookups)
    assert (course['fee'], course['source']) == (Decimal('8000.00'), FEE_SOURCE_COURSE)

    cohort = resolve_course_fee(0, 'COURSE-FREE', 'COHORT-24A', **lookups)
    assert (cohort['fee'], cohort['source']) == (Decimal('8000.00'), FEE_SOURCE_COHORT)
    assert cohort['course_id'] == 'COURSE-PY'

    cohort_only = resolve_course_fee(None, '', 'COHORT-24A', **lookups)
    assert cohort_only['course_id'] == 'COURSE-PY'

    missing = resolve_course_fee(None, 'UNKNOWN', 'COHORT-EMPTY', **lookups)
    assert (missing['fee'], missing['source']) == (Decimal('0.00'), FEE_SOURCE_NONE)


def test_resolve_course_fee_without_lookups():
    assert resolve_course_fee()['fee'] == Decimal('0.00')


def test_registration_fees_keep_existing_values():
    settings = FinancialSettings(
        default_course_registration_fee=Decimal('1000.00'),
        default_student_registration_fee=Decimal('500.00'),
    )

    account = FeeAccount(course_registration_fee=Decimal('750'), student_registration_fee=Decimal('0'))
    fees = resolve_registration_fees(account, settings)

    assert fees['course_registration_fee'] == Decimal('750.00')
    assert fees['student_registration_fee'] == Decimal('500.00')


def test_emi_is_fully_paid_only_when_ledger_covers_total():
    assert determine_status(2000, 3000, PlanType.EMI, is_last_emi=True) == PaymentStatus.PARTIAL
    assert determine_status(0, 3000, PlanType.EMI, is_last_emi=True) == PaymentStatus.PENDING
    assert determine_status(3500, 3000, PlanType.EMI, is_last_emi=True) == PaymentStatus.FULLY_PAID
