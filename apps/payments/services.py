# payments/services.py

"""
Core Payment Operations

- PaymentRecordService: the payment ledger (add, read, update, verify,
  soft-delete) and recomputation of account aggregates from it
- FeeAccountService: fee account creation, EMI schedules, subscription views

Every operation takes an explicit tenant_id. Write paths and record lookups
return result dicts ({'success': True, ...} or {'success': False, 'error'})
instead of raising.
"""

from decimal import ROUND_DOWN
from django.db import transaction, DatabaseError, IntegrityError
from django.db.models import Sum, Count, Max
from django.core.exceptions import ValidationError
from django.utils import timezone
import logging

from academia.managers import require_tenant_id, TenantRequiredError
from core.models import FinancialSettings
from core.utils import safe_decimal, round_money, get_today, CENT, ZERO
from .models import FeeAccount, PaymentRecord, PlanType, PaymentStatus, EmiStatus
from .calculations import (
    calculate_total_due, calculate_net_amount, calculate_collection_rate,
    calculate_outstanding, determine_status, resolve_course_fee,
    resolve_registration_fees,
)
from .processors import apply_payment_plan, reopen_emi_installment, reschedule_reminders
from .dates import (
    parse_payment_date, to_local_date, add_months, months_between,
    months_covered_by_amount,
)
from .utils import generate_invoice_number, generate_receipt_number

logger = logging.getLogger(__name__)


ACCOUNT_NOT_FOUND = 'Fee account not found'
RECORD_NOT_FOUND = 'Payment record not found'


def _failure(error, **extra):
    return {'success': False, 'error': error, **extra}


# =============================================================================
# PAYMENT RECORD SERVICE - LEDGER OPERATIONS
# =============================================================================

class PaymentRecordService:
    """
    Payment ledger operations.

    The ledger is the source of truth: account aggregates are rebuilt from
    it after every mutation.
    """

    REQUIRED_FIELDS = [
        ('account_id', 'Account ID is required'),
        ('student_id', 'Student ID is required'),
        ('student_name', 'Student name is required'),
        ('amount', 'Payment amount is required'),
        ('date', 'Payment date is required'),
        ('mode', 'Payment mode is required'),
        ('received_by', 'Received by is required'),
    ]

    ADJUSTMENT_FIELDS = [
        ('discount', 'Discount cannot be negative'),
        ('special_charges', 'Special charges cannot be negative'),
        ('tax_amount', 'Tax amount cannot be negative'),
    ]

    SORT_FIELDS = {
        'date': 'paid_at',
        'paid_at': 'paid_at',
        'amount': 'amount',
        'created_at': 'created_at',
        'receipt_number': 'receipt_number',
    }

    # Fields whose change alters the balance
    BALANCE_FIELDS = {'amount', 'status'}

    # Account fields rebuilt from the ledger; nothing else is written by a recompute
    AGGREGATE_FIELDS = [
        'received_amount',
        'total_due',
        'outstanding_amount',
        'collection_rate',
        'payment_status',
        'last_payment_date',
    ]

    # -------------------------------------------------------------------------
    # VALIDATION
    # -------------------------------------------------------------------------

    @staticmethod
    def validate(payment_data, current_balance=None, now=None):
        """
        Validate an incoming payment.

        Args:
            payment_data (dict): Incoming payment
            current_balance: Remaining amount on the account, or a balance
                dict carrying ``remaining_amount``
            now: Clock override

        Returns:
            dict: is_valid, errors, warnings

        Errors abort the payment. Warnings (overpayment, odd dates) travel
        with a successful result.
        """
        errors = []
        warnings = []

        for field, message in PaymentRecordService.REQUIRED_FIELDS:
            value = payment_data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(message)

        amount = None
        if payment_data.get('amount') not in (None, ''):
            amount = safe_decimal(payment_data['amount'], default=None)
            if amount is None:
                errors.append('Payment amount must be a number')
            elif amount <= ZERO:
                errors.append('Payment amount must be greater than zero')

        for field, message in PaymentRecordService.ADJUSTMENT_FIELDS:
            if safe_decimal(payment_data.get(field)) < ZERO:
                errors.append(message)

        if isinstance(current_balance, dict):
            current_balance = current_balance.get('remaining_amount')
        remaining = safe_decimal(current_balance) if current_balance is not None else None

        if amount is not None and amount > ZERO and remaining is not None and remaining > ZERO:
            net_payment = calculate_net_amount(
                amount,
                payment_data.get('discount'),
                payment_data.get('special_charges'),
                payment_data.get('tax_amount'),
            )
            if net_payment > remaining:
                warnings.append(
                    f"Payment amount ({net_payment}) exceeds remaining balance ({remaining}). "
                    f"This will result in an overpayment."
                )

        if payment_data.get('date') not in (None, ''):
            paid_at = parse_payment_date(payment_data['date'])
            if paid_at is None:
                errors.append('Payment date is invalid')
            else:
                today = to_local_date(now) if now is not None else get_today()
                paid_on = to_local_date(paid_at)
                if paid_on > today:
                    warnings.append('Payment date is in the future')
                elif paid_on < add_months(today, -12):
                    warnings.append('Payment date is more than 1 year old')

        return {
            'is_valid': not errors,
            'errors': errors,
            'warnings': warnings,
        }

    # -------------------------------------------------------------------------
    # WRITE PATHS
    # -------------------------------------------------------------------------

    @staticmethod
    def add_record(payment_data, tenant_id, now=None):
        """
        Record a payment against a fee account.

        Args:
            payment_data (dict): Incoming payment
                Required:
                    - account_id, student_id, student_name
                    - amount: Decimal
                    - date: datetime/date/ISO string
                    - mode: payment mode code (CASH, UPI, ...)
                    - received_by: user ID
                Optional:
                    - time, payer_type, payer_name, discount,
                      special_charges, tax_amount, transaction_id,
                      reference_id, remarks, plan_type
                    - emi_index: required for EMI accounts
                    - reminder_enabled, next_reminder_date, stop_reminders
            tenant_id: Owning tenant
            now: Clock override

        Returns:
            dict: {'success': True, 'record', 'account', 'warnings'} or
                  {'success': False, 'error', ['errors']}

        Example:
            result = PaymentRecordService.add_record({
                'account_id': account.pk,
                'student_id': 'STU-001',
                'student_name': 'Asha Rao',
                'amount': Decimal('3000'),
                'date': timezone.now(),
                'mode': 'UPI',
                'received_by': 'admin-1',
            }, tenant_id='academy-a')
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            logger.warning(f"Payment rejected: {e}")
            return _failure(str(e))

        now = timezone.localtime(now or timezone.now())

        validation = PaymentRecordService.validate(payment_data, now=now)
        if not validation['is_valid']:
            logger.warning(f"Payment validation failed: {validation['errors']}")
            return _failure('; '.join(validation['errors']), errors=validation['errors'])

        account = PaymentRecordService._get_account(payment_data['account_id'], tenant_id)
        if account is None:
            return _failure(ACCOUNT_NOT_FOUND)

        if account.account_status == 'CLOSED':
            return _failure('Fee account is closed')

        if str(account.student_id) != str(payment_data['student_id']):
            return _failure('Student does not match the fee account')

        plan_type = payment_data.get('plan_type') or account.plan_type
        if plan_type != account.plan_type:
            return _failure(
                f"Plan type {plan_type} does not match the account plan {account.plan_type}"
            )

        balance = PaymentRecordService._fold_ledger(account, tenant_id)
        validation = PaymentRecordService.validate(payment_data, balance, now=now)
        if not validation['is_valid']:
            return _failure('; '.join(validation['errors']), errors=validation['errors'])

        paid_at = parse_payment_date(payment_data['date'])
        amount = round_money(payment_data['amount'])
        transaction_id = (payment_data.get('transaction_id') or '').strip()

        try:
            with transaction.atomic():
                account = FeeAccount.objects.for_tenant(tenant_id).select_for_update().get(pk=account.pk)

                plan_result = apply_payment_plan(
                    account,
                    {**payment_data, 'amount': amount, 'date': paid_at, 'plan_type': plan_type},
                    transaction_id,
                    now
                )
                if not plan_result['success']:
                    return _failure(plan_result['error'])

                emi_number = None
                if plan_type == PlanType.EMI:
                    emi_number = int(payment_data['emi_index']) + 1

                record = PaymentRecord.objects.create(
                    tenant_id=tenant_id,
                    fee_account=account,
                    student_id=account.student_id,
                    student_name=payment_data['student_name'],
                    receipt_number=generate_receipt_number(tenant_id, now=now),
                    invoice_number=generate_invoice_number(tenant_id, now=now),
                    amount=amount,
                    paid_at=paid_at,
                    payment_time=payment_data.get('time') or timezone.localtime(paid_at).strftime('%H:%M'),
                    payment_mode=payment_data['mode'],
                    transaction_id=transaction_id,
                    reference_id=payment_data.get('reference_id') or '',
                    discount=round_money(payment_data.get('discount')),
                    special_charges=round_money(payment_data.get('special_charges')),
                    tax_amount=round_money(payment_data.get('tax_amount')),
                    plan_type=plan_type,
                    emi_number=emi_number,
                    payer_type=payment_data.get('payer_type') or 'STUDENT',
                    payer_name=payment_data.get('payer_name') or '',
                    received_by_id=str(payment_data['received_by']),
                    remarks=payment_data.get('remarks') or '',
                    created_by_id=str(payment_data['received_by']),
                    created_at=now,
                )

                for field, value in plan_result['updates'].items():
                    setattr(account, field, value)
                account.updated_by_id = str(payment_data['received_by'])
                account.save()

                PaymentRecordService.recompute_account_totals(account, tenant_id)

        except (DatabaseError, IntegrityError) as e:
            logger.exception(f"Failed to record payment for account {account.pk}: {e}")
            return _failure('Failed to record payment')

        logger.info(
            f"Recorded payment {record.receipt_number} of {amount} for "
            f"{record.student_name} (account {account.pk}, tenant {tenant_id}); "
            f"status {account.payment_status}"
        )

        return {
            'success': True,
            'record': record,
            'account': account,
            'warnings': validation['warnings'],
        }

    @staticmethod
    def update_record(record_id, updates, tenant_id, updated_by=None):
        """
        Update non-critical fields of a payment record.

        Identity, numbering, account linkage and lifecycle fields are
        silently dropped from ``updates``. An amount change forces a full
        recompute of the account.

        Returns:
            dict: success, record, ignored_fields
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        record = PaymentRecordService._get_record(record_id, tenant_id)
        if record is None:
            return _failure(RECORD_NOT_FOUND)
        if record.is_deleted:
            return _failure('Cannot update a deleted payment record')

        editable = {
            field.name for field in PaymentRecord._meta.concrete_fields
        } - PaymentRecord.PROTECTED_FIELDS
        ignored = sorted(set(updates) - editable)
        changes = {field: value for field, value in updates.items() if field in editable}

        if ignored:
            logger.warning(f"Ignored protected fields on payment record {record.pk}: {ignored}")

        if 'amount' in changes:
            amount = safe_decimal(changes['amount'], default=None)
            if amount is None or amount <= ZERO:
                return _failure('Payment amount must be greater than zero')
            changes['amount'] = round_money(amount)

        for field in ('discount', 'special_charges', 'tax_amount'):
            if field in changes:
                if safe_decimal(changes[field]) < ZERO:
                    return _failure(f"{field.replace('_', ' ').capitalize()} cannot be negative")
                changes[field] = round_money(changes[field])

        if 'paid_at' in changes:
            changes['paid_at'] = parse_payment_date(changes['paid_at'])
            if changes['paid_at'] is None:
                return _failure('Payment date is invalid')

        if not changes:
            return {'success': True, 'record': record, 'ignored_fields': ignored}

        needs_recompute = bool(
            set(changes) & (PaymentRecordService.BALANCE_FIELDS | {'paid_at'})
        )

        try:
            with transaction.atomic():
                if needs_recompute:
                    account = FeeAccount.objects.for_tenant(tenant_id).select_for_update().get(
                        pk=record.fee_account_id
                    )
                    previous_status = account.payment_status

                for field, value in changes.items():
                    setattr(record, field, value)
                record.updated_by_id = updated_by
                record.save(update_fields=list(changes) + ['updated_by_id', 'updated_at'])

                if needs_recompute:
                    PaymentRecordService.recompute_account_totals(account, tenant_id)
                    PaymentRecordService._reschedule_after_correction(account, previous_status)
        except (DatabaseError, IntegrityError) as e:
            logger.exception(f"Failed to update payment record {record.pk}: {e}")
            return _failure('Failed to update payment record')

        logger.info(f"Updated payment record {record.receipt_number}: {sorted(changes)}")
        return {'success': True, 'record': record, 'ignored_fields': ignored}

    @staticmethod
    def verify_record(record_id, verified_by, tenant_id):
        """Mark a payment record as verified by a staff member."""
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        record = PaymentRecordService._get_record(record_id, tenant_id)
        if record is None:
            return _failure(RECORD_NOT_FOUND)
        if record.is_deleted or record.status == 'CANCELLED':
            return _failure('Only active payment records can be verified')

        try:
            record.status = 'VERIFIED'
            record.verified_by_id = str(verified_by)
            record.verified_at = timezone.now()
            record.save(update_fields=['status', 'verified_by_id', 'verified_at', 'updated_at'])
        except DatabaseError as e:
            logger.exception(f"Failed to verify payment record {record.pk}: {e}")
            return _failure('Failed to verify payment record')

        logger.info(f"Payment record {record.receipt_number} verified by {verified_by}")
        return {'success': True, 'record': record}

    @staticmethod
    def soft_delete_record(record_id, deleted_by, tenant_id):
        """
        Soft-delete a payment record and rebuild the account balance.

        The row stays in the ledger with ``is_deleted`` set; it is never
        physically removed.
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        record = PaymentRecordService._get_record(record_id, tenant_id)
        if record is None:
            return _failure(RECORD_NOT_FOUND)
        if record.is_deleted:
            return _failure('Payment record is already deleted')

        try:
            with transaction.atomic():
                account = FeeAccount.objects.for_tenant(tenant_id).select_for_update().get(
                    pk=record.fee_account_id
                )
                previous_status = account.payment_status

                record.is_deleted = True
                record.deleted_at = timezone.now()
                record.deleted_by_id = str(deleted_by) if deleted_by else None
                record.save(update_fields=['is_deleted', 'deleted_at', 'deleted_by_id', 'updated_at'])

                reopened = {}
                if (account.plan_type == PlanType.EMI and record.emi_number
                        and record.status in PaymentRecord.COUNTED_STATUSES):
                    reopened = reopen_emi_installment(account, record.emi_number)
                    if reopened:
                        for field, value in reopened.items():
                            setattr(account, field, value)
                        account.save(update_fields=list(reopened) + ['updated_at'])
                        logger.info(f"Reopened EMI {record.emi_number} on account {account.pk}")

                PaymentRecordService.recompute_account_totals(account, tenant_id)
                PaymentRecordService._reschedule_after_correction(
                    account, previous_status, schedule_changed=bool(reopened)
                )
        except DatabaseError as e:
            logger.exception(f"Failed to delete payment record {record.pk}: {e}")
            return _failure('Failed to delete payment record')

        logger.info(
            f"Payment record {record.receipt_number} deleted by {deleted_by}; "
            f"account {account.pk} now {account.payment_status}"
        )
        return {'success': True, 'record': record, 'account': account}

    # -------------------------------------------------------------------------
    # AGGREGATES
    # -------------------------------------------------------------------------

    @staticmethod
    def _fold_ledger(account, tenant_id):
        totals = PaymentRecord.objects.for_tenant(tenant_id).filter(
            fee_account_id=account.pk,
            is_deleted=False,
            status__in=PaymentRecord.COUNTED_STATUSES,
        ).aggregate(
            total_paid=Sum('amount'),
            payment_count=Count('id'),
            last_payment_date=Max('paid_at'),
        )

        total_paid = round_money(totals['total_paid'] or ZERO)
        total_fee = calculate_total_due(account)
        is_last_emi = account.plan_type == PlanType.EMI and account.is_emi_complete

        return {
            'total_fee': total_fee,
            'total_paid': total_paid,
            'remaining_amount': calculate_outstanding(total_paid, total_fee, account.plan_type),
            'payment_count': totals['payment_count'] or 0,
            'collection_rate': calculate_collection_rate(total_paid, total_fee),
            'status': determine_status(total_paid, total_fee, account.plan_type, is_last_emi),
            'last_payment_date': totals['last_payment_date'],
        }

    @staticmethod
    def recompute_account_totals(account, tenant_id):
        """
        Rebuild an account's cached aggregates from its ledger.

        Sums every non-deleted CONFIRMED/VERIFIED record and saves the
        account. Running it twice on an unchanged ledger gives the same
        result.

        Returns:
            dict: the balance the account now carries

        Raises:
            TenantRequiredError: tenant missing or not the account's owner
        """
        tenant_id = require_tenant_id(tenant_id)
        if account.tenant_id != tenant_id:
            raise TenantRequiredError(
                f"Fee account {account.pk} does not belong to tenant {tenant_id}"
            )

        balance = PaymentRecordService._fold_ledger(account, tenant_id)

        account.received_amount = balance['total_paid']
        account.total_due = balance['total_fee']
        account.outstanding_amount = balance['remaining_amount']
        account.collection_rate = balance['collection_rate']
        account.payment_status = balance['status']
        account.last_payment_date = balance['last_payment_date']
        account.save(update_fields=PaymentRecordService.AGGREGATE_FIELDS + ['updated_at'])

        logger.info(
            f"Recomputed account {account.pk}: paid {balance['total_paid']} of "
            f"{balance['total_fee']}, status {balance['status']}"
        )
        return balance

    @staticmethod
    def _reschedule_after_correction(account, previous_status, schedule_changed=False, now=None):
        """
        Restore reminders on an account a correction moved back to an open
        balance (PAID -> PARTIAL, FULLY_PAID -> PARTIAL) or whose EMI
        schedule was reopened.
        """
        settled = previous_status not in (PaymentStatus.PENDING, PaymentStatus.PARTIAL)
        if not (settled or schedule_changed):
            return

        updates = reschedule_reminders(account, now)
        if not updates:
            return

        for field, value in updates.items():
            setattr(account, field, value)
        account.save(update_fields=list(updates) + ['updated_at'])
        logger.info(
            f"Rescheduled reminders on account {account.pk} "
            f"({previous_status} -> {account.payment_status}); next {account.next_reminder_date}"
        )

    @staticmethod
    def calculate_remaining_balance(account_id, tenant_id):
        """
        Balance of an account computed from its ledger (read only).

        Returns:
            dict: total_fee, total_paid, remaining_amount, payment_count,
                  collection_rate, status, last_payment_date
            None: if the account does not exist for the tenant
        """
        tenant_id = require_tenant_id(tenant_id)
        account = PaymentRecordService._get_account(account_id, tenant_id)
        if account is None:
            return None
        return PaymentRecordService._fold_ledger(account, tenant_id)

    # -------------------------------------------------------------------------
    # READ PATHS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_history(account_id, tenant_id, sort_by='date', sort_order='desc',
                    limit=None, offset=0, include_deleted=False):
        """
        Payment records of an account.

        Returns:
            dict: {'success': True, 'records': [...], 'total': int}
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        queryset = PaymentRecord.objects.for_tenant(tenant_id).filter(fee_account_id=account_id)
        if not include_deleted:
            queryset = queryset.filter(is_deleted=False)

        field = PaymentRecordService.SORT_FIELDS.get(sort_by, 'paid_at')
        prefix = '' if sort_order == 'asc' else '-'
        queryset = queryset.order_by(f"{prefix}{field}", f"{prefix}created_at")

        try:
            offset = max(int(offset or 0), 0)
            limit = max(int(limit), 0) if limit is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Invalid paging for account {account_id}: limit={limit!r} offset={offset!r}")
            return _failure('Invalid paging parameters')

        total = queryset.count()
        if limit is not None:
            queryset = queryset[offset:offset + limit]
        elif offset:
            queryset = queryset[offset:]

        return {'success': True, 'records': list(queryset), 'total': total}

    @staticmethod
    def get_record(record_id, tenant_id):
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        record = PaymentRecordService._get_record(record_id, tenant_id)
        if record is None:
            return _failure(RECORD_NOT_FOUND)
        return {'success': True, 'record': record}

    @staticmethod
    def generate_invoice_breakdown(account_id, tenant_id, now=None):
        """
        Invoice view rebuilt from the ledger.

        Discounts, special charges and tax are rolled up separately from
        the base fee. Nothing cached on the account is used for the totals,
        which makes this a cross-check for the account aggregates.

        Returns:
            dict: InvoiceBreakdown, or None if the account does not exist
        """
        tenant_id = require_tenant_id(tenant_id)
        account = PaymentRecordService._get_account(account_id, tenant_id)
        if account is None:
            return None

        records = list(
            PaymentRecord.objects.for_tenant(tenant_id).filter(
                fee_account_id=account.pk,
                is_deleted=False,
                status__in=PaymentRecord.COUNTED_STATUSES,
            ).order_by('paid_at', 'created_at')
        )

        total_paid = sum((r.amount for r in records), ZERO)
        discount = sum((r.discount for r in records), ZERO)
        special_charges = sum((r.special_charges for r in records), ZERO)
        tax_amount = sum((r.tax_amount for r in records), ZERO)

        base_fee = calculate_total_due(account)
        total_fee = round_money(base_fee + special_charges + tax_amount - discount)

        return {
            'student_id': account.student_id,
            'student_name': account.student_name,
            'course_id': account.course_id,
            'course_name': account.course_name,
            'cohort_id': account.cohort_id,
            'cohort_name': account.cohort_name,
            'base_fee': base_fee,
            'discount': round_money(discount),
            'special_charges': round_money(special_charges),
            'tax_amount': round_money(tax_amount),
            'total_fee': total_fee,
            'payments': [
                {
                    'date': r.paid_at,
                    'amount': r.amount,
                    'mode': r.payment_mode,
                    'transaction_id': r.transaction_id,
                    'receipt_number': r.receipt_number,
                    'invoice_number': r.invoice_number,
                    'remarks': r.remarks,
                }
                for r in records
            ],
            'total_paid': round_money(total_paid),
            'outstanding_balance': calculate_outstanding(total_paid, total_fee, account.plan_type),
            'payment_status': determine_status(total_paid, total_fee),
            'generated_at': now or timezone.now(),
        }

    @staticmethod
    def get_student_payment_summary(student_id, tenant_id):
        """
        Per-account payment totals for one student, latest first.

        Returns:
            list of dicts: account_id, total_paid, payment_count,
                           last_payment_date, payment_modes
        """
        tenant_id = require_tenant_id(tenant_id)
        records = PaymentRecord.objects.for_tenant(tenant_id).filter(
            student_id=student_id,
            is_deleted=False,
            status__in=PaymentRecord.COUNTED_STATUSES,
        )

        rows = records.values('fee_account_id').annotate(
            total_paid=Sum('amount'),
            payment_count=Count('id'),
            last_payment_date=Max('paid_at'),
        ).order_by('-last_payment_date')

        summary = []
        for row in rows:
            modes = sorted(set(
                records.filter(fee_account_id=row['fee_account_id'])
                .values_list('payment_mode', flat=True)
            ))
            summary.append({
                'account_id': row['fee_account_id'],
                'total_paid': round_money(row['total_paid']),
                'payment_count': row['payment_count'],
                'last_payment_date': row['last_payment_date'],
                'payment_modes': modes,
            })
        return summary

    # -------------------------------------------------------------------------
    # LOOKUPS
    # -------------------------------------------------------------------------

    @staticmethod
    def _get_account(account_id, tenant_id):
        try:
            return FeeAccount.objects.for_tenant(tenant_id).get(pk=account_id)
        except (FeeAccount.DoesNotExist, ValidationError, ValueError):
            logger.warning(f"Fee account {account_id} not found for tenant {tenant_id}")
            return None

    @staticmethod
    def _get_record(record_id, tenant_id):
        try:
            return PaymentRecord.objects.for_tenant(tenant_id).select_related('fee_account').get(pk=record_id)
        except (PaymentRecord.DoesNotExist, ValidationError, ValueError):
            logger.warning(f"Payment record {record_id} not found for tenant {tenant_id}")
            return None


# =============================================================================
# FEE ACCOUNT SERVICE
# =============================================================================

class FeeAccountService:
    """Fee account lifecycle and plan helpers"""

    @staticmethod
    def get_or_create_account(tenant_id, student_id, student_name, course_id='',
                              cohort_id='', course_fee=None, course_lookup=None,
                              cohort_lookup=None, installment_count=None, **fields):
        """
        Fetch the fee account for an enrollment, creating it on first use.

        Args:
            tenant_id: Owning tenant
            student_id, student_name: Enrolled student
            course_id, cohort_id: Enrollment target (either may be blank)
            course_fee: Explicit fee; wins over the lookups when positive
            course_lookup: callable(course_id) -> fee or None
            cohort_lookup: callable(cohort_id) -> course_id or None
            installment_count: Builds an EMI schedule for new EMI accounts
            **fields: Any other FeeAccount field (plan_type, start_date, ...)

        Returns:
            dict: {'success': True, 'account', 'created'} or failure
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
        except TenantRequiredError as e:
            return _failure(str(e))

        existing = FeeAccount.objects.for_tenant(tenant_id).filter(
            student_id=student_id, course_id=course_id or ''
        ).first()
        if existing is not None:
            return {'success': True, 'account': existing, 'created': False}

        fee = resolve_course_fee(course_fee, course_id, cohort_id, course_lookup, cohort_lookup)
        settings = FinancialSettings.get_instance(tenant_id)

        account = FeeAccount(
            tenant_id=tenant_id,
            student_id=student_id,
            student_name=student_name,
            course_id=fee['course_id'] or '',
            cohort_id=cohort_id or '',
            course_fee=fee['fee'],
            **fields
        )
        for field, value in resolve_registration_fees(account, settings).items():
            setattr(account, field, value)

        if account.plan_type == PlanType.EMI and installment_count and not account.emi_schedule:
            account.emi_schedule = FeeAccountService.build_emi_schedule(
                calculate_total_due(account),
                installment_count,
                account.start_date or timezone.localdate(),
                account.monthly_due_day,
            )

        try:
            with transaction.atomic():
                account.save()
                PaymentRecordService.recompute_account_totals(account, tenant_id)
        except IntegrityError:
            existing = FeeAccount.objects.for_tenant(tenant_id).filter(
                student_id=student_id, course_id=account.course_id
            ).first()
            if existing is None:
                logger.exception(f"Failed to create fee account for student {student_id}")
                return _failure('Failed to create fee account')
            return {'success': True, 'account': existing, 'created': False}
        except DatabaseError as e:
            logger.exception(f"Failed to create fee account for student {student_id}: {e}")
            return _failure('Failed to create fee account')

        logger.info(
            f"Created fee account {account.pk} for {student_name} "
            f"(course fee {account.course_fee} from {fee['source']}, tenant {tenant_id})"
        )
        return {'success': True, 'account': account, 'created': True}

    @staticmethod
    def build_emi_schedule(total_amount, installment_count, start_date, due_day=None):
        """
        Equal monthly installments; the rounding remainder goes on the last.

        Example:
            >>> FeeAccountService.build_emi_schedule(Decimal('1000'), 3, date(2030, 1, 31))
            # amounts 333.33, 333.33, 333.34 due 31 Jan, 28 Feb, 31 Mar
        """
        installment_count = int(installment_count)
        if installment_count <= 0:
            raise ValueError("Installment count must be positive")

        total = round_money(total_amount)
        base = (total / installment_count).quantize(CENT, rounding=ROUND_DOWN)
        remainder = total - base * installment_count

        start = to_local_date(start_date)
        due_day = due_day or start.day

        schedule = []
        for index in range(installment_count):
            amount = base + remainder if index == installment_count - 1 else base
            schedule.append({
                'emi_number': index + 1,
                'due_date': add_months(start, index, day=due_day).isoformat(),
                'amount': str(amount),
                'status': EmiStatus.PENDING.value,
                'paid_date': None,
                'paid_amount': None,
                'transaction_id': None,
            })
        return schedule

    @staticmethod
    def get_subscription_summary(account_id, tenant_id):
        """
        Contract view of a monthly subscription.

        Returns:
            dict, or None if the account does not exist
        """
        tenant_id = require_tenant_id(tenant_id)
        account = PaymentRecordService._get_account(account_id, tenant_id)
        if account is None:
            return None

        months_in_contract = months_between(account.start_date, account.end_date)
        covered = months_covered_by_amount(account.received_amount, account.monthly_installment)

        return {
            'account_id': account.pk,
            'plan_type': account.plan_type,
            'subscription_status': account.subscription_status,
            'monthly_installment': account.monthly_installment,
            'monthly_due_day': account.monthly_due_day,
            'months_in_contract': months_in_contract,
            'months_paid': covered['months_paid'],
            'months_remaining': max(months_in_contract - covered['months_paid'], 0),
            'credit': round_money(covered['remainder']),
            'total_paid': account.received_amount,
            'next_due_date': account.next_due_date,
            'next_reminder_date': account.next_reminder_date,
        }
