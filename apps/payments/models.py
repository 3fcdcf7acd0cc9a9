# payments/models.py

"""
Academy Fee Payment Models

- FeeAccount: per-enrollment fee account with plan and reminder scheduling
- PaymentRecord: immutable ledger entry for one physical payment
- SequenceCounter: per-tenant, per-month document number counter

Aggregate fields on FeeAccount are a cache of the ledger. They are rebuilt by
PaymentRecordService.recompute_account_totals and never edited by hand.
"""

from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import logging

from core.models import TenantBaseModel
from academia.managers import require_tenant_id

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class PlanType(models.TextChoices):
    ONE_TIME = 'ONE_TIME', 'One Time'
    MONTHLY_SUBSCRIPTION = 'MONTHLY_SUBSCRIPTION', 'Monthly Subscription'
    EMI = 'EMI', 'EMI'
    CUSTOM = 'CUSTOM', 'Custom'


class PaymentStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PARTIAL = 'PARTIAL', 'Partial'
    PAID = 'PAID', 'Paid'
    FULLY_PAID = 'FULLY_PAID', 'Fully Paid'
    OVERPAID = 'OVERPAID', 'Overpaid'


class ReminderFrequency(models.TextChoices):
    DAILY = 'DAILY', 'Daily'
    WEEKLY = 'WEEKLY', 'Weekly'
    MONTHLY = 'MONTHLY', 'Monthly'
    NONE = 'NONE', 'None'


class SubscriptionStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'
    CANCELLED = 'CANCELLED', 'Cancelled'
    COMPLETED = 'COMPLETED', 'Completed'


class EmiStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PAID = 'PAID', 'Paid'


# =============================================================================
# FEE ACCOUNT
# =============================================================================

class FeeAccount(TenantBaseModel):
    """Fee account for one student enrolled in one course"""

    ACCOUNT_STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('SUSPENDED', 'Suspended'),
        ('CLOSED', 'Closed'),
    ]

    # -------------------------------------------------------------------------
    # ENROLLMENT IDENTITY
    # -------------------------------------------------------------------------

    student_id = models.CharField("Student ID", max_length=64, db_index=True)
    student_name = models.CharField("Student Name", max_length=200)
    student_email = models.EmailField("Student Email", blank=True)
    course_id = models.CharField("Course ID", max_length=64, blank=True, db_index=True)
    course_name = models.CharField("Course Name", max_length=200, blank=True)
    cohort_id = models.CharField("Cohort ID", max_length=64, blank=True, db_index=True)
    cohort_name = models.CharField("Cohort Name", max_length=200, blank=True)

    # -------------------------------------------------------------------------
    # FIXED FEES
    # -------------------------------------------------------------------------

    course_fee = models.DecimalField(
        "Course Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    course_registration_fee = models.DecimalField(
        "Course Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Immutable once set"
    )
    student_registration_fee = models.DecimalField(
        "Student Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Immutable once set"
    )

    # -------------------------------------------------------------------------
    # PAYMENT PLAN
    # -------------------------------------------------------------------------

    plan_type = models.CharField(
        "Plan Type",
        max_length=24,
        choices=PlanType.choices,
        default=PlanType.ONE_TIME,
        db_index=True
    )
    monthly_due_day = models.PositiveSmallIntegerField(
        "Monthly Due Day",
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
        help_text="Day of month (1-31) a subscription falls due"
    )
    monthly_installment = models.DecimalField(
        "Monthly Installment",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    start_date = models.DateField("Start Date", null=True, blank=True)
    end_date = models.DateField("End Date", null=True, blank=True)

    # -------------------------------------------------------------------------
    # AGGREGATES (DERIVED FROM THE LEDGER)
    # -------------------------------------------------------------------------

    received_amount = models.DecimalField(
        "Received Amount",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    total_due = models.DecimalField(
        "Total Due",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    outstanding_amount = models.DecimalField(
        "Outstanding Amount",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    collection_rate = models.DecimalField(
        "Collection Rate (%)",
        max_digits=7,
        decimal_places=2,
        default=Decimal('0.00')
    )
    payment_status = models.CharField(
        "Payment Status",
        max_length=12,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True
    )
    last_payment_date = models.DateTimeField("Last Payment Date", null=True, blank=True)

    # -------------------------------------------------------------------------
    # SCHEDULING & REMINDERS
    # -------------------------------------------------------------------------

    next_due_date = models.DateTimeField("Next Due Date", null=True, blank=True)
    next_payment_date = models.DateTimeField("Next Payment Date", null=True, blank=True)
    next_reminder_date = models.DateTimeField("Next Reminder Date", null=True, blank=True, db_index=True)
    reminder_enabled = models.BooleanField("Reminder Enabled", default=False, db_index=True)
    reminder_frequency = models.CharField(
        "Reminder Frequency",
        max_length=8,
        choices=ReminderFrequency.choices,
        default=ReminderFrequency.NONE
    )
    pre_reminder_enabled = models.BooleanField("Pre-Reminder Enabled", default=False)
    reminders_count = models.PositiveIntegerField("Reminders Sent", default=0)
    last_reminder_sent_at = models.DateTimeField("Last Reminder Sent At", null=True, blank=True)
    subscription_status = models.CharField(
        "Subscription Status",
        max_length=10,
        choices=SubscriptionStatus.choices,
        blank=True
    )

    # -------------------------------------------------------------------------
    # EMI SCHEDULE
    # -------------------------------------------------------------------------

    emi_schedule = models.JSONField(
        "EMI Schedule",
        default=list,
        blank=True,
        help_text="Ordered installments: emi_number, due_date, amount, status, paid_*"
    )
    current_emi_index = models.PositiveIntegerField("Current EMI Index", default=0)

    # -------------------------------------------------------------------------
    # ACCOUNT STATUS
    # -------------------------------------------------------------------------

    account_status = models.CharField(
        "Account Status",
        max_length=10,
        choices=ACCOUNT_STATUS_CHOICES,
        default='ACTIVE',
        db_index=True
    )

    class Meta:
        verbose_name = "Fee Account"
        verbose_name_plural = "Fee Accounts"
        ordering = ['student_name', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'student_id', 'course_id'],
                name='unique_fee_account_per_enrollment'
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_id', 'student_id'], name='fee_acct_tenant_student_idx'),
            models.Index(fields=['tenant_id', 'reminder_enabled', 'next_reminder_date'], name='fee_acct_reminder_due_idx'),
        ]

    def __str__(self):
        return f"{self.student_name} - {self.course_name or self.course_id} ({self.get_plan_type_display()})"

    # -------------------------------------------------------------------------
    # HELPER METHODS
    # -------------------------------------------------------------------------

    @property
    def total_fee(self):
        from .calculations import calculate_total_due
        return calculate_total_due(self)

    @property
    def is_emi_complete(self):
        """True when every EMI installment has been paid"""
        return bool(self.emi_schedule) and all(
            item.get('status') == EmiStatus.PAID for item in self.emi_schedule
        )

    def delete(self, *args, **kwargs):
        raise models.ProtectedError(
            "Fee accounts are never deleted; close them instead.", {self}
        )


# =============================================================================
# PAYMENT RECORD (LEDGER ENTRY)
# =============================================================================

class PaymentRecord(TenantBaseModel):
    """Immutable ledger entry for one physical payment event"""

    PAYMENT_MODE_CHOICES = [
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('UPI', 'UPI'),
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('CHEQUE', 'Cheque'),
        ('ONLINE', 'Online'),
        ('OTHER', 'Other'),
    ]

    PAYER_TYPE_CHOICES = [
        ('STUDENT', 'Student (Self)'),
        ('PARENT', 'Parent'),
        ('GUARDIAN', 'Guardian'),
        ('SPONSOR', 'Sponsor'),
        ('OTHER', 'Other'),
    ]

    STATUS_CHOICES = [
        ('CONFIRMED', 'Confirmed'),
        ('VERIFIED', 'Verified'),
        ('CANCELLED', 'Cancelled'),
    ]

    # Statuses that count towards the balance
    COUNTED_STATUSES = ('CONFIRMED', 'VERIFIED')

    # Fields that can never change after creation
    PROTECTED_FIELDS = frozenset({
        'id', 'tenant_id', 'fee_account', 'fee_account_id', 'student_id',
        'receipt_number', 'invoice_number', 'created_at', 'created_by_id',
        'is_deleted', 'deleted_at', 'deleted_by_id',
        'status', 'verified_by_id', 'verified_at', 'plan_type', 'emi_number',
    })

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    fee_account = models.ForeignKey(
        FeeAccount,
        verbose_name="Fee Account",
        on_delete=models.PROTECT,
        related_name='records'
    )
    student_id = models.CharField("Student ID", max_length=64, db_index=True)
    student_name = models.CharField("Student Name", max_length=200)
    receipt_number = models.CharField("Receipt Number", max_length=50, db_index=True)
    invoice_number = models.CharField("Invoice Number", max_length=50, db_index=True)

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    paid_at = models.DateTimeField("Paid At", db_index=True)
    payment_time = models.CharField("Payment Time", max_length=10, blank=True)
    payment_mode = models.CharField("Payment Mode", max_length=15, choices=PAYMENT_MODE_CHOICES)
    transaction_id = models.CharField("Transaction ID", max_length=100, blank=True, db_index=True)
    reference_id = models.CharField("Reference ID", max_length=100, blank=True)

    discount = models.DecimalField("Discount", max_digits=12, decimal_places=2, default=Decimal('0.00'))
    special_charges = models.DecimalField("Special Charges", max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField("Tax Amount", max_digits=12, decimal_places=2, default=Decimal('0.00'))

    plan_type = models.CharField("Plan Type", max_length=24, choices=PlanType.choices)
    emi_number = models.PositiveIntegerField("EMI Number", null=True, blank=True)

    # -------------------------------------------------------------------------
    # PAYER INFORMATION
    # -------------------------------------------------------------------------

    payer_type = models.CharField("Payer Type", max_length=10, choices=PAYER_TYPE_CHOICES, default='STUDENT')
    payer_name = models.CharField("Payer Name", max_length=200, blank=True)

    # -------------------------------------------------------------------------
    # STATUS AND VERIFICATION
    # -------------------------------------------------------------------------

    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, default='CONFIRMED', db_index=True)
    received_by_id = models.CharField("Received By ID", max_length=50)
    verified_by_id = models.CharField("Verified By ID", max_length=50, null=True, blank=True)
    verified_at = models.DateTimeField("Verified At", null=True, blank=True)

    remarks = models.TextField("Remarks", blank=True)

    # -------------------------------------------------------------------------
    # SOFT DELETE
    # -------------------------------------------------------------------------

    is_deleted = models.BooleanField("Deleted", default=False, db_index=True)
    deleted_at = models.DateTimeField("Deleted At", null=True, blank=True)
    deleted_by_id = models.CharField("Deleted By ID", max_length=50, null=True, blank=True)

    class Meta:
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        ordering = ['-paid_at', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'receipt_number'],
                name='unique_receipt_number_per_tenant'
            ),
            models.UniqueConstraint(
                fields=['tenant_id', 'invoice_number'],
                name='unique_invoice_number_per_tenant'
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_id', 'fee_account', 'is_deleted'], name='pay_rec_tenant_account_idx'),
            models.Index(fields=['tenant_id', 'student_id'], name='pay_rec_tenant_student_idx'),
            models.Index(fields=['paid_at'], name='pay_rec_paid_at_idx'),
        ]

    def __str__(self):
        return f"{self.receipt_number} - {self.student_name} ({self.amount})"

    @property
    def net_amount(self):
        from .calculations import calculate_net_amount
        return calculate_net_amount(self.amount, self.discount, self.special_charges, self.tax_amount)

    def delete(self, *args, **kwargs):
        raise models.ProtectedError(
            "Payment records are soft-deleted only.", {self}
        )


# =============================================================================
# SEQUENCE COUNTER
# =============================================================================

class SequenceCounter(TenantBaseModel):
    """Monotonic counter keyed by (tenant, name, period)"""

    name = models.CharField("Counter Name", max_length=30)
    period = models.CharField("Period", max_length=6, help_text="yyyymm")
    value = models.PositiveBigIntegerField("Current Value", default=0)

    class Meta:
        verbose_name = "Sequence Counter"
        verbose_name_plural = "Sequence Counters"
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'name', 'period'],
                name='unique_sequence_counter'
            ),
        ]

    def __str__(self):
        return f"{self.tenant_id}:{self.name}:{self.period} = {self.value}"

    @classmethod
    def next_value(cls, tenant_id, name, period):
        """
        Atomically increment and return the counter.

        The increment is a single ``UPDATE ... SET value = value + 1``; the row
        lock it takes is held until the surrounding transaction ends, so the
        value read back belongs to this caller alone.
        """
        tenant_id = require_tenant_id(tenant_id)

        with transaction.atomic():
            counter, _ = cls.objects.for_tenant(tenant_id).get_or_create(
                tenant_id=tenant_id,
                name=name,
                period=period,
                defaults={'value': 0, 'created_at': timezone.now()}
            )
            cls.objects.filter(pk=counter.pk).update(
                value=F('value') + 1,
                updated_at=timezone.now()
            )
            counter.refresh_from_db(fields=['value'])

        return counter.value
