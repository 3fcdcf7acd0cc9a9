# core/models.py

"""
Core models shared by every academy app.

- TenantBaseModel: abstract base for all tenant-owned data
- FinancialSettings: per-tenant numbering and reminder configuration
"""

from django.db import models
from django.utils import timezone
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import uuid
import logging

from academia.managers import TenantManager, TenantRequiredError, require_tenant_id

logger = logging.getLogger(__name__)


# =============================================================================
# BASE MODEL - TENANT-OWNED DATA
# =============================================================================

class TenantBaseModel(models.Model):
    """
    Abstract base model for tenant-owned records.

    Features:
    - UUID primary key
    - Mandatory tenant identifier (a row can never be saved without one)
    - Created/updated timestamps
    - User tracking (who created/updated) as plain IDs, no cross-app FKs
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant_id = models.CharField(
        "Tenant ID",
        max_length=64,
        db_index=True,
        help_text="Academy (tenant) that owns this record"
    )

    created_at = models.DateTimeField("Created At", default=timezone.now, db_index=True)
    updated_at = models.DateTimeField("Updated At", auto_now=True, db_index=True)

    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        help_text="ID of user who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=50,
        null=True,
        blank=True,
        help_text="ID of user who last updated this record"
    )

    objects = TenantManager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """Refuse to persist a row that is not tagged with a tenant."""
        if not self.tenant_id or not str(self.tenant_id).strip():
            raise TenantRequiredError(
                f"Cannot save {self.__class__.__name__} without a tenant_id"
            )
        super().save(*args, **kwargs)


# =============================================================================
# FINANCIAL SETTINGS - ONE ROW PER TENANT
# =============================================================================

class FinancialSettings(TenantBaseModel):
    """
    Per-tenant financial configuration: currency, document numbering,
    default registration fees and reminder policy.
    """

    # -------------------------------------------------------------------------
    # CURRENCY
    # -------------------------------------------------------------------------

    currency = models.CharField(
        "Currency",
        max_length=3,
        default='INR',
        help_text='Primary currency for this academy (ISO 4217 code)'
    )

    # -------------------------------------------------------------------------
    # NUMBERING CONFIGURATION
    # -------------------------------------------------------------------------

    invoice_prefix = models.CharField(
        "Invoice Number Prefix",
        max_length=10,
        default="INV",
        help_text="Prefix for invoice numbers (INV-yyyymm-0001)"
    )
    receipt_prefix = models.CharField(
        "Receipt Number Prefix",
        max_length=10,
        default="RCP",
        help_text="Prefix for receipt numbers (RCP-yyyymm-0001)"
    )

    # -------------------------------------------------------------------------
    # DEFAULT FEES
    # -------------------------------------------------------------------------

    default_course_registration_fee = models.DecimalField(
        "Default Course Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('1000.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    default_student_registration_fee = models.DecimalField(
        "Default Student Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('500.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # -------------------------------------------------------------------------
    # REMINDER POLICY
    # -------------------------------------------------------------------------

    reminder_lead_days = models.PositiveIntegerField(
        "Reminder Lead Days",
        default=3,
        validators=[MaxValueValidator(31)],
        help_text="Days before a due date to remind (monthly and EMI plans)"
    )
    overdue_reminder_interval_days = models.PositiveIntegerField(
        "Overdue Reminder Interval (Days)",
        default=7
    )
    max_reminder_attempts = models.PositiveIntegerField(
        "Maximum Reminder Attempts",
        default=5,
        help_text="Follow-up reminders sent before giving up on an account"
    )

    class Meta:
        verbose_name = "Financial Settings"
        verbose_name_plural = "Financial Settings"
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id'],
                name='unique_financial_settings_per_tenant'
            ),
        ]

    def __str__(self):
        return f"Financial Settings ({self.tenant_id})"

    # -------------------------------------------------------------------------
    # SINGLETON PATTERN METHODS
    # -------------------------------------------------------------------------

    @classmethod
    def get_instance(cls, tenant_id):
        """Get or create the settings row for a tenant."""
        tenant_id = require_tenant_id(tenant_id)
        instance, created = cls.objects.for_tenant(tenant_id).get_or_create(
            tenant_id=tenant_id,
            defaults={
                'currency': 'INR',
                'invoice_prefix': 'INV',
                'receipt_prefix': 'RCP',
                'default_course_registration_fee': Decimal('1000.00'),
                'default_student_registration_fee': Decimal('500.00'),
                'reminder_lead_days': 3,
                'overdue_reminder_interval_days': 7,
                'max_reminder_attempts': 5,
            }
        )
        if created:
            logger.info(f"Created default financial settings for tenant {tenant_id}")
        return instance
