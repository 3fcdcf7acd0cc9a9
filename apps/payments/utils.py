# payments/utils.py

"""
Document number generation.

Format: PREFIX-yyyymm-NNNN, sequential per tenant per calendar month.
Sequence values above 9999 are printed unpadded (INV-202410-10000).
"""

from django.utils import timezone
import logging

logger = logging.getLogger(__name__)

INVOICE_COUNTER = 'invoice'
RECEIPT_COUNTER = 'receipt'


def format_document_number(prefix, period, sequence):
    """
    Example:
        >>> format_document_number('INV', '202410', 7)   # 'INV-202410-0007'
    """
    return f"{prefix}-{period}-{sequence:04d}"


def _generate_number(tenant_id, counter_name, prefix, now):
    from .models import SequenceCounter

    now = timezone.localtime(now or timezone.now())
    period = now.strftime('%Y%m')
    sequence = SequenceCounter.next_value(tenant_id, counter_name, period)
    number = format_document_number(prefix, period, sequence)
    logger.debug(f"Generated {counter_name} number {number} for tenant {tenant_id}")
    return number


def generate_invoice_number(tenant_id, prefix=None, now=None):
    """
    Next invoice number for a tenant.

    Args:
        tenant_id: Owning tenant (required)
        prefix: Override for FinancialSettings.invoice_prefix
        now: Clock override; the month comes from this

    Returns:
        str: e.g. INV-202410-0001
    """
    if prefix is None:
        from core.models import FinancialSettings
        prefix = FinancialSettings.get_instance(tenant_id).invoice_prefix.strip() or 'INV'
    return _generate_number(tenant_id, INVOICE_COUNTER, prefix, now)


def generate_receipt_number(tenant_id, prefix=None, now=None):
    """Next receipt number for a tenant (RCP-yyyymm-NNNN)."""
    if prefix is None:
        from core.models import FinancialSettings
        prefix = FinancialSettings.get_instance(tenant_id).receipt_prefix.strip() or 'RCP'
    return _generate_number(tenant_id, RECEIPT_COUNTER, prefix, now)
