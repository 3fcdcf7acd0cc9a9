# core/utils.py

"""
Central utilities for the academy back-office.
Money, percentage and clock helpers shared by every app.
"""
from django.utils import timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import logging

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


# =============================================================================
# NUMBER & CALCULATION UTILITIES
# =============================================================================

def safe_decimal(value, default=ZERO):
    """
    Safely convert value to Decimal.

    Args:
        value: Value to convert (int, float, str, Decimal or None)
        default: Default value if conversion fails

    Returns:
        Decimal: Converted value or default

    Example:
        >>> from core.utils import safe_decimal
        >>> amount = safe_decimal("2500")       # Decimal('2500')
        >>> amount = safe_decimal("invalid")    # Decimal('0.00')
    """
    if value is None or value == '':
        return default
    try:
        result = Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return default
    if not result.is_finite():
        return default
    return result


def round_money(amount):
    """Round an amount to two decimal places (half-up)."""
    return safe_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_percentage(part, whole, decimal_places=2):
    """
    Calculate percentage with safe division.

    Args:
        part: The part value
        whole: The whole value
        decimal_places: Number of decimal places (default: 2)

    Returns:
        Decimal: Percentage value, 0 if whole is 0

    Example:
        >>> from core.utils import calculate_percentage
        >>> calculate_percentage(3000, 5000)  # Decimal('60.00')
    """
    part = safe_decimal(part)
    whole = safe_decimal(whole)

    if whole == 0:
        return Decimal('0').quantize(Decimal(1).scaleb(-decimal_places))

    percentage = (part / whole) * 100
    return percentage.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)


def format_money(amount, currency='INR', include_symbol=True):
    """
    Format money amount for display.

    Example:
        >>> format_money(1500000)         # "INR 1,500,000.00"
        >>> format_money(1500, 'USD', False)  # "1,500.00"
    """
    formatted = f"{round_money(amount):,.2f}"
    return f"{currency} {formatted}" if include_symbol else formatted


# =============================================================================
# CLOCK UTILITIES
# =============================================================================

def get_current_time():
    """
    Current time in the configured operational timezone (settings.TIME_ZONE).

    Use this instead of datetime.now() for any business logic so that
    "today" and "tomorrow" follow the academy's local calendar.
    """
    return timezone.localtime(timezone.now())


def get_today():
    """Today's date in the operational timezone."""
    return get_current_time().date()
