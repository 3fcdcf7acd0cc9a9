# managers.py

"""
Tenant scoping for academy data.

Every tenant-owned row carries a ``tenant_id`` column and every query that
touches one must be filtered on it. There is no ambient "current tenant":
callers pass the tenant explicitly and a blank tenant aborts the query.
"""

from django.db import models
import logging

logger = logging.getLogger(__name__)


class TenantRequiredError(ValueError):
    """Raised when an operation cannot resolve a tenant identifier"""
    pass


def require_tenant_id(tenant_id):
    """
    Normalize and validate a tenant identifier.

    Returns:
        str: The stripped tenant identifier

    Raises:
        TenantRequiredError: If tenant_id is missing or blank
    """
    if tenant_id is None:
        raise TenantRequiredError("Tenant context required for payment operations")

    tenant_id = str(tenant_id).strip()
    if not tenant_id:
        raise TenantRequiredError("Tenant context required for payment operations")

    return tenant_id


class TenantQuerySet(models.QuerySet):
    """QuerySet that knows how to scope itself to a single tenant"""

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=require_tenant_id(tenant_id))


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """Default manager for tenant-owned models"""

    def tenant_ids(self):
        """Distinct tenant identifiers that own at least one row"""
        return list(
            self.get_queryset()
            .order_by()
            .values_list('tenant_id', flat=True)
            .distinct()
        )


# ==============================================================================
# UTILITY FUNCTIONS
# ==============================================================================

def execute_for_all_tenants(model, func, *args, **kwargs):
    """
    Execute a function once per tenant that owns rows of ``model``.

    The tenant identifier is passed as the first positional argument.

    Example:
        def count_accounts(tenant_id):
            return FeeAccount.objects.for_tenant(tenant_id).count()

        results = execute_for_all_tenants(FeeAccount, count_accounts)
        # Returns: {'academy_a': 150, 'academy_b': 200}
    """
    results = {}

    for tenant_id in model.objects.tenant_ids():
        try:
            results[tenant_id] = func(tenant_id, *args, **kwargs)
        except Exception as e:
            logger.error(f"Error for tenant '{tenant_id}': {e}")
            results[tenant_id] = None

    return results
