# payments/management/commands/send_payment_reminders.py

"""
Send due payment reminders.

USAGE EXAMPLES:
===============

# 1. Send reminders for every tenant
python manage.py send_payment_reminders

# 2. Send reminders for one tenant
python manage.py send_payment_reminders --tenant academy_a

# 3. List how many reminders are due without sending them
python manage.py send_payment_reminders --tenant academy_a --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
import logging

from academia.managers import execute_for_all_tenants, TenantRequiredError
from payments.models import FeeAccount
from payments.reminders import send_due_reminders

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Send payment reminders that are due'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant', type=str, default=None,
            help='Tenant to process (default: every tenant with fee accounts)'
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='Count due reminders without sending them'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        if options['tenant'] is not None:
            try:
                results = {options['tenant'].strip(): send_due_reminders(options['tenant'], dry_run=dry_run)}
            except TenantRequiredError as e:
                raise CommandError(str(e))
        else:
            results = execute_for_all_tenants(FeeAccount, send_due_reminders, dry_run=dry_run)

        if not results:
            self.stdout.write(self.style.WARNING('No tenants with fee accounts found.'))
            return

        for tenant_id, counts in results.items():
            if counts is None:
                self.stdout.write(self.style.ERROR(f"{tenant_id}: reminder sweep failed"))
                continue

            if dry_run:
                self.stdout.write(f"{tenant_id}: {counts['due']} reminders due (dry run)")
            else:
                self.stdout.write(self.style.SUCCESS(
                    f"{tenant_id}: {counts['sent']} sent, {counts['failed']} failed "
                    f"of {counts['due']} due"
                ))
