# core/migrations/0001_initial.py

import django.core.validators
import django.utils.timezone
import uuid
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FinancialSettings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tenant_id', models.CharField(db_index=True, help_text='Academy (tenant) that owns this record', max_length=64, verbose_name='Tenant ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('currency', models.CharField(default='INR', help_text='Primary currency for this academy (ISO 4217 code)', max_length=3, verbose_name='Currency')),
                ('invoice_prefix', models.CharField(default='INV', help_text='Prefix for invoice numbers (INV-yyyymm-0001)', max_length=10, verbose_name='Invoice Number Prefix')),
                ('receipt_prefix', models.CharField(default='RCP', help_text='Prefix for receipt numbers (RCP-yyyymm-0001)', max_length=10, verbose_name='Receipt Number Prefix')),
                ('default_course_registration_fee', models.DecimalField(decimal_places=2, default=Decimal('1000.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Default Course Registration Fee')),
                ('default_student_registration_fee', models.DecimalField(decimal_places=2, default=Decimal('500.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Default Student Registration Fee')),
                ('reminder_lead_days', models.PositiveIntegerField(default=3, help_text='Days before a due date to remind (monthly and EMI plans)', validators=[django.core.validators.MaxValueValidator(31)], verbose_name='Reminder Lead Days')),
                ('overdue_reminder_interval_days', models.PositiveIntegerField(default=7, verbose_name='Overdue Reminder Interval (Days)')),
                ('max_reminder_attempts', models.PositiveIntegerField(default=5, help_text='Follow-up reminders sent before giving up on an account', verbose_name='Maximum Reminder Attempts')),
            ],
            options={
                'verbose_name': 'Financial Settings',
                'verbose_name_plural': 'Financial Settings',
                'constraints': [models.UniqueConstraint(fields=('tenant_id',), name='unique_financial_settings_per_tenant')],
            },
        ),
    ]
