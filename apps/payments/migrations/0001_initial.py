# payments/migrations/0001_initial.py

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from decimal import Decimal
from django.db import migrations, models


def _base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ('tenant_id', models.CharField(db_index=True, help_text='Academy (tenant) that owns this record', max_length=64, verbose_name='Tenant ID')),
        ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Created At')),
        ('updated_at', models.DateTimeField(auto_now=True, db_index=True, verbose_name='Updated At')),
        ('created_by_id', models.CharField(blank=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
        ('updated_by_id', models.CharField(blank=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FeeAccount',
            fields=_base_fields() + [
                ('student_id', models.CharField(db_index=True, max_length=64, verbose_name='Student ID')),
                ('student_name', models.CharField(max_length=200, verbose_name='Student Name')),
                ('student_email', models.EmailField(blank=True, max_length=254, verbose_name='Student Email')),
                ('course_id', models.CharField(blank=True, db_index=True, max_length=64, verbose_name='Course ID')),
                ('course_name', models.CharField(blank=True, max_length=200, verbose_name='Course Name')),
                ('cohort_id', models.CharField(blank=True, db_index=True, max_length=64, verbose_name='Cohort ID')),
                ('cohort_name', models.CharField(blank=True, max_length=200, verbose_name='Cohort Name')),
                ('course_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Course Fee')),
                ('course_registration_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Immutable once set', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Course Registration Fee')),
                ('student_registration_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Immutable once set', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Student Registration Fee')),
                ('plan_type', models.CharField(choices=[('ONE_TIME', 'One Time'), ('MONTHLY_SUBSCRIPTION', 'Monthly Subscription'), ('EMI', 'EMI'), ('CUSTOM', 'Custom')], db_index=True, default='ONE_TIME', max_length=24, verbose_name='Plan Type')),
                ('monthly_due_day', models.PositiveSmallIntegerField(blank=True, help_text='Day of month (1-31) a subscription falls due', null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(31)], verbose_name='Monthly Due Day')),
                ('monthly_installment', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Monthly Installment')),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='Start Date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='End Date')),
                ('received_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Received Amount')),
                ('total_due', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Total Due')),
                ('outstanding_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Outstanding Amount')),
                ('collection_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=7, verbose_name='Collection Rate (%)')),
                ('payment_status', models.CharField(choices=[('PENDING', 'Pending'), ('PARTIAL', 'Partial'), ('PAID', 'Paid'), ('FULLY_PAID', 'Fully Paid'), ('OVERPAID', 'Overpaid')], db_index=True, default='PENDING', max_length=12, verbose_name='Payment Status')),
                ('last_payment_date', models.DateTimeField(blank=True, null=True, verbose_name='Last Payment Date')),
                ('next_due_date', models.DateTimeField(blank=True, null=True, verbose_name='Next Due Date')),
                ('next_payment_date', models.DateTimeField(blank=True, null=True, verbose_name='Next Payment Date')),
                ('next_reminder_date', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Next Reminder Date')),
                ('reminder_enabled', models.BooleanField(db_index=True, default=False, verbose_name='Reminder Enabled')),
                ('reminder_frequency', models.CharField(choices=[('DAILY', 'Daily'), ('WEEKLY', 'Weekly'), ('MONTHLY', 'Monthly'), ('NONE', 'None')], default='NONE', max_length=8, verbose_name='Reminder Frequency')),
                ('pre_reminder_enabled', models.BooleanField(default=False, verbose_name='Pre-Reminder Enabled')),
                ('reminders_count', models.PositiveIntegerField(default=0, verbose_name='Reminders Sent')),
                ('last_reminder_sent_at', models.DateTimeField(blank=True, null=True, verbose_name='Last Reminder Sent At')),
                ('subscription_status', models.CharField(blank=True, choices=[('ACTIVE', 'Active'), ('INACTIVE', 'Inactive'), ('CANCELLED', 'Cancelled'), ('COMPLETED', 'Completed')], max_length=10, verbose_name='Subscription Status')),
                ('emi_schedule', models.JSONField(blank=True, default=list, help_text='Ordered installments: emi_number, due_date, amount, status, paid_*', verbose_name='EMI Schedule')),
                ('current_emi_index', models.PositiveIntegerField(default=0, verbose_name='Current EMI Index')),
                ('account_status', models.CharField(choices=[('ACTIVE', 'Active'), ('SUSPENDED', 'Suspended'), ('CLOSED', 'Closed')], db_index=True, default='ACTIVE', max_length=10, verbose_name='Account Status')),
            ],
            options={
                'verbose_name': 'Fee Account',
                'verbose_name_plural': 'Fee Accounts',
                'ordering': ['student_name', '-created_at'],
                'indexes': [
                    models.Index(fields=['tenant_id', 'student_id'], name='fee_acct_tenant_student_idx'),
                    models.Index(fields=['tenant_id', 'reminder_enabled', 'next_reminder_date'], name='fee_acct_reminder_due_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('tenant_id', 'student_id', 'course_id'), name='unique_fee_account_per_enrollment'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SequenceCounter',
            fields=_base_fields() + [
                ('name', models.CharField(max_length=30, verbose_name='Counter Name')),
                ('period', models.CharField(help_text='yyyymm', max_length=6, verbose_name='Period')),
                ('value', models.PositiveBigIntegerField(default=0, verbose_name='Current Value')),
            ],
            options={
                'verbose_name': 'Sequence Counter',
                'verbose_name_plural': 'Sequence Counters',
                'constraints': [
                    models.UniqueConstraint(fields=('tenant_id', 'name', 'period'), name='unique_sequence_counter'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentRecord',
            fields=_base_fields() + [
                ('student_id', models.CharField(db_index=True, max_length=64, verbose_name='Student ID')),
                ('student_name', models.CharField(max_length=200, verbose_name='Student Name')),
                ('receipt_number', models.CharField(db_index=True, max_length=50, verbose_name='Receipt Number')),
                ('invoice_number', models.CharField(db_index=True, max_length=50, verbose_name='Invoice Number')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('paid_at', models.DateTimeField(db_index=True, verbose_name='Paid At')),
                ('payment_time', models.CharField(blank=True, max_length=10, verbose_name='Payment Time')),
                ('payment_mode', models.CharField(choices=[('CASH', 'Cash'), ('CARD', 'Card'), ('UPI', 'UPI'), ('BANK_TRANSFER', 'Bank Transfer'), ('CHEQUE', 'Cheque'), ('ONLINE', 'Online'), ('OTHER', 'Other')], max_length=15, verbose_name='Payment Mode')),
                ('transaction_id', models.CharField(blank=True, db_index=True, max_length=100, verbose_name='Transaction ID')),
                ('reference_id', models.CharField(blank=True, max_length=100, verbose_name='Reference ID')),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Discount')),
                ('special_charges', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Special Charges')),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Tax Amount')),
                ('plan_type', models.CharField(choices=[('ONE_TIME', 'One Time'), ('MONTHLY_SUBSCRIPTION', 'Monthly Subscription'), ('EMI', 'EMI'), ('CUSTOM', 'Custom')], max_length=24, verbose_name='Plan Type')),
                ('emi_number', models.PositiveIntegerField(blank=True, null=True, verbose_name='EMI Number')),
                ('payer_type', models.CharField(choices=[('STUDENT', 'Student (Self)'), ('PARENT', 'Parent'), ('GUARDIAN', 'Guardian'), ('SPONSOR', 'Sponsor'), ('OTHER', 'Other')], default='STUDENT', max_length=10, verbose_name='Payer Type')),
                ('payer_name', models.CharField(blank=True, max_length=200, verbose_name='Payer Name')),
                ('status', models.CharField(choices=[('CONFIRMED', 'Confirmed'), ('VERIFIED', 'Verified'), ('CANCELLED', 'Cancelled')], db_index=True, default='CONFIRMED', max_length=10, verbose_name='Status')),
                ('received_by_id', models.CharField(max_length=50, verbose_name='Received By ID')),
                ('verified_by_id', models.CharField(blank=True, max_length=50, null=True, verbose_name='Verified By ID')),
                ('verified_at', models.DateTimeField(blank=True, null=True, verbose_name='Verified At')),
                ('remarks', models.TextField(blank=True, verbose_name='Remarks')),
                ('is_deleted', models.BooleanField(db_index=True, default=False, verbose_name='Deleted')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted At')),
                ('deleted_by_id', models.CharField(blank=True, max_length=50, null=True, verbose_name='Deleted By ID')),
                ('fee_account', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='records', to='payments.feeaccount', verbose_name='Fee Account')),
            ],
            options={
                'verbose_name': 'Payment Record',
                'verbose_name_plural': 'Payment Records',
                'ordering': ['-paid_at', '-created_at'],
                'indexes': [
                    models.Index(fields=['tenant_id', 'fee_account', 'is_deleted'], name='pay_rec_tenant_account_idx'),
                    models.Index(fields=['tenant_id', 'student_id'], name='pay_rec_tenant_student_idx'),
                    models.Index(fields=['paid_at'], name='pay_rec_paid_at_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('tenant_id', 'receipt_number'), name='unique_receipt_number_per_tenant'),
                    models.UniqueConstraint(fields=('tenant_id', 'invoice_number'), name='unique_invoice_number_per_tenant'),
                ],
            },
        ),
    ]
