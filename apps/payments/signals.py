# payments/signals.py

"""
Payment signals.

payment_reminder_due is sent once per reminder dispatched by the reminder
sweep. Notification channels (email, SMS, WhatsApp) connect receivers to it;
the engine does not deliver messages itself.

Receivers get:
    sender: FeeAccount class
    account: FeeAccount the reminder is for
    tenant_id: Owning tenant
    reminder_type: 'FOLLOW_UP' (overdue / partial) or 'UPCOMING' (due soon)
    amount_due: Outstanding amount or monthly installment
    due_date: Next due date, if any
"""

from django.dispatch import Signal

payment_reminder_due = Signal()
