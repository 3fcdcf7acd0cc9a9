# payments/apps.py

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Fee Payments"

    def ready(self):
        """
        Import signal definitions when the app is ready so receivers
        registered elsewhere can connect to them.
        """
        import payments.signals  # noqa: F401
