from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    name = "apps.payments"
    label = "payments"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Connects the setting_changed receiver that resets the cached gateway config.
        from . import providers  # noqa: F401
