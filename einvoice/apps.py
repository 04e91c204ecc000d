from django.apps import AppConfig


class EInvoiceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "einvoice"
    verbose_name = "Electronic invoice authorization"
