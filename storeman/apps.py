"""Django app configuration for Storeman."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class StoremanConfig(AppConfig):
    """Configuration for Storeman app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "storeman"
    verbose_name = _("Store Inventory")
