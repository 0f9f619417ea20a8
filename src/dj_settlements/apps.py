"""
Django app configuration for dj_settlements.
"""

from django.apps import AppConfig
from django.core.signals import setting_changed


def _reload_settlement_settings(sender, setting, **kwargs):
    """Re-read DJ_SETTLEMENTS when it is overridden (tests, runtime reconfiguration)."""
    if setting != "DJ_SETTLEMENTS":
        return
    from .conf import settlement_settings

    settlement_settings.reload()


class DjangoSettlementsConfig(AppConfig):
    """Configuration for the seller settlements application."""

    name = "dj_settlements"
    verbose_name = "Seller Settlements"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        """Import signals when the app is ready."""
        from . import signals  # noqa: F401

        setting_changed.connect(
            _reload_settlement_settings,
            dispatch_uid="dj_settlements.settings.reload",
        )
