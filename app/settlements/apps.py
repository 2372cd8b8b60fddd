"""
Django app configuration for settlements.

Loads and validates the platform configuration once at startup and
registers the webhook handlers.
"""

import logging

from django.apps import AppConfig
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class SettlementsConfig(AppConfig):
    """Configuration for the settlements app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "settlements"
    verbose_name = "Settlements"

    def ready(self):
        """
        Validate platform configuration and register webhook handlers.

        An empty host destination is tolerated here so that the service
        can boot before the platform account is provisioned; the platform
        leg then fails at payout time with a configuration error.
        """
        from settlements.config import (
            get_platform_config,
            validate_platform_config,
        )

        config = get_platform_config()
        errors = validate_platform_config(config, require_destination=False)
        if errors:
            raise ImproperlyConfigured(
                "Invalid platform configuration: " + "; ".join(errors)
            )

        if not config.host_payout_destination:
            logger.warning(
                "PLATFORM_HOST_PAYOUT_DESTINATION is not set; "
                "platform fee legs will fail until it is configured"
            )

        # Import handlers to populate the registry
        from settlements.webhooks import handlers  # noqa: F401
