"""Django app configuration for wallet pass generation."""

import structlog
from django.apps import AppConfig
from django.conf import settings

logger = structlog.get_logger(__name__)


class WalletConfig(AppConfig):
    """Configuration for the wallet app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "wallet"
    verbose_name = "Wallet Passes"

    def ready(self) -> None:
        """Connect signals and validate the signing identity.

        A broken signing configuration stops the process here instead of
        failing the first pass request.
        """
        import wallet.signals  # noqa: F401
        from wallet.service import get_wallet_service

        if not settings.APPLE_WALLET_VALIDATE_ON_STARTUP:
            return

        service = get_wallet_service()
        if not service.is_configured():
            logger.warning("apple_wallet_not_configured")
            return
        service.initialize()
