"""Wallet service for pass issuance and the device update protocol.

This module wires the signing identity, the static assets, the generation
pipeline and the push dispatcher together, and implements the operations
behind the wallet web service endpoints.

The service is initialized once per process (see WalletConfig.ready). Until
it is initialized, the first request that needs signing initializes it.
"""

import threading
from dataclasses import dataclass
from uuid import UUID

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.http import http_date, parse_http_date_safe

from customers.service import CustomerSnapshot, get_customer_snapshot
from wallet import ledger
from wallet.apple.assets import load_asset_set
from wallet.apple.builder import build_descriptor, generate_authentication_token, issue_serial_number
from wallet.apple.certificates import is_signing_configured, load_certificate_store
from wallet.apple.generator import ApplePassGenerator
from wallet.apple.push import NotificationResult, PushNotificationDispatcher
from wallet.apple.signer import ApplePassSigner
from wallet.exceptions import DeviceNotRegistered, PassNotFound, WalletNotConfigured
from wallet.models import WalletPass

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IssuedPass:
    """A freshly generated pass archive."""

    content: bytes
    serial_number: str

    @property
    def filename(self) -> str:
        return f"loyalty-card-{self.serial_number}.{ApplePassGenerator.FILE_EXTENSION}"


class WalletService:
    """Service for managing wallet passes.

    This service provides a unified interface for:
    - Issuing passes for customers
    - Registering/unregistering devices for pass updates
    - Serving updated passes to devices
    - Sending update notifications when passes change
    """

    def __init__(self, dispatcher: PushNotificationDispatcher | None = None) -> None:
        """Initialize the wallet service.

        Args:
            dispatcher: Push dispatcher, a default one is created when omitted.
        """
        self.dispatcher = dispatcher or PushNotificationDispatcher()
        self._generator: ApplePassGenerator | None = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._generator is not None

    def is_configured(self) -> bool:
        """Check if Apple Wallet signing is configured."""
        return is_signing_configured()

    def initialize(self) -> None:
        """Load and validate the signing identity and assets.

        Raises:
            WalletNotConfigured: If signing settings are missing.
            CertificateConfigError: If the certificates cannot be used.
        """
        if not self.is_configured():
            raise WalletNotConfigured("Apple Wallet is not configured")

        with self._lock:
            if self._generator is not None:
                return
            store = load_certificate_store()
            assets = load_asset_set(settings.APPLE_WALLET_ASSETS_DIR or None)
            self._generator = ApplePassGenerator(signer=ApplePassSigner(store), assets=assets)

        logger.info(
            "wallet_service_initialized",
            pass_type_id=settings.APPLE_WALLET_PASS_TYPE_ID,
            certificate_expires_at=store.expires_at.isoformat(),
            assets=len(assets),
        )

    @property
    def generator(self) -> ApplePassGenerator:
        """Get the pass generator, initializing the service if needed."""
        if self._generator is None:
            self.initialize()
        generator = self._generator
        if generator is None:
            raise WalletNotConfigured("Apple Wallet pass generator is not available")
        return generator

    # -------------------------------------------------------------------------
    # Pass Generation
    # -------------------------------------------------------------------------

    def issue_pass(self, customer_id: UUID | str) -> IssuedPass:
        """Generate a pass for a customer, issuing a serial on first use.

        Raises:
            CustomerNotFound: If the customer does not exist or is inactive.
            WalletNotConfigured: If signing is not configured.
            PassGenerationError: If the pass cannot be signed or packaged.
        """
        snapshot = get_customer_snapshot(customer_id)
        if not self.is_configured():
            raise WalletNotConfigured("Apple Wallet is not configured")

        wallet_pass = self._get_or_create_wallet_pass(snapshot)
        content = self._render(wallet_pass, snapshot)
        logger.info("wallet_pass_issued", customer_id=str(snapshot.id), serial_number=wallet_pass.serial_number)
        return IssuedPass(content=content, serial_number=wallet_pass.serial_number)

    def _get_or_create_wallet_pass(self, snapshot: CustomerSnapshot) -> WalletPass:
        pass_type_identifier = settings.APPLE_WALLET_PASS_TYPE_ID
        existing = WalletPass.objects.filter(
            customer_id=snapshot.id, pass_type_identifier=pass_type_identifier
        ).first()
        if existing is not None:
            return existing

        issued_at = timezone.now()
        serial_number = issue_serial_number(snapshot.id, issued_at)
        try:
            with transaction.atomic():
                return WalletPass.objects.create(
                    customer_id=snapshot.id,
                    serial_number=serial_number,
                    pass_type_identifier=pass_type_identifier,
                    authentication_token=generate_authentication_token(snapshot.id, serial_number, issued_at),
                    issued_at=issued_at,
                )
        except IntegrityError:
            # Issued concurrently by another request
            return WalletPass.objects.get(customer_id=snapshot.id, pass_type_identifier=pass_type_identifier)

    def _render(self, wallet_pass: WalletPass, snapshot: CustomerSnapshot) -> bytes:
        descriptor = build_descriptor(
            snapshot,
            serial_number=wallet_pass.serial_number,
            authentication_token=wallet_pass.authentication_token,
            pass_type_identifier=wallet_pass.pass_type_identifier,
        )
        return self.generator.generate_pass(descriptor)

    def get_pass_for_device(
        self,
        pass_type_identifier: str,
        serial_number: str,
        if_modified_since: str | None = None,
    ) -> tuple[bytes | None, str]:
        """Get the latest pass for a device callback request.

        Args:
            pass_type_identifier: Pass type from the request path.
            serial_number: The pass serial number.
            if_modified_since: HTTP If-Modified-Since header value.

        Returns:
            Tuple of (pass bytes, or None if not modified; Last-Modified HTTP date).

        Raises:
            PassNotFound: If no pass has this serial.
            DeviceNotRegistered: If the pass has no active registration.
        """
        wallet_pass = self._get_wallet_pass(pass_type_identifier, serial_number)

        registration = ledger.latest_active_registration(serial_number, pass_type_identifier)
        if registration is None:
            raise DeviceNotRegistered(f"No active registration for pass {serial_number}")

        last_updated_ts = registration.last_updated.timestamp()
        last_modified = http_date(int(last_updated_ts))

        # HTTP dates drop sub-second precision, compare against the exact update time
        client_ts = parse_http_date_safe(if_modified_since) if if_modified_since else None
        if client_ts is not None and last_updated_ts <= client_ts:
            return None, last_modified

        snapshot = get_customer_snapshot(wallet_pass.customer_id)
        return self._render(wallet_pass, snapshot), last_modified

    def _get_wallet_pass(self, pass_type_identifier: str, serial_number: str) -> WalletPass:
        wallet_pass = WalletPass.objects.filter(
            serial_number=serial_number, pass_type_identifier=pass_type_identifier
        ).first()
        if wallet_pass is None:
            raise PassNotFound(f"Unknown pass {serial_number}")
        return wallet_pass

    def get_pass_token(self, pass_type_identifier: str, serial_number: str) -> str | None:
        """The authentication token embedded in an issued pass, if the pass exists."""
        return (
            WalletPass.objects.filter(serial_number=serial_number, pass_type_identifier=pass_type_identifier)
            .values_list("authentication_token", flat=True)
            .first()
        )

    # -------------------------------------------------------------------------
    # Device Registration
    # -------------------------------------------------------------------------

    def register_device(
        self,
        device_library_identifier: str,
        pass_type_identifier: str,
        serial_number: str,
        push_token: str,
    ) -> ledger.RegistrationResult:
        """Register a device to receive pass updates.

        Raises:
            PassNotFound: If no pass has this serial.
        """
        wallet_pass = self._get_wallet_pass(pass_type_identifier, serial_number)
        return ledger.register(
            customer_id=wallet_pass.customer_id,
            serial_number=serial_number,
            device_library_identifier=device_library_identifier,
            push_token=push_token,
            pass_type_identifier=pass_type_identifier,
        )

    def unregister_device(self, device_library_identifier: str, pass_type_identifier: str, serial_number: str) -> None:
        """Unregister a device from pass updates.

        Raises:
            DeviceNotRegistered: If no active registration matched.
        """
        if not ledger.unregister(device_library_identifier, serial_number, pass_type_identifier):
            raise DeviceNotRegistered(f"No active registration for pass {serial_number}")

    def get_updated_passes(
        self,
        device_library_identifier: str,
        pass_type_identifier: str,
        passes_updated_since: str | None = None,
    ) -> ledger.UpdatablePasses:
        """Get passes on a device that changed since an update tag.

        Raises:
            ValueError: If the update tag is malformed.
        """
        since = ledger.from_update_tag(passes_updated_since) if passes_updated_since else None
        return ledger.find_updatable(device_library_identifier, pass_type_identifier, since)

    # -------------------------------------------------------------------------
    # Pass Updates
    # -------------------------------------------------------------------------

    def notify_customer(self, customer_id: UUID | str) -> NotificationResult:
        """Send update notifications to every device holding a customer's pass."""
        tokens = ledger.push_tokens_for(customer_id)
        if not tokens:
            logger.debug("no_registrations_for_customer", customer_id=str(customer_id))
            return NotificationResult()

        result = self.dispatcher.notify(tokens)
        logger.info(
            "update_notifications_sent",
            customer_id=str(customer_id),
            total_tokens=len(tokens),
            successful=result.successful,
            failed=result.failed,
        )
        return result


# Module-level singleton instance
_wallet_service: WalletService | None = None


def get_wallet_service() -> WalletService:
    """Get the wallet service singleton.

    Returns:
        The WalletService instance.
    """
    global _wallet_service
    if _wallet_service is None:
        _wallet_service = WalletService()
    return _wallet_service
