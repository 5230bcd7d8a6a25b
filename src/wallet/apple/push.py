"""Apple Push Notification service client for Wallet pass updates.

When a pass needs updating (e.g., the customer's balance changed), we send a
silent push notification to every registered device, which then fetches the
updated pass from our web service.

Apple requires:
- HTTP/2 connection to api.push.apple.com (production) or api.sandbox.push.apple.com
- Authentication via Pass Type ID certificate (same cert used to sign passes)
- Topic header set to the Pass Type ID
"""

import asyncio
import ssl
import typing as t
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog
from asgiref.sync import async_to_sync
from django.conf import settings

logger = structlog.get_logger(__name__)


# APNs endpoints
APNS_PRODUCTION_HOST = "api.push.apple.com"
APNS_SANDBOX_HOST = "api.sandbox.push.apple.com"
APNS_PORT = 443

# content-available only: no alert, sound or badge
SILENT_PAYLOAD = b'{"aps":{"content-available":1}}'


def _short(push_token: str) -> str:
    return push_token[:8] + "..."


class ApplePushError(Exception):
    """Raised when a single push notification cannot be delivered.

    Attributes:
        status_code: HTTP status code from APNs, if available.
        reason: Error reason from APNs, if available.
    """

    def __init__(self, message: str, status_code: int | None = None, reason: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message describing what went wrong.
            status_code: HTTP status code from APNs, if available.
            reason: Error reason from APNs, if available.
        """
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


@dataclass(frozen=True)
class NotificationResult:
    """Aggregate outcome of a notification batch."""

    successful: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed


class AsyncApplePushNotificationClient:
    """Async client for sending wallet pass update notifications over HTTP/2."""

    def __init__(
        self,
        cert_path: str | None = None,
        key_path: str | None = None,
        key_password: str | None = None,
        pass_type_id: str | None = None,
        use_sandbox: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async push notification client.

        Args:
            cert_path: Path to Pass Type ID certificate (PEM format).
            key_path: Path to private key (PEM format).
            key_password: Password for private key if encrypted.
            pass_type_id: The Pass Type ID (e.g., pass.com.example.loyalty).
            use_sandbox: Whether to use sandbox APNs.
            transport: Custom httpx transport, replaces the TLS connection.
        """
        self.cert_path = cert_path or settings.APPLE_WALLET_CERT_PATH
        self.key_path = key_path or settings.APPLE_WALLET_KEY_PATH
        self.key_password = key_password or settings.APPLE_WALLET_KEY_PASSWORD
        self.pass_type_id = pass_type_id or settings.APPLE_WALLET_PASS_TYPE_ID
        self.use_sandbox = settings.APPLE_WALLET_APNS_USE_SANDBOX if use_sandbox is None else use_sandbox

        self._host = APNS_SANDBOX_HOST if self.use_sandbox else APNS_PRODUCTION_HOST
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_configured(self) -> bool:
        """Check if push notifications are properly configured.

        Returns:
            True if all required settings are present.
        """
        return bool(self.cert_path and self.key_path and self.pass_type_id)

    def _get_ssl_context(self) -> ssl.SSLContext:
        """Create SSL context with client certificate authentication.

        Raises:
            ApplePushError: If certificates cannot be loaded.
        """
        cert_path = Path(self.cert_path)
        key_path = Path(self.key_path)

        if not cert_path.exists():
            raise ApplePushError(f"Certificate not found: {self.cert_path}")
        if not key_path.exists():
            raise ApplePushError(f"Key not found: {self.key_path}")

        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.minimum_version = ssl.TLSVersion.TLSv1_2
            context.load_cert_chain(
                certfile=str(cert_path),
                keyfile=str(key_path),
                password=self.key_password if self.key_password else None,
            )
            # Load default CA certificates for verifying Apple's server
            context.load_default_certs()
        except ssl.SSLError as e:
            raise ApplePushError(f"SSL configuration failed: {e}") from e

        return context

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP/2 client."""
        if self._client is None:
            timeout = httpx.Timeout(30.0, connect=10.0)
            if self._transport is not None:
                self._client = httpx.AsyncClient(transport=self._transport, timeout=timeout)
            else:
                self._client = httpx.AsyncClient(http2=True, verify=self._get_ssl_context(), timeout=timeout)
        return self._client

    async def send_update_notification(self, push_token: str) -> bool:
        """Send a silent push notification to trigger a pass update.

        Args:
            push_token: The device push token from registration.

        Returns:
            True if notification was accepted by APNs.

        Raises:
            ApplePushError: If the notification fails to send.
        """
        url = f"https://{self._host}:{APNS_PORT}/3/device/{push_token}"

        headers = {
            "apns-topic": self.pass_type_id,
            "apns-push-type": "background",
            "apns-priority": "5",  # Background updates must use low priority
        }

        try:
            response = await self._get_client().post(url, content=SILENT_PAYLOAD, headers=headers)
        except httpx.RequestError as e:
            raise ApplePushError(f"Request failed: {e}") from e

        if response.status_code == 200:
            logger.debug("push_notification_sent", device_token=_short(push_token))
            return True

        reason = None
        try:
            reason = response.json().get("reason")
        except ValueError:
            pass

        raise ApplePushError(
            f"APNs returned status {response.status_code}",
            status_code=response.status_code,
            reason=reason,
        )

    async def close(self) -> None:
        """Close the async client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AsyncApplePushNotificationClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()


class PushNotificationDispatcher:
    """Sends pass update notifications to many devices at once.

    Delivery is best-effort: per-token failures are counted and logged,
    never raised, and an unconfigured gateway turns every call into a no-op.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, **client_kwargs: object) -> None:
        self._transport = transport
        self._client_kwargs = client_kwargs

    def _make_client(self) -> AsyncApplePushNotificationClient:
        client_kwargs: dict[str, t.Any] = dict(self._client_kwargs)
        return AsyncApplePushNotificationClient(transport=self._transport, **client_kwargs)

    def is_configured(self) -> bool:
        return self._make_client().is_configured()

    def notify(self, push_tokens: Iterable[str]) -> NotificationResult:
        """Send one silent notification per distinct token.

        Args:
            push_tokens: Device push tokens. Duplicates are sent once.

        Returns:
            Counts of accepted and failed notifications.
        """
        tokens = list(dict.fromkeys(token for token in push_tokens if token))
        return async_to_sync(self.anotify)(tokens)

    async def anotify(self, push_tokens: list[str]) -> NotificationResult:
        """Async variant of notify(); tokens are sent concurrently."""
        if not push_tokens:
            return NotificationResult()

        client = self._make_client()
        if not client.is_configured():
            logger.warning("apple_push_not_configured_skipping", tokens=len(push_tokens))
            return NotificationResult()

        try:
            async with client:
                results = await asyncio.gather(
                    *(client.send_update_notification(token) for token in push_tokens),
                    return_exceptions=True,
                )
        except ApplePushError as e:
            # Client setup failed (e.g. unreadable certificate); nothing was sent
            logger.error("apple_push_client_unavailable", error=str(e), tokens=len(push_tokens))
            return NotificationResult(successful=0, failed=len(push_tokens))

        successful = 0
        for token, outcome in zip(push_tokens, results, strict=True):
            if outcome is True:
                successful += 1
            elif isinstance(outcome, ApplePushError):
                logger.warning(
                    "push_notification_failed",
                    device_token=_short(token),
                    status=outcome.status_code,
                    reason=outcome.reason,
                )
            elif isinstance(outcome, BaseException):
                logger.error("push_notification_error", device_token=_short(token), error=repr(outcome))

        result = NotificationResult(successful=successful, failed=len(push_tokens) - successful)
        logger.info(
            "batch_notifications_complete",
            total=result.total,
            successful=result.successful,
            failed=result.failed,
        )
        return result
