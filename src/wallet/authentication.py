"""Authentication for the Apple Wallet web service.

Devices send ``Authorization: ApplePass <token>`` on every callback. The token
must match the shared web service token; when per-pass tokens are enabled,
endpoints whose path names a serial number also accept the token embedded in
that pass. Every failure produces the same 401 response.
"""

import hmac
import typing as t

import structlog
from django.conf import settings
from django.http import HttpRequest
from ninja.security import HttpBearer

logger = structlog.get_logger(__name__)


def _tokens_match(presented: str, expected: str | None) -> bool:
    return bool(expected) and hmac.compare_digest(presented.encode(), expected.encode())  # type: ignore[union-attr]


class ApplePassAuth(HttpBearer):
    """Authenticates wallet callbacks carrying an ``ApplePass`` authorization header."""

    openapi_scheme = "applepass"

    def authenticate(self, request: HttpRequest, token: str) -> t.Any | None:
        """Validate the token and the pass type named in the request path.

        Returns:
            A truthy marker naming the accepted credential, or None to reject.
        """
        path_kwargs = request.resolver_match.kwargs if request.resolver_match else {}
        pass_type_identifier = path_kwargs.get("pass_type_identifier")
        serial_number = path_kwargs.get("serial_number")

        if pass_type_identifier is not None and pass_type_identifier != settings.APPLE_WALLET_PASS_TYPE_ID:
            logger.warning("wallet_auth_invalid_pass_type", received=pass_type_identifier)
            return None

        expected = settings.APPLE_WALLET_WEB_SERVICE_TOKEN or settings.APPLE_WALLET_PASS_TYPE_ID
        if _tokens_match(token, expected):
            return "web_service"

        if settings.APPLE_WALLET_ACCEPT_PASS_TOKENS and serial_number and pass_type_identifier:
            from wallet.service import get_wallet_service

            pass_token = get_wallet_service().get_pass_token(pass_type_identifier, serial_number)
            if _tokens_match(token, pass_token):
                return "pass"

        logger.warning("wallet_auth_invalid_token", path=request.path)
        return None
