"""Exception handlers for the API."""

import typing as t
from copy import deepcopy

import orjson
import structlog
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.errors import ValidationError as NinjaValidationError
from ninja.responses import Response

from customers.exceptions import CustomerNotFound, InactiveCustomerError, InsufficientBalanceError
from wallet.exceptions import (
    CertificateConfigError,
    DeviceNotRegistered,
    PassGenerationError,
    PassNotFound,
    WalletNotConfigured,
)

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    json_payload = None
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            json_payload = obfuscate(orjson.loads(request.body))
        except (orjson.JSONDecodeError, AttributeError, TypeError):  # pragma: no cover
            json_payload = None
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        method=request.method,
        path=request.path,
        headers=obfuscate(dict(request.headers)),
        GET=obfuscate(request.GET.dict()),
        json_payload=json_payload,
    )
    return Response(status=500, data={"detail": "Internal Server Error."})


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.error("VALIDATION_ERROR", exc_info=True)
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": list(exc.messages)}  # type: ignore[union-attr]
    return Response(status=400, data={"errors": error_dict})


def handle_request_validation_error(
    request: HttpRequest, exc: NinjaValidationError | t.Type[NinjaValidationError]
) -> Response:
    """Handle an invalid request body, query or path with field-level errors."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors:  # type: ignore[union-attr]
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "payload")]
        field = ".".join(loc) or "__all__"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
    return Response(status=400, data={"errors": errors})


def handle_not_found(
    request: HttpRequest, exc: CustomerNotFound | PassNotFound | DeviceNotRegistered | t.Type[Exception]
) -> Response:
    """Handle a missing customer, pass or registration."""
    return Response(status=404, data={"detail": str(exc)})


def handle_balance_error(
    request: HttpRequest, exc: InsufficientBalanceError | InactiveCustomerError | t.Type[Exception]
) -> Response:
    """Handle a rejected balance operation."""
    return Response(status=400, data={"detail": str(exc)})


def handle_wallet_not_configured(
    request: HttpRequest, exc: WalletNotConfigured | CertificateConfigError | t.Type[Exception]
) -> Response:
    """Handle a request that needs pass signing while it is unavailable."""
    logger.error("wallet_unavailable", path=request.path, error=str(exc))
    return Response(status=503, data={"detail": "Apple Wallet is not available."})


def handle_pass_generation_error(
    request: HttpRequest, exc: PassGenerationError | t.Type[PassGenerationError]
) -> Response:
    """Handle a signing or packaging failure without leaking tool output."""
    logger.error(
        "pass_request_failed",
        path=request.path,
        error_type=type(exc).__name__ if isinstance(exc, Exception) else exc.__name__,
        stage=getattr(exc, "stage", None),
    )
    return Response(status=500, data={"detail": "Failed to generate pass."})


SENSITIVE_KEYS = {"password", "token", "x-api-key", "authorization", "authentication", "pushtoken", "phone"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    if not isinstance(data, dict):
        return data
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
