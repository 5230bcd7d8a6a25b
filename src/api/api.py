from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.errors import ValidationError as NinjaValidationError
from ninja_extra import NinjaExtraAPI

from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle
from customers.exceptions import CustomerNotFound, InactiveCustomerError, InsufficientBalanceError
from wallet.controllers import PassIssuanceController, apple_router
from wallet.exceptions import (
    CertificateConfigError,
    DeviceNotRegistered,
    PassGenerationError,
    PassNotFound,
    WalletNotConfigured,
)

from .exception_handlers import (
    handle_balance_error,
    handle_django_validation_error,
    handle_general_exception,
    handle_not_found,
    handle_pass_generation_error,
    handle_request_validation_error,
    handle_wallet_not_configured,
)

api = NinjaExtraAPI(
    title="Loy Backend API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Loy API {settings.VERSION}",
    app_name=f"loy-api-{settings.VERSION}",
    urls_namespace="api",
    throttle=[AnonDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, ResponseOk()


api.register_controllers(
    # Wallet controllers
    PassIssuanceController,
)
api.add_router("/wallet", apple_router)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    NinjaValidationError: handle_request_validation_error,
    CustomerNotFound: handle_not_found,
    PassNotFound: handle_not_found,
    DeviceNotRegistered: handle_not_found,
    InsufficientBalanceError: handle_balance_error,
    InactiveCustomerError: handle_balance_error,
    WalletNotConfigured: handle_wallet_not_configured,
    CertificateConfigError: handle_wallet_not_configured,
    PassGenerationError: handle_pass_generation_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
