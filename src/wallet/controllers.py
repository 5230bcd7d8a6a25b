"""Django Ninja controllers for wallet pass API endpoints.

This module provides two sets of endpoints:

1. Apple Wallet Web Service API (at /wallet/v1/...)
   - Device registration/unregistration
   - Pass retrieval and updates
   - Error logging
   These are called by Apple Wallet, not by our frontend.

2. Pass issuance (at /wallet/passes/...)
   - Download the loyalty card pass for a customer
"""

import structlog
from django.http import HttpRequest, HttpResponse
from ninja import Router
from ninja_extra import api_controller, route
from ninja_extra.controllers.base import ControllerBase

from common.schema import ResponseDetail, ValidationErrorResponse
from common.throttling import PassIssuanceThrottle
from wallet.apple.generator import ApplePassGenerator
from wallet.authentication import ApplePassAuth
from wallet.schemas import DeviceRegistrationPayload, IssuePassPayload, LogPayload, SerialNumbersResponse
from wallet.service import WalletService, get_wallet_service

logger = structlog.get_logger(__name__)

# Router for Apple Wallet web service callbacks
apple_router = Router(tags=["Apple Wallet Web Service"], auth=ApplePassAuth())


# -----------------------------------------------------------------------------
# Apple Wallet Web Service Endpoints
# These implement the Apple Passbook Web Service Reference
# https://developer.apple.com/library/archive/documentation/PassKit/Reference/PassKit_WebService/WebService.html
# -----------------------------------------------------------------------------


@apple_router.post(
    "/v1/devices/{device_library_identifier}/registrations/{pass_type_identifier}/{serial_number}",
    response={200: None, 201: None, 400: ValidationErrorResponse, 401: ResponseDetail, 404: ResponseDetail},
    url_name="wallet_register_device",
)
def register_device(
    request: HttpRequest,
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
    payload: DeviceRegistrationPayload,
) -> HttpResponse:
    """Register a device to receive push notifications for a pass.

    Called by Apple Wallet when a pass is added to the wallet.

    Returns:
        200: Registration already existed, push token refreshed
        201: Registration created successfully
    """
    result = get_wallet_service().register_device(
        device_library_identifier=device_library_identifier,
        pass_type_identifier=pass_type_identifier,
        serial_number=serial_number,
        push_token=payload.pushToken,
    )
    return HttpResponse(status=201 if result.created else 200)


@apple_router.delete(
    "/v1/devices/{device_library_identifier}/registrations/{pass_type_identifier}/{serial_number}",
    response={200: None, 401: ResponseDetail, 404: ResponseDetail},
    url_name="wallet_unregister_device",
)
def unregister_device(
    request: HttpRequest,
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
) -> HttpResponse:
    """Unregister a device from receiving updates for a pass.

    Called by Apple Wallet when a pass is removed from the wallet.
    """
    get_wallet_service().unregister_device(device_library_identifier, pass_type_identifier, serial_number)
    return HttpResponse(status=200)


@apple_router.get(
    "/v1/devices/{device_library_identifier}/registrations/{pass_type_identifier}",
    response={200: SerialNumbersResponse, 204: None, 400: ValidationErrorResponse, 401: ResponseDetail},
    url_name="wallet_get_serial_numbers",
)
def get_serial_numbers(
    request: HttpRequest,
    device_library_identifier: str,
    pass_type_identifier: str,
    passesUpdatedSince: str | None = None,
) -> HttpResponse | tuple[int, SerialNumbersResponse | ValidationErrorResponse]:
    """Get serial numbers of passes that need updating.

    Called by device after receiving a push notification.

    Args:
        request: The HTTP request.
        device_library_identifier: Unique identifier for the device.
        pass_type_identifier: Pass type identifier (must match our configuration).
        passesUpdatedSince: Update tag from a previous response (query param).

    Returns:
        200: JSON with serialNumbers array and lastUpdated tag
        204: No passes need updating
    """
    try:
        updatable = get_wallet_service().get_updated_passes(
            device_library_identifier=device_library_identifier,
            pass_type_identifier=pass_type_identifier,
            passes_updated_since=passesUpdatedSince,
        )
    except ValueError as e:
        return 400, ValidationErrorResponse(errors={"passesUpdatedSince": [str(e)]})

    if updatable.is_empty:
        return HttpResponse(status=204)

    return 200, SerialNumbersResponse(
        serialNumbers=updatable.serial_numbers,
        lastUpdated=updatable.update_tag,
    )


@apple_router.get(
    "/v1/passes/{pass_type_identifier}/{serial_number}",
    response={200: None, 304: None, 401: ResponseDetail, 404: ResponseDetail, 500: ResponseDetail},
    url_name="wallet_get_pass",
)
def get_latest_pass(
    request: HttpRequest,
    pass_type_identifier: str,
    serial_number: str,
) -> HttpResponse:
    """Get the latest version of a pass.

    Called by device to download an updated pass.

    Returns:
        200: The .pkpass file
        304: Pass not modified since If-Modified-Since
    """
    pkpass, last_modified = get_wallet_service().get_pass_for_device(
        pass_type_identifier=pass_type_identifier,
        serial_number=serial_number,
        if_modified_since=request.headers.get("If-Modified-Since"),
    )

    if pkpass is None:
        response = HttpResponse(status=304)
    else:
        response = HttpResponse(pkpass, content_type=ApplePassGenerator.CONTENT_TYPE, status=200)
    response["Last-Modified"] = last_modified
    return response


@apple_router.post(
    "/v1/log",
    response={200: None, 400: ValidationErrorResponse, 401: ResponseDetail},
    url_name="wallet_log",
)
def log_errors(request: HttpRequest, payload: LogPayload) -> HttpResponse:
    """Receive error logs from devices.

    Apple Wallet sends logs here when it encounters errors with passes.
    Useful for debugging pass issues.
    """
    for log_message in payload.logs:
        logger.info("apple_wallet_device_log", message=log_message)

    return HttpResponse(status=200)


# -----------------------------------------------------------------------------
# Pass issuance
# -----------------------------------------------------------------------------


@api_controller("/wallet/passes", tags=["Wallet Passes"])
class PassIssuanceController(ControllerBase):
    """Controller for issuing loyalty card passes."""

    def __init__(self) -> None:
        """Initialize controller."""
        super().__init__()
        self._service: WalletService | None = None

    @property
    def service(self) -> WalletService:
        """Get wallet service instance."""
        if self._service is None:
            self._service = get_wallet_service()
        return self._service

    @route.post(
        "/apple",
        url_name="wallet_issue_apple_pass",
        summary="Issue Apple Wallet pass",
        description="Generate and download the Apple Wallet loyalty card (.pkpass) for a customer.",
        response={
            201: None,
            400: ValidationErrorResponse,
            404: ResponseDetail,
            500: ResponseDetail,
            503: ResponseDetail,
        },
        throttle=PassIssuanceThrottle(),
    )
    def issue_apple_pass(self, payload: IssuePassPayload) -> HttpResponse:
        """Issue an Apple Wallet pass for a customer.

        Returns:
            201: The .pkpass file
            404: Customer not found or inactive
            503: Apple Wallet not configured
        """
        issued = self.service.issue_pass(payload.customerId)

        response = HttpResponse(issued.content, content_type=ApplePassGenerator.CONTENT_TYPE, status=201)
        response["Content-Disposition"] = f'attachment; filename="{issued.filename}"'
        return response
