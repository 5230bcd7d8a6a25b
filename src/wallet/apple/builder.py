"""Declarative content of loyalty card passes.

A PassDescriptor is built fresh from a customer snapshot on every generation
request. The only values that are not derived from the snapshot are the
serial number and authentication token, which are assigned once when the
pass is first issued and then reused.
"""

import datetime as dt
import ipaddress
import json
import typing as t
from dataclasses import dataclass
from urllib.parse import urlsplit
from uuid import UUID

from django.conf import settings

from common.signing import generate_signature
from customers.service import CustomerSnapshot
from wallet.apple.formatting import LOYALTY_THEME, PassColors, format_balance, format_card_number

PASS_FILENAME = "pass.json"
SERIAL_PREFIX = "LOY"
WEB_SERVICE_PATH = "/api/wallet"

_TOKEN_DOMAIN = "loyalty:wallet-pass-token:v1"


@dataclass(frozen=True)
class PassField:
    """A field to display on the pass."""

    key: str
    label: str
    value: str
    change_message: str | None = None
    text_alignment: str | None = None  # PKTextAlignmentLeft, Right, Center, Natural

    def to_dict(self) -> dict[str, str]:
        """Serialize to the pass.json field dictionary."""
        data = {"key": self.key, "label": self.label, "value": self.value}
        if self.change_message:
            data["changeMessage"] = self.change_message
        if self.text_alignment:
            data["textAlignment"] = self.text_alignment
        return data


@dataclass(frozen=True)
class PassDescriptor:
    """Everything that goes into pass.json for one issued pass."""

    serial_number: str
    pass_type_identifier: str
    team_identifier: str
    organization_name: str
    description: str
    logo_text: str
    colors: PassColors
    barcode_message: str
    header_fields: tuple[PassField, ...] = ()
    primary_fields: tuple[PassField, ...] = ()
    secondary_fields: tuple[PassField, ...] = ()
    auxiliary_fields: tuple[PassField, ...] = ()
    back_fields: tuple[PassField, ...] = ()
    web_service_url: str | None = None
    authentication_token: str | None = None

    @property
    def is_updatable(self) -> bool:
        """Whether devices holding this pass can register for updates."""
        return bool(self.web_service_url and self.authentication_token)

    def to_pass_json(self) -> dict[str, t.Any]:
        """Build the pass.json document."""
        pass_json: dict[str, t.Any] = {
            "formatVersion": 1,
            "passTypeIdentifier": self.pass_type_identifier,
            "serialNumber": self.serial_number,
            "teamIdentifier": self.team_identifier,
            "organizationName": self.organization_name,
            "description": self.description,
            "logoText": self.logo_text,
            "backgroundColor": self.colors.background,
            "foregroundColor": self.colors.foreground,
            "labelColor": self.colors.label,
            "barcodes": [
                {
                    "format": "PKBarcodeFormatQR",
                    "message": self.barcode_message,
                    "messageEncoding": "iso-8859-1",
                }
            ],
            "generic": {
                "headerFields": [f.to_dict() for f in self.header_fields],
                "primaryFields": [f.to_dict() for f in self.primary_fields],
                "secondaryFields": [f.to_dict() for f in self.secondary_fields],
                "auxiliaryFields": [f.to_dict() for f in self.auxiliary_fields],
                "backFields": [f.to_dict() for f in self.back_fields],
            },
        }

        # Both or neither: a token without a callback URL is meaningless
        if self.web_service_url and self.authentication_token:
            pass_json["webServiceURL"] = self.web_service_url
            pass_json["authenticationToken"] = self.authentication_token

        return pass_json

    def serialize(self) -> bytes:
        """Serialize to the exact pass.json bytes placed in the archive."""
        return json.dumps(self.to_pass_json(), indent=2, ensure_ascii=False).encode("utf-8")


def issue_serial_number(customer_id: UUID | str, now: dt.datetime | None = None) -> str:
    """Create the serial number for a newly issued pass.

    Args:
        customer_id: The customer the pass belongs to.
        now: Issue time, defaults to the current time.

    Returns:
        A serial of the form ``LOY-<customer id>-<epoch milliseconds>``.
    """
    now = now or dt.datetime.now(dt.UTC)
    return f"{SERIAL_PREFIX}-{customer_id}-{int(now.timestamp() * 1000)}"


def generate_authentication_token(customer_id: UUID | str, serial_number: str, issued_at: dt.datetime) -> str:
    """Derive the per-pass authentication token embedded in pass.json.

    The token is an HMAC over customer, serial and issue time keyed with
    WALLET_AUTH_SECRET (or a SECRET_KEY derived key when unset).
    """
    message = f"{customer_id}:{serial_number}:{int(issued_at.timestamp())}"
    return generate_signature(message, domain=_TOKEN_DOMAIN, secret=settings.WALLET_AUTH_SECRET or None)


def resolve_web_service_url(base_url: str | None = None) -> str | None:
    """Return the callback URL devices use, or None if it would be unreachable.

    Only public HTTPS addresses qualify. Loopback, private, link-local and
    unspecified addresses and ``localhost`` names are rejected.

    Args:
        base_url: Public base address of this service. Defaults to settings.BASE_URL.

    Returns:
        The web service URL, or None for a static pass.
    """
    base_url = (base_url if base_url is not None else settings.BASE_URL).rstrip("/")
    parts = urlsplit(base_url)
    if parts.scheme != "https" or not parts.hostname:
        return None

    host = parts.hostname.lower()
    if host == "localhost" or host.endswith(".localhost"):
        return None
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        if address.is_loopback or address.is_private or address.is_link_local or address.is_unspecified:
            return None

    return f"{base_url}{WEB_SERVICE_PATH}"


def build_descriptor(
    snapshot: CustomerSnapshot,
    *,
    serial_number: str,
    authentication_token: str,
    web_service_url: str | None = None,
    pass_type_identifier: str | None = None,
    team_identifier: str | None = None,
) -> PassDescriptor:
    """Build the pass content for a customer.

    Args:
        snapshot: Read-only customer state rendered on the card.
        serial_number: Stable serial of the issued pass.
        authentication_token: Token devices present on callbacks.
        web_service_url: Callback URL. Omit to apply resolve_web_service_url().
        pass_type_identifier: Defaults to settings.APPLE_WALLET_PASS_TYPE_ID.
        team_identifier: Defaults to settings.APPLE_WALLET_TEAM_ID.

    Returns:
        The PassDescriptor. Identical input yields an identical descriptor.
    """
    if web_service_url is None:
        web_service_url = resolve_web_service_url()

    return PassDescriptor(
        serial_number=serial_number,
        pass_type_identifier=pass_type_identifier or settings.APPLE_WALLET_PASS_TYPE_ID,
        team_identifier=team_identifier or settings.APPLE_WALLET_TEAM_ID,
        organization_name=settings.APPLE_WALLET_ORGANIZATION_NAME,
        description=settings.APPLE_WALLET_DESCRIPTION,
        logo_text=settings.APPLE_WALLET_LOGO_TEXT,
        colors=LOYALTY_THEME,
        barcode_message=settings.APPLE_WALLET_BARCODE_URL.format(customer_id=snapshot.id),
        header_fields=(PassField(key="customer", label="Customer", value=snapshot.name),),
        primary_fields=(
            PassField(
                key="balance",
                label="Balance",
                value=format_balance(snapshot.balance),
                change_message="Your balance is now %@",
            ),
        ),
        secondary_fields=(
            PassField(
                key="level",
                label="Level",
                value=snapshot.level_display,
                change_message="Your level is now %@",
            ),
        ),
        auxiliary_fields=(
            PassField(
                key="card_number",
                label="Card",
                value=format_card_number(snapshot.card_number),
                text_alignment="PKTextAlignmentRight",
            ),
        ),
        back_fields=(
            PassField(key="program", label="Program", value=settings.APPLE_WALLET_DESCRIPTION),
            PassField(key="card_number_back", label="Card number", value=snapshot.card_number),
        ),
        web_service_url=web_service_url,
        authentication_token=authentication_token if web_service_url else None,
    )
