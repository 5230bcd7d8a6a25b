"""Device registration ledger.

Tracks which devices hold which passes, the push token to reach each device,
and when each registration last changed. The wallet web service reads it to
answer "which of my passes changed since X", and the change propagation
path writes to it whenever a customer's pass content changes.

Update tags handed to devices are integer microseconds since the Unix epoch,
so a tag parses back to exactly the timestamp it was made from.
"""

import datetime as dt
from dataclasses import dataclass, field
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from wallet.models import WalletDeviceRegistration

logger = structlog.get_logger(__name__)

EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.UTC)
_MICROSECOND = dt.timedelta(microseconds=1)


def to_update_tag(value: dt.datetime) -> str:
    """Encode a timestamp as an opaque update tag."""
    return str((value - EPOCH) // _MICROSECOND)


def from_update_tag(tag: str) -> dt.datetime:
    """Decode an update tag produced by to_update_tag().

    Raises:
        ValueError: If the tag is not a non-negative integer.
    """
    tag = tag.strip()
    if not tag.isdigit():
        raise ValueError(f"Invalid update tag: {tag!r}")
    try:
        return EPOCH + int(tag) * _MICROSECOND
    except OverflowError as e:
        raise ValueError(f"Update tag out of range: {tag!r}") from e


@dataclass(frozen=True)
class RegistrationResult:
    registration: WalletDeviceRegistration
    created: bool


@dataclass(frozen=True)
class UpdatablePasses:
    """Serial numbers changed since a point in time, plus the newest change."""

    serial_numbers: list[str] = field(default_factory=list)
    last_updated: dt.datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.serial_numbers

    @property
    def update_tag(self) -> str | None:
        return to_update_tag(self.last_updated) if self.last_updated else None


def _active(
    device_library_identifier: str, serial_number: str, pass_type_identifier: str
) -> QuerySet[WalletDeviceRegistration]:
    return WalletDeviceRegistration.objects.filter(
        device_library_identifier=device_library_identifier,
        serial_number=serial_number,
        pass_type_identifier=pass_type_identifier,
        is_active=True,
    )


def register(
    customer_id: UUID | str,
    serial_number: str,
    device_library_identifier: str,
    push_token: str,
    pass_type_identifier: str,
) -> RegistrationResult:
    """Create or refresh the active registration for a device and pass.

    Repeating a registration is idempotent: the existing row gets the new
    push token and a fresh last_updated.

    Returns:
        The registration and whether it was newly created.
    """
    now = timezone.now()
    try:
        with transaction.atomic():
            existing = (
                _active(device_library_identifier, serial_number, pass_type_identifier).select_for_update().first()
            )
            if existing is not None:
                return RegistrationResult(_refresh(existing, push_token, now), created=False)

            registration = WalletDeviceRegistration.objects.create(
                customer_id=customer_id,
                serial_number=serial_number,
                device_library_identifier=device_library_identifier,
                push_token=push_token,
                pass_type_identifier=pass_type_identifier,
                last_updated=now,
            )
    except IntegrityError:
        # A concurrent request inserted the same active row first
        with transaction.atomic():
            existing = (
                _active(device_library_identifier, serial_number, pass_type_identifier).select_for_update().get()
            )
            return RegistrationResult(_refresh(existing, push_token, now), created=False)

    logger.info(
        "device_registered",
        serial_number=serial_number,
        device_id=device_library_identifier[:8],
    )
    return RegistrationResult(registration, created=True)


def _refresh(
    registration: WalletDeviceRegistration, push_token: str, now: dt.datetime
) -> WalletDeviceRegistration:
    registration.push_token = push_token
    registration.last_updated = now
    registration.save(update_fields=["push_token", "last_updated", "updated_at"])
    logger.info(
        "device_registration_refreshed",
        serial_number=registration.serial_number,
        device_id=registration.device_library_identifier[:8],
    )
    return registration


def find_updatable(
    device_library_identifier: str,
    pass_type_identifier: str,
    since: dt.datetime | None = None,
) -> UpdatablePasses:
    """List passes on a device that changed after `since` (all when omitted)."""
    registrations = WalletDeviceRegistration.objects.filter(
        device_library_identifier=device_library_identifier,
        pass_type_identifier=pass_type_identifier,
        is_active=True,
    )
    if since is not None:
        registrations = registrations.filter(last_updated__gt=since)

    rows = list(registrations.order_by("serial_number").values_list("serial_number", "last_updated"))
    if not rows:
        return UpdatablePasses()

    return UpdatablePasses(
        serial_numbers=list(dict.fromkeys(serial for serial, _ in rows)),
        last_updated=max(updated for _, updated in rows),
    )


def unregister(device_library_identifier: str, serial_number: str, pass_type_identifier: str) -> bool:
    """Deactivate a registration.

    Returns:
        True if an active registration was deactivated.
    """
    now = timezone.now()
    changed = _active(device_library_identifier, serial_number, pass_type_identifier).update(
        is_active=False,
        last_updated=now,
        updated_at=now,
    )
    if changed:
        logger.info("device_unregistered", serial_number=serial_number, device_id=device_library_identifier[:8])
    return changed > 0


def mark_updated(customer_id: UUID | str) -> int:
    """Bump last_updated on every active registration of a customer.

    Returns:
        Number of registrations touched.
    """
    now = timezone.now()
    return WalletDeviceRegistration.objects.filter(customer_id=customer_id, is_active=True).update(
        last_updated=now,
        updated_at=now,
    )


def push_tokens_for(customer_id: UUID | str) -> list[str]:
    """Distinct push tokens of a customer's active registrations."""
    return list(
        WalletDeviceRegistration.objects.filter(customer_id=customer_id, is_active=True)
        .order_by("push_token")
        .values_list("push_token", flat=True)
        .distinct()
    )


def latest_active_registration(serial_number: str, pass_type_identifier: str) -> WalletDeviceRegistration | None:
    """The most recently updated active registration for a pass, if any."""
    return (
        WalletDeviceRegistration.objects.filter(
            serial_number=serial_number,
            pass_type_identifier=pass_type_identifier,
            is_active=True,
        )
        .order_by("-last_updated")
        .first()
    )
