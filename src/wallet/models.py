"""Models for issued wallet passes and device registrations.

When a customer adds their loyalty card to Apple Wallet, the device registers
with our server by providing a device library identifier and a push token.
We use these registrations to notify the device when the pass needs updating.
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.models import TimeStampedModel


class WalletPass(TimeStampedModel):
    """An issued pass instance.

    The serial number and authentication token are assigned on first issuance
    and reused for every regeneration, so the device keeps tracking the same pass.
    """

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.CASCADE,
        related_name="wallet_passes",
    )
    serial_number = models.CharField(max_length=128, unique=True)
    pass_type_identifier = models.CharField(max_length=255)
    authentication_token = models.CharField(
        max_length=128,
        help_text="Token embedded in the pass and presented by devices on callbacks.",
    )
    issued_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Wallet Pass"
        verbose_name_plural = "Wallet Passes"
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "pass_type_identifier"],
                name="unique_wallet_pass_per_customer",
            )
        ]

    def __str__(self) -> str:
        return self.serial_number


class WalletDeviceRegistration(TimeStampedModel):
    """Links a device to a pass it wants update notifications for.

    A pass can be registered on multiple devices (e.g., a phone and a watch),
    and a device can hold multiple passes. Unregistering deactivates the row
    instead of deleting it.
    """

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.CASCADE,
        related_name="wallet_registrations",
    )
    serial_number = models.CharField(max_length=128, db_index=True)
    device_library_identifier = models.CharField(
        max_length=255,
        help_text="Unique identifier provided by the wallet app for this device.",
    )
    push_token = models.CharField(
        max_length=255,
        help_text="Token used to send push notifications to this device.",
    )
    pass_type_identifier = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True, db_index=True)
    last_updated = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = "Wallet Device Registration"
        verbose_name_plural = "Wallet Device Registrations"
        constraints = [
            models.UniqueConstraint(
                fields=["device_library_identifier", "serial_number", "pass_type_identifier"],
                condition=Q(is_active=True),
                name="unique_active_device_registration",
            )
        ]
        indexes = [
            models.Index(
                fields=["device_library_identifier", "pass_type_identifier", "is_active"],
                name="wallet_reg_device_idx",
            ),
            models.Index(fields=["customer", "is_active"], name="wallet_reg_customer_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.serial_number} on {self.device_library_identifier[:8]}..."
