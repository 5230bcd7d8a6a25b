"""Django admin configuration for wallet pass models."""

from django.contrib import admin
from unfold.admin import ModelAdmin

from wallet.models import WalletDeviceRegistration, WalletPass


@admin.register(WalletPass)
class WalletPassAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for issued wallet passes."""

    list_display = ["serial_number", "customer", "pass_type_identifier", "issued_at", "registration_count"]
    list_filter = ["pass_type_identifier", "issued_at"]
    search_fields = ["serial_number", "customer__name", "customer__card_number"]
    readonly_fields = [
        "customer",
        "serial_number",
        "pass_type_identifier",
        "authentication_token",
        "issued_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-issued_at"]

    @admin.display(description="Devices")
    def registration_count(self, obj: WalletPass) -> int:
        """Count of active device registrations for this pass."""
        return WalletDeviceRegistration.objects.filter(serial_number=obj.serial_number, is_active=True).count()

    def has_add_permission(self, request: object) -> bool:
        """Passes are issued through the API."""
        return False


@admin.register(WalletDeviceRegistration)
class WalletDeviceRegistrationAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for wallet device registrations."""

    list_display = ["serial_number", "device_short", "customer", "is_active", "last_updated"]
    list_filter = ["is_active", "pass_type_identifier", "created_at"]
    search_fields = ["serial_number", "device_library_identifier", "customer__name"]
    readonly_fields = [
        "customer",
        "serial_number",
        "device_library_identifier",
        "push_token",
        "pass_type_identifier",
        "is_active",
        "last_updated",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["customer"]
    ordering = ["-last_updated"]

    @admin.display(description="Device")
    def device_short(self, obj: WalletDeviceRegistration) -> str:
        """Show truncated device ID."""
        return f"{obj.device_library_identifier[:12]}..."

    def has_add_permission(self, request: object) -> bool:
        """Registrations are created by devices."""
        return False

    def has_change_permission(self, request: object, obj: object = None) -> bool:
        """Prevent modification of registrations."""
        return False
