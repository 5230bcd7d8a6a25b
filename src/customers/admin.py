"""Django admin configuration for customer models."""

from django.contrib import admin
from unfold.admin import ModelAdmin, TabularInline

from customers.models import Customer, Transaction


class TransactionInline(TabularInline):  # type: ignore[misc]
    model = Transaction
    extra = 0
    can_delete = False
    fields = ["type", "amount", "balance_before", "balance_after", "source", "status", "created_at"]
    readonly_fields = fields
    ordering = ["-created_at"]

    def has_add_permission(self, request: object, obj: object = None) -> bool:
        """Balance changes go through the ledger service."""
        return False


@admin.register(Customer)
class CustomerAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["name", "card_number", "balance", "level", "is_active", "created_at"]
    list_filter = ["level", "is_active", "registration_source"]
    search_fields = ["name", "phone", "card_number"]
    readonly_fields = ["card_number", "balance", "created_at", "updated_at"]
    inlines = [TransactionInline]
    ordering = ["-created_at"]


@admin.register(Transaction)
class TransactionAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["customer", "type", "amount", "balance_after", "source", "status", "created_at"]
    list_filter = ["type", "source", "status"]
    search_fields = ["customer__name", "customer__card_number", "description"]
    readonly_fields = [
        "customer",
        "type",
        "amount",
        "balance_before",
        "balance_after",
        "description",
        "source",
        "status",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request: object) -> bool:
        """Prevent manual creation of transactions."""
        return False

    def has_change_permission(self, request: object, obj: object = None) -> bool:
        """Prevent modification of transactions."""
        return False
