"""Models for loyalty customers and their balance ledger."""

import secrets
from decimal import Decimal

from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from common.models import TimeStampedModel

CARD_NUMBER_LENGTH = 12


def generate_card_number() -> str:
    """Generate a random 12-digit loyalty card number."""
    return f"{secrets.randbelow(10**CARD_NUMBER_LENGTH):0{CARD_NUMBER_LENGTH}d}"


class Customer(TimeStampedModel):
    """A loyalty program member holding a points balance."""

    class Level(models.TextChoices):
        BRONZE = "bronze", "Bronze"
        SILVER = "silver", "Silver"
        GOLD = "gold", "Gold"
        PLATINUM = "platinum", "Platinum"

    class RegistrationSource(models.TextChoices):
        WEB = "web", "Web"
        POS = "pos", "Point of Sale"
        ADMIN = "admin", "Admin"

    name = models.CharField(max_length=100)
    phone = models.CharField(
        max_length=20,
        unique=True,
        validators=[RegexValidator(r"^\+?[0-9]{7,15}$", "Enter a valid phone number.")],
    )
    card_number = models.CharField(
        max_length=CARD_NUMBER_LENGTH,
        unique=True,
        default=generate_card_number,
        editable=False,
        validators=[RegexValidator(rf"^\d{{{CARD_NUMBER_LENGTH}}}$", "Card number must be 12 digits.")],
    )
    balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    level = models.CharField(max_length=10, choices=Level.choices, default=Level.BRONZE, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    registration_source = models.CharField(
        max_length=10,
        choices=RegistrationSource.choices,
        default=RegistrationSource.WEB,
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.name} ({self.card_number})"


class Transaction(TimeStampedModel):
    """An immutable balance movement with before/after amounts for auditing."""

    class Type(models.TextChoices):
        CREDIT = "credit", "Credit"
        DEBIT = "debit", "Debit"

    class Source(models.TextChoices):
        POS = "pos", "Point of Sale"
        ADMIN = "admin", "Admin"
        BONUS = "bonus", "Bonus"
        REFUND = "refund", "Refund"
        PURCHASE = "purchase", "Purchase"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="transactions")
    type = models.CharField(max_length=10, choices=Type.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    balance_before = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=255, blank=True)
    source = models.CharField(max_length=10, choices=Source.choices, default=Source.ADMIN)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.COMPLETED)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="txn_customer_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.amount} for {self.customer_id}"
