"""Balance ledger operations and read-only customer snapshots."""

import typing as t
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from customers.exceptions import CustomerNotFound, InactiveCustomerError, InsufficientBalanceError
from customers.models import Customer, Transaction

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CustomerSnapshot:
    """Read-only view of the customer fields rendered on a wallet pass."""

    id: UUID
    name: str
    balance: Decimal
    level: str
    level_display: str
    card_number: str

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerSnapshot":
        """Build a snapshot from a customer instance."""
        return cls(
            id=customer.id,
            name=customer.name,
            balance=customer.balance,
            level=customer.level,
            level_display=customer.get_level_display(),
            card_number=customer.card_number,
        )


def get_customer_snapshot(customer_id: UUID | str) -> CustomerSnapshot:
    """Resolve an active customer into a snapshot.

    Raises:
        CustomerNotFound: If the customer does not exist or is deactivated.
    """
    try:
        customer = Customer.objects.get(pk=customer_id, is_active=True)
    except (Customer.DoesNotExist, ValidationError, ValueError):
        raise CustomerNotFound(customer_id)
    return CustomerSnapshot.from_customer(customer)


def credit_balance(
    customer_id: UUID | str,
    amount: Decimal,
    *,
    description: str = "",
    source: str = Transaction.Source.ADMIN,
) -> Transaction:
    """Add points to a customer's balance.

    Args:
        customer_id: The customer to credit.
        amount: Positive amount to add.
        description: Free-text reason shown in the audit trail.
        source: Where the operation originated (see Transaction.Source).

    Returns:
        The recorded transaction.

    Raises:
        CustomerNotFound: If the customer does not exist.
        InactiveCustomerError: If the customer is deactivated.
        ValidationError: If the amount is not positive.
    """
    return _apply_balance_change(customer_id, Decimal(amount), Transaction.Type.CREDIT, description, source)


def debit_balance(
    customer_id: UUID | str,
    amount: Decimal,
    *,
    description: str = "",
    source: str = Transaction.Source.PURCHASE,
) -> Transaction:
    """Remove points from a customer's balance.

    Raises:
        CustomerNotFound: If the customer does not exist.
        InactiveCustomerError: If the customer is deactivated.
        InsufficientBalanceError: If the balance would become negative.
        ValidationError: If the amount is not positive.
    """
    return _apply_balance_change(customer_id, Decimal(amount), Transaction.Type.DEBIT, description, source)


def _apply_balance_change(
    customer_id: UUID | str,
    amount: Decimal,
    change_type: t.Literal["credit", "debit"] | str,
    description: str,
    source: str,
) -> Transaction:
    if amount <= 0:
        raise ValidationError({"amount": ["Amount must be greater than zero."]})

    with transaction.atomic():
        try:
            customer = Customer.objects.select_for_update().get(pk=customer_id)
        except (Customer.DoesNotExist, ValidationError, ValueError):
            raise CustomerNotFound(customer_id)

        if not customer.is_active:
            raise InactiveCustomerError(f"Customer {customer_id} is not active")

        balance_before = customer.balance
        if change_type == Transaction.Type.DEBIT:
            if balance_before < amount:
                raise InsufficientBalanceError(f"Insufficient balance: {balance_before} < {amount}")
            balance_after = balance_before - amount
        else:
            balance_after = balance_before + amount

        customer.balance = balance_after
        # post_save listeners schedule the wallet pass refresh
        customer.save(update_fields=["balance", "updated_at"])

        record = Transaction.objects.create(
            customer=customer,
            type=change_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            description=description,
            source=source,
        )

    logger.info(
        "balance_changed",
        customer_id=str(customer.id),
        type=change_type,
        amount=str(amount),
        balance_after=str(balance_after),
    )
    return record
