"""Signals for wallet pass updates.

This module listens to changes on Customer and, when a field rendered on the
pass changes, marks the customer's registrations as updated and schedules a
push notification once the surrounding transaction commits.
"""

import typing as t

import structlog
from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from customers.models import Customer
from wallet import ledger

logger = structlog.get_logger(__name__)


# Fields that should trigger a pass update when changed
PASS_UPDATE_FIELDS = frozenset({"name", "balance", "level"})

_ORIGINAL_VALUES_ATTR = "_wallet_original_values"


@receiver(pre_save, sender=Customer)
def store_original_customer_values(sender: type[Customer], instance: Customer, **kwargs: t.Any) -> None:
    """Store original field values before save for comparison."""
    if instance._state.adding:
        return

    original = Customer.objects.filter(pk=instance.pk).values(*PASS_UPDATE_FIELDS).first()
    setattr(instance, _ORIGINAL_VALUES_ATTR, original)


@receiver(post_save, sender=Customer)
def trigger_wallet_pass_update(sender: type[Customer], instance: Customer, created: bool, **kwargs: t.Any) -> None:
    """Mark registrations updated and notify devices when pass fields change."""
    original_values = instance.__dict__.pop(_ORIGINAL_VALUES_ATTR, None)
    if created or not original_values:
        return

    changed_fields = sorted(
        field for field in PASS_UPDATE_FIELDS if original_values.get(field) != getattr(instance, field)
    )
    if not changed_fields:
        return

    touched = ledger.mark_updated(instance.pk)
    logger.info(
        "customer_pass_update_triggered",
        customer_id=str(instance.pk),
        changed_fields=changed_fields,
        registrations=touched,
    )
    if not touched:
        return

    def send_update_notifications() -> None:
        from wallet.tasks import send_pass_update_notifications

        send_pass_update_notifications.delay(str(instance.pk))

    transaction.on_commit(send_update_notifications)
