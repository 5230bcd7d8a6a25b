"""Celery tasks for wallet pass operations."""

import typing as t

import structlog
from celery import shared_task

logger = structlog.get_logger(__name__)


@shared_task(
    name="wallet.send_pass_update_notifications",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_pass_update_notifications(self: t.Any, customer_id: str) -> dict[str, int]:
    """Send wallet pass update notifications for a customer.

    Triggered after a transaction that changed the customer's pass content
    commits. Delivery failures are counted by the dispatcher; only unexpected
    errors are retried.

    Args:
        self: Celery task instance (bound task).
        customer_id: The UUID of the customer whose pass changed.

    Returns:
        Dictionary with 'successful' and 'failed' counts.
    """
    from wallet.service import get_wallet_service

    logger.info("sending_wallet_update_notifications", customer_id=customer_id)

    try:
        result = get_wallet_service().notify_customer(customer_id)
    except Exception as e:
        logger.error("wallet_update_notifications_failed", customer_id=customer_id, error=str(e))
        raise self.retry(exc=e)

    return {"successful": result.successful, "failed": result.failed}
