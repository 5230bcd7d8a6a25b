"""Shared fixtures for all test modules."""

import typing as t
from decimal import Decimal

import pytest
from django.core.cache import cache
from pytest import MonkeyPatch

from customers.models import Customer
from loyalty.celery import app as celery_app


@pytest.fixture(autouse=True)
def increase_rate_limit(monkeypatch: MonkeyPatch) -> None:
    """Increase the rate limits so throttling does not interfere with tests."""
    monkeypatch.setattr("common.throttling.AnonDefaultThrottle.rate", "10000/min")
    monkeypatch.setattr("common.throttling.PassIssuanceThrottle.rate", "10000/min")
    # Throttle history lives in the cache and would leak between tests
    cache.clear()


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any, monkeypatch: MonkeyPatch) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously.

    This ensures that Celery tasks run immediately in the same process,
    allowing tests to verify their side effects without async complications.
    The app config is patched too, since Celery reads settings only once.
    """
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    monkeypatch.setattr(celery_app.conf, "task_always_eager", True)
    monkeypatch.setattr(celery_app.conf, "task_eager_propagates", True)


@pytest.fixture
def customer(db: None) -> Customer:
    """An active customer with a positive balance."""
    return Customer.objects.create(
        name="Ada Lovelace",
        phone="+15550001111",
        balance=Decimal("150.00"),
        level=Customer.Level.SILVER,
    )


@pytest.fixture
def other_customer(db: None) -> Customer:
    """A second active customer."""
    return Customer.objects.create(name="Grace Hopper", phone="+15550002222")
