"""Tests for wallet/signals.py and wallet/tasks.py."""

import datetime as dt
import typing as t
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from freezegun import freeze_time

from customers.models import Customer
from customers.service import credit_balance, debit_balance
from wallet.models import WalletDeviceRegistration, WalletPass
from wallet.service import WalletService
from wallet.tasks import send_pass_update_notifications
from wallet.tests.conftest import PASS_TYPE_ID

pytestmark = pytest.mark.django_db


@pytest.fixture
def registered_pass(wallet_service: WalletService, customer: Customer) -> WalletPass:
    """A customer's pass held by two devices sharing one push token, plus a third device."""
    wallet_service.issue_pass(customer.id)
    wallet_pass = WalletPass.objects.get(customer=customer)
    with freeze_time("2026-01-01 10:00:00"):
        wallet_service.register_device("device-1", PASS_TYPE_ID, wallet_pass.serial_number, "push-a")
        wallet_service.register_device("device-2", PASS_TYPE_ID, wallet_pass.serial_number, "push-a")
        wallet_service.register_device("device-3", PASS_TYPE_ID, wallet_pass.serial_number, "push-b")
    return wallet_pass


class TestCustomerChangeTriggersUpdate:
    """Tests for propagating customer changes to wallet devices."""

    def test_balance_credit_notifies_each_token_once(
        self,
        registered_pass: WalletPass,
        customer: Customer,
        mock_dispatcher: MagicMock,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        """One notification batch goes out after the credit commits."""
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            credit_balance(customer.id, Decimal("10.00"))

        assert len(callbacks) == 1
        mock_dispatcher.notify.assert_called_once_with(["push-a", "push-b"])

    def test_registrations_marked_updated(self, registered_pass: WalletPass, customer: Customer) -> None:
        """Every active registration of the customer moves forward."""
        with freeze_time("2026-01-02 10:00:00"):
            debit_balance(customer.id, Decimal("5.00"))

        assert set(WalletDeviceRegistration.objects.values_list("last_updated", flat=True)) == {
            dt.datetime(2026, 1, 2, 10, tzinfo=dt.UTC)
        }

    @pytest.mark.parametrize("field,value", [("name", "Ada King"), ("level", Customer.Level.GOLD)])
    def test_rendered_fields_trigger(
        self,
        registered_pass: WalletPass,
        customer: Customer,
        mock_dispatcher: MagicMock,
        django_capture_on_commit_callbacks: t.Any,
        field: str,
        value: str,
    ) -> None:
        """Name and level changes also refresh the pass."""
        setattr(customer, field, value)

        with django_capture_on_commit_callbacks(execute=True):
            customer.save()

        mock_dispatcher.notify.assert_called_once()

    def test_unrendered_field_is_ignored(
        self,
        registered_pass: WalletPass,
        customer: Customer,
        mock_dispatcher: MagicMock,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        """Changing a field not shown on the pass does nothing."""
        customer.registration_source = Customer.RegistrationSource.POS

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            customer.save()

        assert callbacks == []
        mock_dispatcher.notify.assert_not_called()

    def test_unchanged_save_is_ignored(
        self,
        registered_pass: WalletPass,
        customer: Customer,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        """Saving without changes schedules nothing."""
        with django_capture_on_commit_callbacks() as callbacks:
            customer.save()

        assert callbacks == []

    def test_no_devices_no_notification(
        self,
        wallet_service: WalletService,
        customer: Customer,
        mock_dispatcher: MagicMock,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        """A customer whose pass is on no device produces no push."""
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            credit_balance(customer.id, Decimal("1.00"))

        assert callbacks == []
        mock_dispatcher.notify.assert_not_called()

    def test_new_customer_is_ignored(self, django_capture_on_commit_callbacks: t.Any) -> None:
        """Creating a customer does not schedule anything."""
        with django_capture_on_commit_callbacks() as callbacks:
            Customer.objects.create(name="New Member", phone="+15550003333")

        assert callbacks == []

    def test_rolled_back_change_sends_nothing(
        self,
        registered_pass: WalletPass,
        customer: Customer,
        mock_dispatcher: MagicMock,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        """A failed debit leaves devices alone."""
        from customers.exceptions import InsufficientBalanceError

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(InsufficientBalanceError):
                debit_balance(customer.id, Decimal("1000.00"))

        assert callbacks == []
        mock_dispatcher.notify.assert_not_called()


class TestSendPassUpdateNotificationsTask:
    """Tests for the notification task."""

    def test_returns_counts(self, registered_pass: WalletPass, customer: Customer) -> None:
        """The task reports delivery counts."""
        result = send_pass_update_notifications.apply(args=[str(customer.id)]).get()

        assert result == {"successful": 2, "failed": 0}

    def test_retries_on_unexpected_error(self, wallet_service: WalletService, customer: Customer) -> None:
        """An unexpected error is retried."""
        with patch.object(wallet_service, "notify_customer", side_effect=RuntimeError("db down")):
            with patch.object(send_pass_update_notifications, "retry", side_effect=RuntimeError("retry")) as retry:
                with pytest.raises(RuntimeError, match="retry"):
                    send_pass_update_notifications(str(customer.id))

        retry.assert_called_once()
