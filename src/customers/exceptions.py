class CustomerNotFound(Exception):
    """Raised when a referenced customer does not exist or is not active."""

    def __init__(self, customer_id: object) -> None:
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class InactiveCustomerError(Exception):
    """Raised when a balance operation targets a deactivated customer."""


class InsufficientBalanceError(Exception):
    """Raised when a debit exceeds the customer's balance."""
