"""Formatting utilities for Apple Wallet passes.

This module handles color definitions and value formatting for wallet
pass content.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PassColors:
    """Colors for an Apple Wallet pass in RGB format."""

    background: str  # Format: "rgb(r, g, b)"
    foreground: str
    label: str


LOYALTY_THEME = PassColors(
    background="rgb(255, 255, 255)",
    foreground="rgb(0, 0, 0)",
    label="rgb(0, 0, 0)",
)

# Accent used for generated icons and logos
BRAND_COLOR: tuple[int, int, int] = (17, 17, 17)


def format_balance(balance: Decimal) -> str:
    """Format a points balance for display.

    Whole amounts are shown without decimals, fractional ones with two.

    Args:
        balance: The balance to format.

    Returns:
        The formatted balance, e.g. "150" or "150.50".
    """
    if balance == balance.to_integral_value():
        return f"{balance:.0f}"
    return f"{balance:.2f}"


def format_card_number(card_number: str) -> str:
    """Group a card number in blocks of four digits."""
    return " ".join(card_number[i : i + 4] for i in range(0, len(card_number), 4))

