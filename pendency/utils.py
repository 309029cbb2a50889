"""Utility functions for the pendency tracker."""

from typing import Optional


def normalize_text(text: Optional[str]) -> str:
    """Trim and lower-case for loose comparisons (units, usernames)."""
    return (text or "").strip().lower()


def format_currency(amount: Optional[float]) -> str:
    """Format an amount in Brazilian reais for display.

    Rules:
    - None → R$ 0,00
    - 1234.5 → R$ 1.234,50
    - -10 → -R$ 10,00

    Args:
        amount: Amount (float)

    Returns:
        Formatted string
    """
    value = amount or 0.0
    sign = "-" if value < 0 else ""
    # Format with US separators, then swap them
    formatted = f"{abs(value):,.2f}"
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {formatted}"
