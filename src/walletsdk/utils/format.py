"""Display helpers for balances and transaction hashes."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union


def format_balance(balance: Union[str, Decimal, int], places: int = 4) -> str:
    """Format a decimal balance with a fixed number of places.

    Malformed input renders as zero rather than raising; this is only
    used for display.
    """
    quantum = Decimal(1).scaleb(-places)
    try:
        value = Decimal(str(balance).strip())
        if not value.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError):
        value = Decimal(0)
    return f"{value.quantize(quantum, rounding=ROUND_HALF_UP):.{places}f}"


def format_usd(value: Union[str, Decimal]) -> str:
    """Format a USD value as ``$1,234.56``."""
    return "$" + f"{Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"


def format_tx_hash(tx_hash: str, length: int = 10) -> str:
    """Shorten a transaction hash to ``head...tail`` for display."""
    if len(tx_hash) <= length:
        return tx_hash
    half = length // 2
    return f"{tx_hash[:half]}...{tx_hash[-half:]}"


def is_transaction_pending(status: str) -> bool:
    """Check if a transaction status string means pending."""
    return str(status).lower() == "pending"
