"""Utility modules for walletsdk."""

from walletsdk.utils.address import is_valid_address, normalize_address, short_address
from walletsdk.utils.format import (
    format_balance,
    format_tx_hash,
    format_usd,
    is_transaction_pending,
)
from walletsdk.utils.units import (
    eth_to_wei,
    from_base_units,
    parse_integer_text,
    parse_quantity,
    to_base_units,
    to_decimal,
    wei_to_eth,
)

__all__ = [
    "is_valid_address",
    "normalize_address",
    "short_address",
    "format_balance",
    "format_tx_hash",
    "format_usd",
    "is_transaction_pending",
    "eth_to_wei",
    "from_base_units",
    "parse_integer_text",
    "parse_quantity",
    "to_base_units",
    "to_decimal",
    "wei_to_eth",
]
