"""Exact conversion between decimal amounts and integer base units.

Base units are the smallest denomination of an asset (wei for ETH).
All arithmetic is done on integers and Decimal strings; floats never
enter the conversion, so ``to_base_units(from_base_units(x)) == x``.
"""

import re
from decimal import Decimal
from typing import Union

from walletsdk.errors import ErrorKind, WalletError

# Plain ASCII decimal notation only: "1", "1.5", ".5", "1." (no sign, no exponent)
_DECIMAL_AMOUNT = re.compile(r"^([0-9]*)(?:\.([0-9]*))?$")
_DECIMAL_INTEGER = re.compile(r"[0-9]+")
_HEX_INTEGER = re.compile(r"0[xX][0-9a-fA-F]+")


def parse_integer_text(text: str) -> int:
    """Parse ASCII decimal or 0x-prefixed hex integer text.

    Raises:
        ValueError: For signs, underscores, whitespace or non-ASCII digits
    """
    if _HEX_INTEGER.fullmatch(text):
        return int(text, 16)
    if _DECIMAL_INTEGER.fullmatch(text):
        return int(text)
    raise ValueError(f"Not an integer: {text!r}")


Amount = Union[str, int, Decimal]


def _invalid(amount: object, reason: str) -> WalletError:
    return WalletError(ErrorKind.INVALID_AMOUNT, f"Invalid amount format: {reason}", cause=amount)


def _amount_text(amount: Amount) -> str:
    if isinstance(amount, bool):
        raise _invalid(amount, "boolean is not an amount")
    if isinstance(amount, int):
        return str(amount)
    if isinstance(amount, Decimal):
        if not amount.is_finite():
            raise _invalid(amount, "not a finite number")
        return format(amount, "f")
    if isinstance(amount, str):
        return amount.strip()
    raise _invalid(amount, f"unsupported type {type(amount).__name__}")


def to_base_units(amount: Amount, decimals: int = 18) -> str:
    """Convert a decimal amount to an integer string of base units.

    Args:
        amount: Amount in whole units ("1.5", Decimal("1.5"), 2)
        decimals: Number of fractional digits of the asset

    Returns:
        Base units as a decimal integer string

    Raises:
        WalletError: INVALID_AMOUNT on malformed, negative or over-precise input
    """
    text = _amount_text(amount)
    match = _DECIMAL_AMOUNT.match(text)
    if not match:
        raise _invalid(amount, repr(text))

    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        raise _invalid(amount, "no digits")

    if len(fraction) > decimals:
        # Trailing zeros beyond the precision are harmless
        if fraction[decimals:].strip("0"):
            raise _invalid(amount, f"more than {decimals} decimal places")
        fraction = fraction[:decimals]

    units = int(whole or "0") * 10**decimals + int(fraction.ljust(decimals, "0") or "0")
    return str(units)


def from_base_units(value: Union[int, str], decimals: int = 18) -> str:
    """Convert integer base units to a decimal string.

    Whole amounts keep one fractional digit ("1.0"); otherwise trailing
    zeros are dropped ("1.5").

    Raises:
        WalletError: INVALID_AMOUNT if value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise _invalid(value, "boolean is not an amount")
    if isinstance(value, str):
        text = value.strip()
        try:
            units = parse_integer_text(text)
        except ValueError:
            raise _invalid(value, repr(value))
    elif isinstance(value, int):
        units = value
    else:
        raise _invalid(value, f"unsupported type {type(value).__name__}")

    if units < 0:
        raise _invalid(value, "negative amount")

    whole, remainder = divmod(units, 10**decimals)
    if decimals == 0:
        return str(whole)
    fraction = str(remainder).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{fraction}"


def parse_quantity(value: Union[int, str, None]) -> int:
    """Parse a JSON-RPC quantity ("0x5208" or 21000) to an int.

    Raises:
        ValueError: If the value is not a quantity
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower() == "0x":
        return 0
    return parse_integer_text(text)


def to_decimal(value: Union[int, str], decimals: int = 18) -> Decimal:
    """Convert base units to a Decimal amount."""
    return Decimal(from_base_units(value, decimals))


def wei_to_eth(wei: Union[int, str]) -> str:
    """Convert wei to ETH."""
    return from_base_units(wei, 18)


def eth_to_wei(eth: Amount) -> str:
    """Convert ETH to wei."""
    return to_base_units(eth, 18)
