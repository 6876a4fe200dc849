"""Account address validation and normalization.

Addresses are 20-byte hex strings with a ``0x`` prefix. All-lowercase and
all-uppercase forms carry no checksum and are accepted as-is; mixed case
is treated as an EIP-55 checksum and must verify.
"""

import re
from typing import Any

from eth_utils import is_checksum_address, to_checksum_address

from walletsdk.errors import ErrorKind, WalletError

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_address(address: Any) -> bool:
    """Validate an account address.

    Args:
        address: Candidate address text

    Returns:
        True if the address is well formed and, when mixed case, carries
        a valid EIP-55 checksum
    """
    if not isinstance(address, str) or not _HEX_ADDRESS.match(address):
        return False

    body = address[2:]
    if body == body.lower() or body == body.upper():
        return True

    return is_checksum_address(address)


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksum form of a valid address.

    Raises:
        WalletError: INVALID_ADDRESS if the address does not validate
    """
    if not is_valid_address(address):
        raise WalletError(ErrorKind.INVALID_ADDRESS, "Invalid recipient address")
    return to_checksum_address(address)


def short_address(address: str, length: int = 10) -> str:
    """Truncate an address for log lines."""
    return address[:length] + "..." if len(address) > length else address
