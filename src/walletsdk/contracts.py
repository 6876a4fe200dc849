"""Request and response contracts for the presentation layer.

These Pydantic models define what the UI hands to the engine and what
it gets back for key generation. Amount and address strings are not
validated here: the engine validates them itself so that a bad value
becomes a recorded session error instead of an exception.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from walletsdk.utils.units import parse_integer_text

KEY_STORAGE_WARNING = (
    "WARNING: Store your private key and mnemonic phrase securely. "
    "Never share them with anyone. Loss of these credentials means "
    "permanent loss of access to your wallet."
)


class SendTransactionParams(BaseModel):
    """Request to transfer funds from the connected account."""

    to: str = Field(default="", description="Recipient address")
    amount: str = Field(default="", description="Amount in whole units (e.g. '1.5')")
    currency: str = Field(default="ETH", description="Asset symbol to send")
    gas_limit: Optional[int] = Field(
        None, description="Gas limit override; estimated when omitted", gt=0
    )

    @field_validator("to", mode="before")
    @classmethod
    def strip_recipient(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        """Keep amounts as exact text; Decimal and int are stringified."""
        if isinstance(v, Decimal):
            return format(v, "f")
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("gas_limit", mode="before")
    @classmethod
    def parse_gas_limit(cls, v: Any) -> Any:
        """Accept ASCII hex ("0x5208") or decimal ("21000") text as well as integers."""
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return None
            return parse_integer_text(text)
        return v


class OfflineWallet(BaseModel):
    """Locally generated key material. Never sent anywhere by the engine."""

    address: str = Field(..., description="Checksummed account address")
    private_key: str = Field(..., description="Hex private key with 0x prefix")
    mnemonic: str = Field(..., description="BIP-39 mnemonic phrase")
    derivation_path: str = Field(default="m/44'/60'/0'/0/0", description="BIP-44 path")
    warning: str = Field(default=KEY_STORAGE_WARNING)
