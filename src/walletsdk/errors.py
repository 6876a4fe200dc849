"""Error taxonomy for the wallet session engine.

Failures are carried as tagged ``ErrorRecord`` values. Leaf helpers
(address codec, gas estimator) raise ``WalletError`` which wraps a record;
the engine converts it back to a record before anything crosses its
public boundary, so callers only ever see values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001
# ethers-style string code for the same condition
ACTION_REJECTED = "ACTION_REJECTED"


class ErrorKind(str, Enum):
    """Kinds of failure the engine reports."""

    USER_REJECTED = "user_rejected"
    IFRAME_BLOCKED = "iframe_blocked"
    NO_WALLET_FOUND = "no_wallet_found"
    NO_ACCOUNTS = "no_accounts"
    NOT_CONNECTED = "not_connected"
    INVALID_ADDRESS = "invalid_address"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GAS_ESTIMATION_FAILED = "gas_estimation_failed"
    GAS_PRICE_FAILED = "gas_price_failed"
    UNSUPPORTED_ASSET = "unsupported_asset"
    TRANSACTION_FAILED = "transaction_failed"
    BALANCE_FETCH_FAILED = "balance_fetch_failed"
    CONNECTION_FAILED = "connection_failed"
    INVALID_PRIVATE_KEY = "invalid_private_key"


@dataclass(frozen=True)
class ErrorRecord:
    """A failure as a value.

    Attributes:
        kind: Category of the failure
        message: Human-readable message, safe to show to the user
        cause: Underlying exception or provider payload, if any
    """

    kind: ErrorKind
    message: str
    cause: Optional[Any] = None

    @property
    def is_user_rejection(self) -> bool:
        """Whether the user declined the request in their wallet."""
        return self.kind == ErrorKind.USER_REJECTED

    @property
    def surfaced(self) -> bool:
        """Whether this error belongs in the user-visible error slot."""
        return not self.is_user_rejection


class WalletError(Exception):
    """Exception raised by engine internals; always carries an ErrorRecord."""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[Any] = None):
        super().__init__(message)
        self.record = ErrorRecord(kind=kind, message=message, cause=cause)

    @property
    def kind(self) -> ErrorKind:
        return self.record.kind

    @property
    def cause(self) -> Optional[Any]:
        return self.record.cause


class ProviderRpcError(Exception):
    """Error returned by an EIP-1193 provider.

    Attributes:
        code: Numeric EIP-1193 / JSON-RPC error code, or a string code
        data: Optional extra payload from the provider
    """

    def __init__(self, code: Any, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"ProviderRpcError(code={self.code!r}, message={self.message!r})"


def is_user_rejection(error: BaseException) -> bool:
    """Check whether an exception means the user declined the request."""
    code = getattr(error, "code", None)
    return code == USER_REJECTED_CODE or code == ACTION_REJECTED


def classify_provider_error(
    error: BaseException,
    kind: ErrorKind,
    fallback_message: str,
) -> ErrorRecord:
    """Turn an exception from a provider call into an ErrorRecord.

    Args:
        error: The exception raised by the provider call
        kind: Kind to use when the error is not a user rejection
        fallback_message: Message used when the error carries none

    Returns:
        ErrorRecord with the original exception attached as cause
    """
    if isinstance(error, WalletError):
        return error.record

    if is_user_rejection(error):
        return ErrorRecord(
            kind=ErrorKind.USER_REJECTED,
            message="Request rejected by user",
            cause=error,
        )

    message = str(error) or fallback_message
    return ErrorRecord(kind=kind, message=message, cause=error)
