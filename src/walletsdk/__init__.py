"""walletsdk: wallet session engine for injected EIP-1193 providers."""

from walletsdk.contracts import OfflineWallet, SendTransactionParams
from walletsdk.engine import ConnectResult, WalletEngine
from walletsdk.errors import ErrorKind, ErrorRecord, ProviderRpcError, WalletError
from walletsdk.providers import (
    DryRunProvider,
    HostEnvironment,
    InjectedProvider,
    JsonRpcProvider,
    ProviderDescriptor,
    ProviderRegistry,
)
from walletsdk.session import SessionState, SessionStore, TxStatus
from walletsdk.transactions import EstimateResult, GasEstimator, SendResult, TransactionTracker

__version__ = "0.1.0"

__all__ = [
    "OfflineWallet",
    "SendTransactionParams",
    "ConnectResult",
    "WalletEngine",
    "ErrorKind",
    "ErrorRecord",
    "ProviderRpcError",
    "WalletError",
    "DryRunProvider",
    "HostEnvironment",
    "InjectedProvider",
    "JsonRpcProvider",
    "ProviderDescriptor",
    "ProviderRegistry",
    "SessionState",
    "SessionStore",
    "TxStatus",
    "EstimateResult",
    "GasEstimator",
    "SendResult",
    "TransactionTracker",
]
