"""Wallet session state machine."""

from walletsdk.session.state import (
    INITIAL_STATE,
    BalanceFailed,
    BalanceRequested,
    BalanceUpdated,
    Balances,
    ChainChanged,
    ConnectFailed,
    Connected,
    Connecting,
    ConnectionStatus,
    ConnectRequested,
    ConnectSucceeded,
    Disconnect,
    Disconnected,
    ErrorRaised,
    SendFailed,
    SendRequested,
    SessionState,
    TransactionReconciled,
    TransactionRecord,
    TransactionSubmitted,
    TxStatus,
)
from walletsdk.session.store import SessionStore, transition

__all__ = [
    "INITIAL_STATE",
    "BalanceFailed",
    "BalanceRequested",
    "BalanceUpdated",
    "Balances",
    "ChainChanged",
    "ConnectFailed",
    "Connected",
    "Connecting",
    "ConnectionStatus",
    "ConnectRequested",
    "ConnectSucceeded",
    "Disconnect",
    "Disconnected",
    "ErrorRaised",
    "SendFailed",
    "SendRequested",
    "SessionState",
    "TransactionReconciled",
    "TransactionRecord",
    "TransactionSubmitted",
    "TxStatus",
    "SessionStore",
    "transition",
]
