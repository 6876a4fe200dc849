"""Session state and the events that change it.

Everything here is immutable. A ``SessionState`` is a complete snapshot;
the store replaces it wholesale on every transition, so a reader can
never observe a half-applied update.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from walletsdk.errors import ErrorRecord
from walletsdk.providers.base import InjectedProvider


class ConnectionStatus(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TxStatus(str, Enum):
    """Transaction lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != TxStatus.PENDING


# ======================
# Connection variants
# ======================

@dataclass(frozen=True)
class Disconnected:
    status = ConnectionStatus.DISCONNECTED


@dataclass(frozen=True)
class Connecting:
    status = ConnectionStatus.CONNECTING


@dataclass(frozen=True)
class Connected:
    """An authorized session with one account on one chain."""

    address: str
    chain_id: int
    provider: InjectedProvider = field(compare=False, repr=False)
    status = ConnectionStatus.CONNECTED


Connection = Union[Disconnected, Connecting, Connected]


@dataclass(frozen=True)
class Balances:
    """Balances in whole units; portfolio value in USD."""

    native: Decimal = Decimal("0")
    token: Decimal = Decimal("0")
    portfolio_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class TransactionRecord:
    """A submitted transfer.

    ``id`` is the provider-assigned transaction hash. ``to``, ``amount``
    and ``currency`` are kept for display only.
    """

    id: str
    status: TxStatus = TxStatus.PENDING
    gas_used: Optional[int] = None
    block_number: Optional[int] = None
    to: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    """Complete snapshot of the wallet session."""

    connection: Connection = field(default_factory=Disconnected)
    balances: Balances = field(default_factory=Balances)
    transactions: tuple[TransactionRecord, ...] = ()
    pending_hashes: frozenset[str] = frozenset()
    last_error: Optional[ErrorRecord] = None
    loading_balance: bool = False
    sending_transaction: bool = False

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    @property
    def is_connected(self) -> bool:
        return isinstance(self.connection, Connected)

    @property
    def is_connecting(self) -> bool:
        return isinstance(self.connection, Connecting)

    @property
    def address(self) -> Optional[str]:
        return self.connection.address if isinstance(self.connection, Connected) else None

    @property
    def chain_id(self) -> Optional[int]:
        return self.connection.chain_id if isinstance(self.connection, Connected) else None

    @property
    def provider(self) -> Optional[InjectedProvider]:
        return self.connection.provider if isinstance(self.connection, Connected) else None

    def find_transaction(self, tx_id: str) -> Optional[TransactionRecord]:
        return next((t for t in self.transactions if t.id == tx_id), None)


INITIAL_STATE = SessionState()


# ======================
# Events
# ======================

@dataclass(frozen=True)
class ConnectRequested:
    pass


@dataclass(frozen=True)
class ConnectSucceeded:
    address: str
    chain_id: int
    provider: InjectedProvider = field(compare=False, repr=False)


@dataclass(frozen=True)
class ConnectFailed:
    error: ErrorRecord


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class BalanceRequested:
    pass


@dataclass(frozen=True)
class BalanceUpdated:
    native: Decimal
    token: Decimal
    portfolio_value: Decimal


@dataclass(frozen=True)
class BalanceFailed:
    error: ErrorRecord


@dataclass(frozen=True)
class ChainChanged:
    chain_id: int


@dataclass(frozen=True)
class SendRequested:
    pass


@dataclass(frozen=True)
class SendFailed:
    error: ErrorRecord


@dataclass(frozen=True)
class TransactionSubmitted:
    record: TransactionRecord


@dataclass(frozen=True)
class TransactionReconciled:
    id: str
    status: TxStatus
    gas_used: Optional[int] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class ErrorRaised:
    error: ErrorRecord


Event = Union[
    ConnectRequested,
    ConnectSucceeded,
    ConnectFailed,
    Disconnect,
    BalanceRequested,
    BalanceUpdated,
    BalanceFailed,
    ChainChanged,
    SendRequested,
    SendFailed,
    TransactionSubmitted,
    TransactionReconciled,
    ErrorRaised,
]
