"""Wallet session engine.

The engine is the presentation layer's only entry point. It connects to
an injected provider picked by the registry, keeps the session store in
step with the provider's events, and delegates balances and transfers
to the transaction tracker.

Session rules:
1. A connect from an embedded frame is refused before any provider call
2. One subscription to provider events per session, disposed on disconnect
3. Every async completion is dispatched with the epoch it started under
4. Public coroutines return result values; they do not raise
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Coroutine, Optional, Union

from walletsdk.chains import network_name
from walletsdk.config import Settings, get_settings
from walletsdk.contracts import OfflineWallet, SendTransactionParams
from walletsdk.errors import ErrorKind, ErrorRecord, classify_provider_error
from walletsdk.pricing import PriceFeed
from walletsdk.providers.base import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    DISCONNECT,
    InjectedProvider,
    Subscription,
)
from walletsdk.providers.registry import HostEnvironment, ProviderRegistry
from walletsdk.session.state import (
    Balances,
    ChainChanged,
    ConnectFailed,
    ConnectRequested,
    ConnectSucceeded,
    Connected,
    Disconnect,
    Disconnected,
    ErrorRaised,
    SessionState,
    TransactionRecord,
)
from walletsdk.session.store import SessionStore
from walletsdk.transactions.gas import GasEstimator
from walletsdk.transactions.tracker import EstimateResult, SendResult, TransactionTracker
from walletsdk.utils.address import is_valid_address, short_address
from walletsdk.utils.format import format_balance
from walletsdk.utils.units import parse_quantity
from walletsdk.wallet import generate_wallet

logger = logging.getLogger(__name__)

IFRAME_BLOCKED_MESSAGE = (
    "Wallet connection is not supported in embedded frames. "
    "Please open this app in a new tab."
)
NO_WALLET_MESSAGE = (
    "No compatible Ethereum wallet found. "
    "Please install MetaMask or another Web3 wallet."
)
NO_ACCOUNTS_MESSAGE = "No accounts found"


@dataclass
class ConnectResult:
    """Result of a connect request."""

    success: bool
    address: Optional[str] = None
    chain_id: Optional[int] = None
    error: Optional[ErrorRecord] = None


class WalletEngine:
    """Wallet session engine.

    Example:
        engine = WalletEngine(get_host_environment())
        result = await engine.connect()
        if result.success:
            await engine.send({"to": "0x...", "amount": "0.1", "currency": "ETH"})
    """

    # Display helpers for the presentation layer
    is_valid_address = staticmethod(is_valid_address)
    format_balance = staticmethod(format_balance)

    def __init__(
        self,
        host: HostEnvironment,
        settings: Optional[Settings] = None,
        price_feed: Optional[PriceFeed] = None,
        store: Optional[SessionStore] = None,
        estimator: Optional[GasEstimator] = None,
    ):
        """Initialize the engine.

        Args:
            host: Providers exposed by the host and its embedding context
            settings: Settings (defaults to get_settings())
            price_feed: Valuation source (defaults to fixed prices from settings)
            store: Session store (a fresh one by default)
            estimator: Gas estimator (a fresh one by default)
        """
        self.settings = settings or get_settings()
        self.registry = ProviderRegistry(host)
        self.store = store or SessionStore()
        self.tracker = TransactionTracker(
            self.store,
            settings=self.settings,
            estimator=estimator,
            price_feed=price_feed,
        )
        self._subscription: Optional[Subscription] = None
        self._tasks: set[asyncio.Task] = set()

    # ======================
    # Connection
    # ======================

    async def connect(self) -> ConnectResult:
        """Ask the selected provider for account access.

        Returns:
            ConnectResult with the connected account, or the error
        """
        state = self.store.state
        if isinstance(state.connection, Connected):
            return ConnectResult(success=True, address=state.address, chain_id=state.chain_id)
        if not isinstance(state.connection, Disconnected):
            return ConnectResult(
                success=False,
                error=ErrorRecord(ErrorKind.CONNECTION_FAILED, "Connection already in progress"),
            )

        if self.registry.embedded:
            logger.warning("Wallet connection attempted from an embedded frame")
            error = ErrorRecord(ErrorKind.IFRAME_BLOCKED, IFRAME_BLOCKED_MESSAGE)
            self.store.dispatch(ErrorRaised(error))
            return ConnectResult(success=False, error=error)

        self.store.dispatch(ConnectRequested())
        epoch = self.store.epoch

        descriptor = self.registry.select()
        if descriptor is None:
            return self._connect_failed(
                ErrorRecord(ErrorKind.NO_WALLET_FOUND, NO_WALLET_MESSAGE), epoch
            )
        if descriptor.is_restricted:
            logger.warning(f"Connecting through restricted provider {descriptor.name}")

        provider = descriptor.handle
        try:
            accounts = await provider.request("eth_requestAccounts")
            if not accounts:
                return self._connect_failed(
                    ErrorRecord(ErrorKind.NO_ACCOUNTS, NO_ACCOUNTS_MESSAGE), epoch
                )
            chain_id = parse_quantity(await provider.request("eth_chainId"))
        except Exception as e:
            error = classify_provider_error(e, ErrorKind.CONNECTION_FAILED, "Failed to connect wallet")
            return self._connect_failed(error, epoch)

        address = accounts[0]
        if not await self._establish(provider, address, chain_id, epoch):
            return ConnectResult(
                success=False,
                error=ErrorRecord(ErrorKind.CONNECTION_FAILED, "Session ended while connecting"),
            )

        logger.info(f"Wallet connected: {short_address(address)} via {provider.name} (chain={chain_id})")
        return ConnectResult(success=True, address=address, chain_id=chain_id)

    def _connect_failed(self, error: ErrorRecord, epoch: int) -> ConnectResult:
        if error.is_user_rejection:
            logger.info("Connection request rejected by user")
        else:
            logger.warning(f"Connection failed: {error.kind.value}: {error.message}")
        self.store.dispatch(ConnectFailed(error), epoch)
        return ConnectResult(success=False, error=error)

    async def _establish(
        self,
        provider: InjectedProvider,
        address: str,
        chain_id: int,
        epoch: int,
    ) -> bool:
        """Enter the Connected state, subscribe and optionally refresh."""
        applied = self.store.dispatch(
            ConnectSucceeded(address=address, chain_id=chain_id, provider=provider),
            epoch,
        )
        if not applied:
            return False

        self._subscribe(provider, epoch)
        if self.settings.auto_refresh_balance:
            await self.tracker.refresh_balance()
        return True

    async def reconnect(self) -> bool:
        """Restore a session the wallet has already authorized.

        Uses ``eth_accounts``, which never prompts the user. Failures are
        logged and never surface in the session error.

        Returns:
            True if the engine is connected afterwards
        """
        state = self.store.state
        if not isinstance(state.connection, Disconnected):
            return state.is_connected
        if self.registry.embedded:
            logger.debug("Auto-connect skipped: embedded frame")
            return False

        descriptor = self.registry.select()
        if descriptor is None:
            return False

        provider = descriptor.handle
        epoch = self.store.epoch
        try:
            accounts = await provider.request("eth_accounts")
            if not accounts:
                return False
            chain_id = parse_quantity(await provider.request("eth_chainId"))
        except Exception as e:
            logger.warning(f"Auto-connect via {provider.name} failed: {e}")
            return False

        if not self.store.dispatch(ConnectRequested(), epoch):
            return False
        if not await self._establish(provider, accounts[0], chain_id, epoch):
            return False

        logger.info(f"Wallet reconnected: {short_address(accounts[0])} (chain={chain_id})")
        return True

    def disconnect(self) -> None:
        """End the session and reset all session state."""
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

        address = self.store.state.address
        self.store.dispatch(Disconnect())
        if address:
            logger.info(f"Wallet disconnected: {short_address(address)}")

    # ======================
    # Provider events
    # ======================

    def _subscribe(self, provider: InjectedProvider, epoch: int) -> None:
        if self._subscription is not None:
            self._subscription.dispose()

        def on_accounts_changed(accounts: list[str]) -> None:
            if self.store.epoch != epoch:
                return
            if not accounts:
                logger.info("Wallet reported no accounts, disconnecting")
                self.disconnect()
                return

            current = self.store.state.address
            if current is not None and accounts[0].lower() != current.lower():
                logger.info(f"Account changed to {short_address(accounts[0])}, reconnecting")
                self.disconnect()
                self._schedule(self.reconnect())

        def on_chain_changed(chain_id: Union[str, int]) -> None:
            if self.store.epoch != epoch:
                return
            try:
                new_chain = parse_quantity(chain_id)
            except ValueError:
                logger.warning(f"Ignoring malformed chain id {chain_id!r}")
                return
            logger.info(f"Chain changed to {network_name(new_chain)}")
            if self.store.dispatch(ChainChanged(new_chain), epoch) and self.settings.auto_refresh_balance:
                self._schedule(self.tracker.refresh_balance())

        def on_disconnect(error: Any = None) -> None:
            if self.store.epoch != epoch:
                return
            logger.info(f"Provider {provider.name} disconnected")
            self.disconnect()

        self._subscription = Subscription(
            provider=provider,
            handlers={
                ACCOUNTS_CHANGED: on_accounts_changed,
                CHAIN_CHANGED: on_chain_changed,
                DISCONNECT: on_disconnect,
            },
        ).attach()

    def _schedule(self, coro: Coroutine) -> None:
        """Run follow-up work from a synchronous event handler."""
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; follow-up work from provider event dropped")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for scheduled follow-ups and confirmation waits to finish."""
        while self._tasks or self.tracker.watching:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.tracker.wait_idle()

    # ======================
    # Balances and transfers
    # ======================

    async def refresh_balance(self) -> bool:
        """Refresh balances of the connected account."""
        return await self.tracker.refresh_balance()

    async def send(self, params: Union[SendTransactionParams, dict]) -> SendResult:
        """Send a transfer from the connected account."""
        return await self.tracker.send(params)

    async def estimate_gas_cost(self, params: Union[SendTransactionParams, dict]) -> EstimateResult:
        """Estimate gas units for a transfer without sending it."""
        return await self.tracker.estimate_gas_cost(params)

    def create_offline_wallet(self) -> OfflineWallet:
        """Generate a new key pair locally. Does not touch the session."""
        return generate_wallet()

    # ======================
    # Accessors
    # ======================

    @property
    def state(self) -> SessionState:
        return self.store.state

    @property
    def is_connected(self) -> bool:
        return self.store.state.is_connected

    @property
    def is_connecting(self) -> bool:
        return self.store.state.is_connecting

    @property
    def address(self) -> Optional[str]:
        return self.store.state.address

    @property
    def chain_id(self) -> Optional[int]:
        return self.store.state.chain_id

    @property
    def balances(self) -> Balances:
        return self.store.state.balances

    @property
    def portfolio_value(self) -> Decimal:
        return self.store.state.balances.portfolio_value

    @property
    def transactions(self) -> tuple[TransactionRecord, ...]:
        return self.store.state.transactions

    @property
    def pending_transactions(self) -> list[TransactionRecord]:
        state = self.store.state
        return [tx for tx in state.transactions if tx.id in state.pending_hashes]

    @property
    def error(self) -> Optional[ErrorRecord]:
        return self.store.state.last_error

    @property
    def is_loading_balance(self) -> bool:
        return self.store.state.loading_balance

    @property
    def is_sending_transaction(self) -> bool:
        return self.store.state.sending_transaction

    def network_name(self, chain_id: Optional[int] = None) -> str:
        """Display name of a chain (the connected one by default)."""
        return network_name(chain_id if chain_id is not None else self.chain_id)

    def available_providers(self) -> list[dict]:
        return self.registry.describe()

    def is_preferred_available(self) -> bool:
        return self.registry.is_preferred_available()
