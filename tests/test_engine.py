"""Tests for the wallet session engine: connect, balances and transfers."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from walletsdk.config import Settings
from walletsdk.engine import IFRAME_BLOCKED_MESSAGE, NO_WALLET_MESSAGE, WalletEngine
from walletsdk.errors import ErrorKind, ProviderRpcError
from walletsdk.pricing import FixedPriceFeed
from walletsdk.providers.base import ACCOUNTS_CHANGED, CHAIN_CHANGED, DISCONNECT, ProviderDescriptor
from walletsdk.providers.dryrun import DEFAULT_ACCOUNT, DryRunProvider
from walletsdk.providers.registry import HostEnvironment
from walletsdk.session.state import INITIAL_STATE, ConnectionStatus, TxStatus
from walletsdk.transactions.gas import GasEstimator

ONE_ETH = 10**18
RECIPIENT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OTHER_ACCOUNT = "0xabc0000000000000000000000000000000000002"


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


class TestConnect:
    """Tests for WalletEngine.connect."""

    @pytest.mark.asyncio
    async def test_connect_preferred_provider(self, engine, provider):
        """Test connecting to a single preferred provider."""
        result = await engine.connect()

        assert result.success is True
        assert engine.state.status == ConnectionStatus.CONNECTED
        assert engine.address == DEFAULT_ACCOUNT
        assert engine.chain_id == 1
        assert engine.network_name() == "Ethereum Mainnet"
        assert engine.error is None

    @pytest.mark.asyncio
    async def test_connect_refreshes_balance(self, engine, provider):
        """Test a successful connect loads balances once."""
        await engine.connect()

        assert provider.calls_to("eth_getBalance") == 1
        assert engine.balances.native == Decimal("1")
        assert engine.balances.token == Decimal("0")
        assert engine.portfolio_value == Decimal("2000.00")
        assert engine.is_loading_balance is False

    @pytest.mark.asyncio
    async def test_connect_without_auto_refresh(self, host):
        engine = WalletEngine(host, settings=Settings(auto_refresh_balance=False))
        await engine.connect()
        assert engine.is_connected
        assert engine.balances.native == Decimal("0")

    @pytest.mark.asyncio
    async def test_connect_twice(self, connected_engine, provider):
        """Test connecting an established session is a no-op."""
        result = await connected_engine.connect()
        assert result.success is True
        assert provider.calls_to("eth_requestAccounts") == 1

    @pytest.mark.asyncio
    async def test_embedded_frame_blocked(self, provider, settings):
        """Test an embedded connect fails before any provider call."""
        host = HostEnvironment(
            default=ProviderDescriptor(handle=provider, is_preferred=True),
            embedded=True,
        )
        engine = WalletEngine(host, settings=settings)
        result = await engine.connect()

        assert result.success is False
        assert result.error.kind == ErrorKind.IFRAME_BLOCKED
        assert engine.error.message == IFRAME_BLOCKED_MESSAGE
        assert engine.state.status == ConnectionStatus.DISCONNECTED
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_no_wallet_found(self, settings):
        engine = WalletEngine(HostEnvironment(), settings=settings)
        result = await engine.connect()

        assert result.error.kind == ErrorKind.NO_WALLET_FOUND
        assert engine.error.message == NO_WALLET_MESSAGE
        assert engine.state.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_no_accounts(self, settings):
        provider = DryRunProvider(accounts=[])
        engine = WalletEngine(HostEnvironment(default=ProviderDescriptor(handle=provider)), settings=settings)
        result = await engine.connect()

        assert result.error.kind == ErrorKind.NO_ACCOUNTS
        assert engine.error.kind == ErrorKind.NO_ACCOUNTS
        assert engine.is_connected is False

    @pytest.mark.asyncio
    async def test_user_rejects_connect(self, engine, provider):
        """Test a declined connect resets without a visible error."""
        provider.reject("eth_requestAccounts")
        result = await engine.connect()

        assert result.success is False
        assert result.error.kind == ErrorKind.USER_REJECTED
        assert engine.error is None
        assert engine.state.status == ConnectionStatus.DISCONNECTED
        assert engine.is_connecting is False

    @pytest.mark.asyncio
    async def test_provider_failure(self, engine, provider):
        provider.fail("eth_chainId", ProviderRpcError(-32603, "node unavailable"))
        result = await engine.connect()

        assert result.error.kind == ErrorKind.CONNECTION_FAILED
        assert engine.error.message == "node unavailable"

    @pytest.mark.asyncio
    async def test_subscribes_once_and_disposes(self, engine, provider):
        """Test one subscription per session, torn down on disconnect."""
        await engine.connect()
        for event in (ACCOUNTS_CHANGED, CHAIN_CHANGED, DISCONNECT):
            assert provider.listener_count(event) == 1

        engine.disconnect()
        for event in (ACCOUNTS_CHANGED, CHAIN_CHANGED, DISCONNECT):
            assert provider.listener_count(event) == 0

    @pytest.mark.asyncio
    async def test_disconnect_resets(self, connected_engine):
        """Test disconnect returns the initial state."""
        await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})
        await connected_engine.wait_idle()
        assert connected_engine.transactions

        connected_engine.disconnect()
        assert connected_engine.state == INITIAL_STATE
        assert connected_engine.pending_transactions == []


class TestReconnect:
    """Tests for the silent reconnection probe."""

    @pytest.mark.asyncio
    async def test_not_authorized(self, engine, provider):
        """Test nothing happens if the wallet has not authorized the app."""
        assert await engine.reconnect() is False
        assert provider.calls_to("eth_requestAccounts") == 0
        assert engine.is_connected is False

    @pytest.mark.asyncio
    async def test_authorized(self, host, settings):
        provider = host.default.handle
        provider.authorized = True
        engine = WalletEngine(host, settings=settings)

        assert await engine.reconnect() is True
        assert engine.address == DEFAULT_ACCOUNT
        assert provider.calls_to("eth_requestAccounts") == 0

    @pytest.mark.asyncio
    async def test_embedded_skipped(self, settings):
        provider = DryRunProvider(authorized=True)
        host = HostEnvironment(default=ProviderDescriptor(handle=provider, is_preferred=True), embedded=True)
        engine = WalletEngine(host, settings=settings)

        assert await engine.reconnect() is False
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_failure_not_surfaced(self, engine, provider):
        provider.fail("eth_accounts", ProviderRpcError(-32603, "down"))
        assert await engine.reconnect() is False
        assert engine.error is None


class TestProviderEvents:
    """Tests for reactions to provider events."""

    @pytest.mark.asyncio
    async def test_accounts_emptied(self, connected_engine, provider):
        provider.change_accounts([])
        assert connected_engine.state == INITIAL_STATE

    @pytest.mark.asyncio
    async def test_account_switched(self, connected_engine, provider):
        """Test a new active account restarts the session with it."""
        provider.change_accounts([OTHER_ACCOUNT])
        assert connected_engine.is_connected is False

        await connected_engine.wait_idle()
        assert connected_engine.address == OTHER_ACCOUNT

    @pytest.mark.asyncio
    async def test_same_account_ignored(self, connected_engine, provider):
        provider.change_accounts([DEFAULT_ACCOUNT.upper().replace("0X", "0x")])
        assert connected_engine.address == DEFAULT_ACCOUNT

    @pytest.mark.asyncio
    async def test_chain_changed(self, connected_engine, provider):
        provider.change_chain(137)
        assert connected_engine.chain_id == 137
        assert connected_engine.network_name() == "Polygon Mainnet"
        await connected_engine.wait_idle()

    @pytest.mark.asyncio
    async def test_provider_disconnect(self, connected_engine, provider):
        provider.disconnect()
        assert connected_engine.state == INITIAL_STATE


class TestBalances:
    """Tests for balance refresh."""

    @pytest.mark.asyncio
    async def test_requires_session(self, engine, provider):
        assert await engine.refresh_balance() is False
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_failure(self, connected_engine, provider):
        """Test a failed refresh records the error and clears the flag."""
        provider.fail("eth_getBalance", ProviderRpcError(-32603, "down"))
        assert await connected_engine.refresh_balance() is False

        assert connected_engine.error.kind == ErrorKind.BALANCE_FETCH_FAILED
        assert connected_engine.error.message == "Failed to fetch balance"
        assert connected_engine.is_loading_balance is False

    @pytest.mark.asyncio
    async def test_token_balance(self, provider):
        """Test the token balance is read from the configured contract."""
        provider.token_balances[DEFAULT_ACCOUNT.lower()] = 5 * 10**18
        settings = Settings(token_contract=RECIPIENT, token_price_usd=Decimal("2"))
        host = HostEnvironment(default=ProviderDescriptor(handle=provider, is_preferred=True))
        engine = WalletEngine(host, settings=settings)

        await engine.connect()
        assert engine.balances.token == Decimal("5")
        assert engine.portfolio_value == Decimal("2010.00")
        assert provider.calls_to("eth_call") == 1

    @pytest.mark.asyncio
    async def test_token_valued_at_default_price(self, provider):
        """Test LOT counts towards the portfolio at its default fixed price."""
        provider.token_balances[DEFAULT_ACCOUNT.lower()] = 5 * 10**18
        host = HostEnvironment(default=ProviderDescriptor(handle=provider, is_preferred=True))
        engine = WalletEngine(host, settings=Settings(token_contract=RECIPIENT))

        await engine.connect()
        assert engine.balances.token == Decimal("5")
        assert engine.portfolio_value == Decimal("2000.50")

    @pytest.mark.asyncio
    async def test_custom_price_feed(self, host, settings):
        engine = WalletEngine(host, settings=settings, price_feed=FixedPriceFeed({"ETH": Decimal("3000")}))
        await engine.connect()
        assert engine.portfolio_value == Decimal("3000.00")

    @pytest.mark.asyncio
    async def test_result_from_ended_session_dropped(self, connected_engine):
        """Test a refresh that outlives its session changes nothing."""
        task = asyncio.create_task(connected_engine.refresh_balance())
        await asyncio.sleep(0)
        connected_engine.disconnect()

        assert await task is False
        assert connected_engine.state == INITIAL_STATE


class TestSendValidation:
    """Tests for transfers rejected before submission."""

    @pytest.mark.asyncio
    async def test_not_connected(self, engine, provider):
        result = await engine.send({"to": RECIPIENT, "amount": "0.1"})
        assert result.error.kind == ErrorKind.NOT_CONNECTED
        assert engine.error.kind == ErrorKind.NOT_CONNECTED
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, connected_engine, provider):
        """Test 1.5 ETH from a 1.0 ETH balance never reaches the wallet."""
        result = await connected_engine.send({"to": RECIPIENT, "amount": "1.5", "currency": "ETH"})

        assert result.success is False
        assert result.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert connected_engine.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert connected_engine.transactions == ()
        assert connected_engine.is_sending_transaction is False
        assert provider.calls_to("eth_sendTransaction") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params, kind",
        [
            ({"to": "0x1234", "amount": "0.1"}, ErrorKind.INVALID_ADDRESS),
            ({"to": RECIPIENT[:-1] + "D", "amount": "0.1"}, ErrorKind.INVALID_ADDRESS),
            ({"to": RECIPIENT, "amount": "abc"}, ErrorKind.INVALID_AMOUNT),
            ({"to": RECIPIENT, "amount": ""}, ErrorKind.INVALID_AMOUNT),
            ({"to": RECIPIENT, "amount": "0"}, ErrorKind.INVALID_AMOUNT),
            ({"to": RECIPIENT, "amount": "0.1", "currency": "LOT"}, ErrorKind.UNSUPPORTED_ASSET),
        ],
    )
    async def test_rejected_before_network(self, connected_engine, provider, params, kind):
        """Test validation failures touch neither the network nor history."""
        calls_before = len(provider.calls)
        result = await connected_engine.send(params)

        assert result.error.kind == kind
        assert connected_engine.error.kind == kind
        assert connected_engine.transactions == ()
        assert connected_engine.is_sending_transaction is False
        assert len(provider.calls) == calls_before

    @pytest.mark.asyncio
    async def test_gas_estimation_failure(self, connected_engine, provider):
        """Test a failed estimate stops the send and keeps its cause."""
        cause = ProviderRpcError(-32000, "execution reverted")
        provider.fail("eth_estimateGas", cause)
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})

        assert result.error.kind == ErrorKind.GAS_ESTIMATION_FAILED
        assert result.error.cause is cause
        assert connected_engine.transactions == ()
        assert provider.calls_to("eth_sendTransaction") == 0

    @pytest.mark.asyncio
    async def test_user_rejects_send(self, connected_engine, provider):
        """Test a declined signature leaves no error and no record."""
        provider.reject("eth_sendTransaction")
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})

        assert result.error.kind == ErrorKind.USER_REJECTED
        assert connected_engine.error is None
        assert connected_engine.is_sending_transaction is False
        assert connected_engine.transactions == ()

    @pytest.mark.asyncio
    async def test_invalid_gas_limit(self, connected_engine):
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.1", "gas_limit": 0})
        assert result.error.kind == ErrorKind.TRANSACTION_FAILED
        assert connected_engine.transactions == ()

    @pytest.mark.asyncio
    async def test_loose_gas_limit_text(self, connected_engine, provider):
        """Test a gas limit with underscores or non-ASCII digits is never submitted."""
        for gas_limit in ("1_000", "２１０００"):
            result = await connected_engine.send(
                {"to": RECIPIENT, "amount": "0.1", "gas_limit": gas_limit}
            )
            assert result.success is False
            assert result.error.kind == ErrorKind.TRANSACTION_FAILED

        assert provider.sent == []
        assert connected_engine.transactions == ()


class TestSendAndReconcile:
    """Tests for submitted transfers and their reconciliation."""

    @pytest.fixture
    def provider(self):
        return DryRunProvider(balance_wei=ONE_ETH, auto_mine=False)

    @pytest.mark.asyncio
    async def test_submitted_pending(self, connected_engine, provider):
        """Test a successful send appends exactly one pending record."""
        result = await connected_engine.send({"to": RECIPIENT.lower(), "amount": "0.5"})

        assert result.success is True
        assert [tx.id for tx in connected_engine.transactions] == [result.tx_hash]
        record = connected_engine.transactions[0]
        assert record.status == TxStatus.PENDING
        assert record.to == RECIPIENT
        assert record.amount == "0.5"
        assert record.currency == "ETH"
        assert connected_engine.state.pending_hashes == frozenset({result.tx_hash})

        sent = provider.sent[0]
        assert sent["from"] == DEFAULT_ACCOUNT
        assert sent["value"] == hex(5 * 10**17)
        assert sent["gas"] == hex(21000)

        provider.mine(result.tx_hash)
        await connected_engine.wait_idle()

    @pytest.mark.asyncio
    async def test_confirmed_with_receipt_data(self, connected_engine, provider):
        """Test a successful receipt confirms the record and refreshes once."""
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.5"})
        refreshes_before = provider.calls_to("eth_getBalance")

        provider.mine(result.tx_hash, gas_used=21000, block_number=100)
        await connected_engine.wait_idle()

        record = connected_engine.state.find_transaction(result.tx_hash)
        assert record.status == TxStatus.CONFIRMED
        assert record.gas_used == 21000
        assert record.block_number == 100
        assert connected_engine.state.pending_hashes == frozenset()
        assert provider.calls_to("eth_getBalance") == refreshes_before + 1
        assert connected_engine.balances.native == Decimal("0.49937")

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, connected_engine, provider):
        """Test a failed receipt marks the record failed without a refresh."""
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.5"})
        refreshes_before = provider.calls_to("eth_getBalance")

        provider.mine(result.tx_hash, success=False)
        await connected_engine.wait_idle()

        assert connected_engine.transactions[0].status == TxStatus.FAILED
        assert provider.calls_to("eth_getBalance") == refreshes_before

    @pytest.mark.asyncio
    async def test_network_error_while_waiting(self, connected_engine, provider):
        """Test a receipt lookup error resolves the record as failed."""
        provider.fail("eth_getTransactionReceipt", ProviderRpcError(-32603, "node down"))
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.5"})
        await connected_engine.wait_idle()

        assert result.success is True
        assert connected_engine.transactions[0].status == TxStatus.FAILED
        assert connected_engine.state.pending_hashes == frozenset()

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, provider):
        """Test a transaction never mined is failed at the deadline."""
        settings = Settings(confirmation_poll_interval=0.01, confirmation_timeout=0.05)
        host = HostEnvironment(default=ProviderDescriptor(handle=provider, is_preferred=True))
        engine = WalletEngine(host, settings=settings)
        await engine.connect()

        await engine.send({"to": RECIPIENT, "amount": "0.1"})
        await engine.wait_idle()

        assert engine.transactions[0].status == TxStatus.FAILED

    @pytest.mark.asyncio
    async def test_gas_limit_override(self, connected_engine, provider):
        """Test a caller gas limit skips estimation."""
        result = await connected_engine.send(
            {"to": RECIPIENT, "amount": "0.1", "gas_limit": "0xc350"}
        )

        assert provider.calls_to("eth_estimateGas") == 0
        assert provider.sent[0]["gas"] == hex(50000)

        provider.mine(result.tx_hash)
        await connected_engine.wait_idle()

    @pytest.mark.asyncio
    async def test_concurrent_sends(self, connected_engine, provider):
        """Test concurrent sends get distinct ids and reconcile independently."""
        first, second = await asyncio.gather(
            connected_engine.send({"to": RECIPIENT, "amount": "0.1"}),
            connected_engine.send({"to": RECIPIENT, "amount": "0.2"}),
        )

        assert first.success and second.success
        assert first.tx_hash != second.tx_hash
        submitted = [tx["hash"] for tx in provider.sent]
        assert [tx.id for tx in connected_engine.transactions] == submitted[::-1]

        provider.mine(first.tx_hash)
        await _wait_for(
            lambda: connected_engine.state.find_transaction(first.tx_hash).status == TxStatus.CONFIRMED
        )
        assert connected_engine.state.find_transaction(second.tx_hash).status == TxStatus.PENDING

        provider.mine(second.tx_hash)
        await connected_engine.wait_idle()
        assert connected_engine.state.find_transaction(second.tx_hash).status == TxStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_duplicate_hash_fails_send(self, connected_engine, provider):
        """Test a hash already in history fails the send and clears the sending flag."""
        first = await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})

        # Same nonce, recipient and value reproduce the first hash
        provider._nonce = 0
        second = await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})

        assert second.success is False
        assert second.tx_hash == first.tx_hash
        assert second.error.kind == ErrorKind.TRANSACTION_FAILED
        assert second.error.message == "Duplicate transaction hash"
        assert connected_engine.error == second.error
        assert connected_engine.is_sending_transaction is False
        assert len(connected_engine.transactions) == 1
        assert connected_engine.tracker.watching == [first.tx_hash]

        provider.mine(first.tx_hash)
        await connected_engine.wait_idle()
        assert connected_engine.transactions[0].status == TxStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_disconnect_orphans_watcher(self, connected_engine, provider):
        """Test a confirmation arriving after disconnect changes nothing."""
        result = await connected_engine.send({"to": RECIPIENT, "amount": "0.1"})
        connected_engine.disconnect()

        provider.mine(result.tx_hash)
        await connected_engine.wait_idle()

        assert connected_engine.state == INITIAL_STATE
        assert provider.calls_to("eth_getTransactionReceipt") <= 1


class TestEstimateAndOfflineWallet:
    """Tests for estimate_gas_cost and create_offline_wallet."""

    @pytest.mark.asyncio
    async def test_estimate(self, connected_engine):
        result = await connected_engine.estimate_gas_cost({"to": RECIPIENT, "amount": "0.1"})
        assert result.success is True
        assert result.gas_units == 21000

    @pytest.mark.asyncio
    async def test_estimate_not_connected(self, engine):
        result = await engine.estimate_gas_cost({"to": RECIPIENT, "amount": "0.1"})
        assert result.error.kind == ErrorKind.NOT_CONNECTED

    @pytest.mark.asyncio
    async def test_estimate_failure(self, host, settings):
        estimator = GasEstimator()
        estimator.estimate = AsyncMock(side_effect=ProviderRpcError(-32000, "reverted"))
        engine = WalletEngine(host, settings=settings, estimator=estimator)
        await engine.connect()

        result = await engine.estimate_gas_cost({"to": RECIPIENT, "amount": "0.1"})

        assert result.success is False
        assert result.error.kind == ErrorKind.GAS_ESTIMATION_FAILED
        assert engine.error.message == "reverted"

    def test_offline_wallet(self, engine):
        """Test offline key generation leaves the session alone."""
        wallet = engine.create_offline_wallet()

        assert engine.is_valid_address(wallet.address)
        assert len(wallet.mnemonic.split()) == 12
        assert engine.state == INITIAL_STATE
        assert engine.format_balance("1.5") == "1.5000"

    def test_accessors(self, engine):
        assert engine.available_providers() == [
            {"name": "dryrun", "preferred": True, "restricted": False}
        ]
        assert engine.is_preferred_available() is True
        assert engine.network_name() == "Not connected"
        assert engine.network_name(56) == "BSC Mainnet"
