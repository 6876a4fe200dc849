"""Transaction submission and confirmation tracking.

Send flow:
1. Reject currencies without a settlement path
2. Validate the recipient address
3. Convert the amount to base units
4. Check the native balance covers the value
5. Resolve the gas budget (caller override or estimate)
6. Submit through the session's provider and record it as pending
7. Watch for the receipt in a detached task and settle the record
8. Refresh balances after a confirmed transfer

Steps 1-5 never touch transaction history. Once a transfer is
submitted, every failure settles its record as FAILED instead of
propagating.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import ValidationError

from walletsdk.config import Settings, get_settings
from walletsdk.contracts import SendTransactionParams
from walletsdk.errors import (
    ErrorKind,
    ErrorRecord,
    WalletError,
    classify_provider_error,
)
from walletsdk.pricing import PriceFeed, default_price_feed
from walletsdk.providers.base import InjectedProvider
from walletsdk.session.state import (
    BalanceFailed,
    BalanceRequested,
    BalanceUpdated,
    Connected,
    ErrorRaised,
    SendFailed,
    SendRequested,
    TransactionReconciled,
    TransactionRecord,
    TransactionSubmitted,
    TxStatus,
)
from walletsdk.session.store import SessionStore
from walletsdk.transactions.gas import GasEstimator
from walletsdk.utils.address import is_valid_address, normalize_address, short_address
from walletsdk.utils.units import parse_quantity, to_base_units, to_decimal

logger = logging.getLogger(__name__)

# ERC-20 balanceOf(address) selector
BALANCE_OF_SELECTOR = "0x70a08231"


@dataclass
class SendResult:
    """Result of a send request."""

    success: bool
    tx_hash: Optional[str] = None
    error: Optional[ErrorRecord] = None


@dataclass
class EstimateResult:
    """Result of a gas estimate request."""

    success: bool
    gas_units: Optional[int] = None
    error: Optional[ErrorRecord] = None


def _not_connected() -> ErrorRecord:
    return ErrorRecord(kind=ErrorKind.NOT_CONNECTED, message="Wallet not connected")


class TransactionTracker:
    """Submits transfers and reconciles them to a terminal status.

    Each confirmation wait runs as its own task, keyed by transaction
    hash and tagged with the session epoch it was started under.
    """

    def __init__(
        self,
        store: SessionStore,
        settings: Optional[Settings] = None,
        estimator: Optional[GasEstimator] = None,
        price_feed: Optional[PriceFeed] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.estimator = estimator or GasEstimator()
        self.price_feed = price_feed or default_price_feed(self.settings)
        self._watchers: dict[str, asyncio.Task] = {}

    # ======================
    # Sending
    # ======================

    def _coerce_params(self, params: Union[SendTransactionParams, dict]) -> SendTransactionParams:
        if isinstance(params, SendTransactionParams):
            return params
        return SendTransactionParams.model_validate(params)

    def _validate(self, params: SendTransactionParams) -> tuple[str, int]:
        """Run the offline checks. Returns (recipient, value in base units)."""
        if params.currency not in self.settings.supported_currencies:
            raise WalletError(
                ErrorKind.UNSUPPORTED_ASSET,
                f"{params.currency} transfers are not supported yet. "
                f"Please use {self.settings.native_symbol}.",
            )

        if not is_valid_address(params.to):
            raise WalletError(ErrorKind.INVALID_ADDRESS, "Invalid recipient address")

        value = int(to_base_units(params.amount, 18))
        if value <= 0:
            raise WalletError(ErrorKind.INVALID_AMOUNT, "Amount must be greater than zero")

        return normalize_address(params.to), value

    async def send(self, params: Union[SendTransactionParams, dict]) -> SendResult:
        """Submit a transfer from the connected account.

        Returns:
            SendResult with the transaction hash, or the error that stopped it
        """
        state = self.store.state
        if not isinstance(state.connection, Connected):
            error = _not_connected()
            self.store.dispatch(ErrorRaised(error))
            return SendResult(success=False, error=error)

        try:
            params = self._coerce_params(params)
        except ValidationError as e:
            error = ErrorRecord(ErrorKind.TRANSACTION_FAILED, "Invalid transaction parameters", e)
            self.store.dispatch(ErrorRaised(error))
            return SendResult(success=False, error=error)

        epoch = self.store.epoch
        provider = state.connection.provider
        sender = state.connection.address
        self.store.dispatch(SendRequested(), epoch)

        try:
            to, value = self._validate(params)

            balance = parse_quantity(await provider.request("eth_getBalance", [sender, "latest"]))
            if balance < value:
                raise WalletError(ErrorKind.INSUFFICIENT_FUNDS, "Insufficient balance")

            gas_limit = params.gas_limit or await self.estimator.estimate(provider, to, value, sender)

            tx_hash = await provider.request(
                "eth_sendTransaction",
                [{"from": sender, "to": to, "value": hex(value), "gas": hex(gas_limit)}],
            )
            if not tx_hash:
                raise WalletError(ErrorKind.TRANSACTION_FAILED, "Provider returned no transaction hash")

        except Exception as e:
            error = classify_provider_error(e, ErrorKind.TRANSACTION_FAILED, "Transaction failed")
            if error.is_user_rejection:
                logger.info(f"Transfer to {short_address(params.to)} rejected by user")
            else:
                logger.warning(f"Transfer to {short_address(params.to)} not sent: {error.kind.value}: {error.message}")
            self.store.dispatch(SendFailed(error), epoch)
            return SendResult(success=False, error=error)

        record = TransactionRecord(
            id=tx_hash,
            to=to,
            amount=params.amount,
            currency=params.currency,
        )
        logger.info(f"Submitted {params.amount} {params.currency} to {short_address(to)}: {tx_hash}")

        if self.store.dispatch(TransactionSubmitted(record), epoch):
            self._watch(provider, tx_hash, epoch)
        elif self.store.epoch == epoch:
            # Session is alive, so the hash is already in history
            logger.error(f"Provider returned duplicate transaction hash {tx_hash}")
            error = ErrorRecord(ErrorKind.TRANSACTION_FAILED, "Duplicate transaction hash", tx_hash)
            self.store.dispatch(SendFailed(error), epoch)
            return SendResult(success=False, tx_hash=tx_hash, error=error)
        else:
            logger.warning(f"Session ended before {tx_hash} was recorded; not tracking it")

        return SendResult(success=True, tx_hash=tx_hash)

    async def estimate_gas_cost(self, params: Union[SendTransactionParams, dict]) -> EstimateResult:
        """Estimate gas units for a transfer without sending it."""
        state = self.store.state
        if not isinstance(state.connection, Connected):
            return EstimateResult(success=False, error=_not_connected())

        epoch = self.store.epoch
        try:
            params = self._coerce_params(params)
            to, value = self._validate(params)
            gas_units = await self.estimator.estimate(
                state.connection.provider, to, value, state.connection.address
            )
        except ValidationError as e:
            error = ErrorRecord(ErrorKind.TRANSACTION_FAILED, "Invalid transaction parameters", e)
        except Exception as e:
            error = classify_provider_error(e, ErrorKind.GAS_ESTIMATION_FAILED, "Gas estimation failed")
        else:
            return EstimateResult(success=True, gas_units=gas_units)

        self.store.dispatch(ErrorRaised(error), epoch)
        return EstimateResult(success=False, error=error)

    # ======================
    # Reconciliation
    # ======================

    def _watch(self, provider: InjectedProvider, tx_hash: str, epoch: int) -> None:
        task = asyncio.create_task(self._reconcile(provider, tx_hash, epoch))
        self._watchers[tx_hash] = task
        task.add_done_callback(lambda _: self._watchers.pop(tx_hash, None))

    async def _await_receipt(
        self,
        provider: InjectedProvider,
        tx_hash: str,
        epoch: int,
    ) -> Optional[dict]:
        """Poll for a receipt. Returns None if the session ends first."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.confirmation_timeout

        while self.store.epoch == epoch:
            receipt = await provider.request("eth_getTransactionReceipt", [tx_hash])
            if receipt:
                return receipt
            if loop.time() >= deadline:
                raise TimeoutError(
                    f"Transaction {tx_hash} not confirmed after {self.settings.confirmation_timeout}s"
                )
            await asyncio.sleep(self.settings.confirmation_poll_interval)

        return None

    @staticmethod
    def _settle(tx_hash: str, receipt: dict[str, Any]) -> TransactionReconciled:
        status = parse_quantity(receipt.get("status", "0x0"))
        gas_used = receipt.get("gasUsed")
        block_number = receipt.get("blockNumber")
        return TransactionReconciled(
            id=tx_hash,
            status=TxStatus.CONFIRMED if status == 1 else TxStatus.FAILED,
            gas_used=parse_quantity(gas_used) if gas_used is not None else None,
            block_number=parse_quantity(block_number) if block_number is not None else None,
        )

    async def _reconcile(self, provider: InjectedProvider, tx_hash: str, epoch: int) -> None:
        try:
            receipt = await self._await_receipt(provider, tx_hash, epoch)
            if receipt is None:
                logger.debug(f"Stopped watching {tx_hash}: session ended")
                return
            event = self._settle(tx_hash, receipt)
        except Exception as e:
            logger.warning(f"Could not confirm {tx_hash}: {e}")
            event = TransactionReconciled(id=tx_hash, status=TxStatus.FAILED)

        if not self.store.dispatch(event, epoch):
            return

        logger.info(
            f"Transaction {tx_hash} {event.status.value} "
            f"(gas={event.gas_used}, block={event.block_number})"
        )
        if event.status == TxStatus.CONFIRMED:
            await self.refresh_balance()

    @property
    def watching(self) -> list[str]:
        """Hashes with a confirmation wait in progress."""
        return list(self._watchers)

    async def wait_idle(self) -> None:
        """Wait until every confirmation wait has finished."""
        while self._watchers:
            await asyncio.gather(*list(self._watchers.values()), return_exceptions=True)

    # ======================
    # Balances
    # ======================

    async def _token_balance(self, provider: InjectedProvider, address: str) -> int:
        contract = self.settings.token_contract
        if not contract:
            return 0
        data = BALANCE_OF_SELECTOR + address.lower().replace("0x", "").rjust(64, "0")
        result = await provider.request("eth_call", [{"to": contract, "data": data}, "latest"])
        if not result or result == "0x":
            return 0
        return parse_quantity(result)

    async def refresh_balance(self) -> bool:
        """Fetch balances for the connected account and value them.

        Overlapping refreshes are allowed; whichever finishes last wins.

        Returns:
            True if new balances were applied
        """
        state = self.store.state
        if not isinstance(state.connection, Connected):
            return False

        epoch = self.store.epoch
        provider = state.connection.provider
        address = state.connection.address
        self.store.dispatch(BalanceRequested(), epoch)

        try:
            native = to_decimal(
                parse_quantity(await provider.request("eth_getBalance", [address, "latest"]))
            )
            token = to_decimal(
                await self._token_balance(provider, address), self.settings.token_decimals
            )
            portfolio_value = self.price_feed.portfolio_value(
                {self.settings.native_symbol: native, self.settings.token_symbol: token}
            )
        except Exception as e:
            logger.error(f"Failed to fetch balance for {short_address(address)}: {e}")
            error = classify_provider_error(e, ErrorKind.BALANCE_FETCH_FAILED, "Failed to fetch balance")
            if not error.is_user_rejection:
                error = ErrorRecord(ErrorKind.BALANCE_FETCH_FAILED, "Failed to fetch balance", e)
            self.store.dispatch(BalanceFailed(error), epoch)
            return False

        return self.store.dispatch(
            BalanceUpdated(native=native, token=token, portfolio_value=portfolio_value),
            epoch,
        )
