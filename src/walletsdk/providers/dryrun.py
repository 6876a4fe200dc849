"""Dry-run provider for simulated wallet sessions.

Implements the EIP-1193 surface in memory: accounts, chain id, balances,
gas estimation, transaction submission and receipts. Useful for demos
and tests; no network access and no real signing.
"""

import asyncio
import hashlib
import logging
from typing import Any, Optional

from walletsdk.errors import USER_REJECTED_CODE, ProviderRpcError
from walletsdk.providers.base import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    DISCONNECT,
    InjectedProvider,
)

logger = logging.getLogger(__name__)

# EIP-1193 "Unsupported Method"
UNSUPPORTED_METHOD_CODE = 4200

# ERC-20 balanceOf(address) selector
BALANCE_OF_SELECTOR = "0x70a08231"

DEFAULT_ACCOUNT = "0xabc0000000000000000000000000000000000001"


class DryRunProvider(InjectedProvider):
    """Simulated EIP-1193 provider.

    Example:
        provider = DryRunProvider(balance_wei=10**18)
        accounts = await provider.request("eth_requestAccounts")
        tx_hash = await provider.request("eth_sendTransaction", [{...}])
    """

    def __init__(
        self,
        accounts: Optional[list[str]] = None,
        chain_id: int = 1,
        balance_wei: int = 0,
        gas_estimate: int = 21000,
        gas_price_wei: int = 30 * 10**9,
        auto_mine: bool = True,
        authorized: bool = False,
        latency: float = 0.0,
        name: str = "dryrun",
    ):
        """Initialize the simulated wallet.

        Args:
            accounts: Accounts the wallet exposes (first one is active)
            chain_id: Chain the wallet reports
            balance_wei: Starting native balance for every account
            gas_estimate: Result of eth_estimateGas
            gas_price_wei: Result of eth_gasPrice
            auto_mine: Produce a successful receipt as soon as a tx is sent
            authorized: Whether eth_accounts already returns the accounts
            latency: Seconds each request sleeps before answering
            name: Provider name for logs
        """
        super().__init__()
        self.accounts = list(accounts) if accounts is not None else [DEFAULT_ACCOUNT]
        self.chain_id = chain_id
        self.balances: dict[str, int] = {a.lower(): balance_wei for a in self.accounts}
        self.token_balances: dict[str, int] = {}
        self.gas_estimate = gas_estimate
        self.gas_price_wei = gas_price_wei
        self.auto_mine = auto_mine
        self.authorized = authorized
        self.latency = latency
        self._name = name

        self.calls: list[tuple[str, list]] = []
        self.failures: dict[str, BaseException] = {}
        self._one_shot_failures: dict[str, list[BaseException]] = {}
        self.sent: list[dict] = []
        self.receipts: dict[str, dict] = {}
        self.block_number = 100
        self._nonce = 0

    @property
    def name(self) -> str:
        return self._name

    # ======================
    # Test controls
    # ======================

    def fail(self, method: str, error: BaseException) -> None:
        """Make every call to ``method`` raise ``error``."""
        self.failures[method] = error

    def fail_next(self, method: str, error: BaseException) -> None:
        """Make the next call to ``method`` raise ``error``."""
        self._one_shot_failures.setdefault(method, []).append(error)

    def reject(self, method: str) -> None:
        """Make the next call to ``method`` look like the user declined it."""
        self.fail_next(method, ProviderRpcError(USER_REJECTED_CODE, "User rejected the request."))

    def calls_to(self, method: str) -> int:
        """Number of requests made for a method."""
        return sum(1 for m, _ in self.calls if m == method)

    def set_balance(self, address: str, balance_wei: int) -> None:
        self.balances[address.lower()] = balance_wei

    def mine(
        self,
        tx_hash: str,
        success: bool = True,
        gas_used: Optional[int] = None,
        block_number: Optional[int] = None,
    ) -> dict:
        """Produce a receipt for a sent transaction."""
        tx = next((t for t in self.sent if t["hash"] == tx_hash), None)
        if tx is None:
            raise KeyError(f"Unknown transaction {tx_hash}")

        gas = gas_used if gas_used is not None else int(tx.get("gas", hex(self.gas_estimate)), 16)
        block = block_number if block_number is not None else self.block_number
        self.block_number = max(self.block_number, block) + 1

        if success:
            sender = tx.get("from", "").lower()
            cost = int(tx.get("value", "0x0"), 16) + gas * self.gas_price_wei
            self.balances[sender] = max(self.balances.get(sender, 0) - cost, 0)

        receipt = {
            "transactionHash": tx_hash,
            "status": "0x1" if success else "0x0",
            "gasUsed": hex(gas),
            "blockNumber": hex(block),
        }
        self.receipts[tx_hash] = receipt
        logger.info(f"[DRY RUN] Mined {tx_hash[:10]}... status={receipt['status']}")
        return receipt

    # Event helpers

    def change_accounts(self, accounts: list[str]) -> None:
        self.accounts = list(accounts)
        for account in accounts:
            self.balances.setdefault(account.lower(), 0)
        self.emit(ACCOUNTS_CHANGED, list(accounts))

    def change_chain(self, chain_id: int) -> None:
        self.chain_id = chain_id
        self.emit(CHAIN_CHANGED, hex(chain_id))

    def disconnect(self) -> None:
        self.emit(DISCONNECT, {"code": 4900, "message": "Disconnected"})

    # ======================
    # EIP-1193
    # ======================

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = list(params or [])
        self.calls.append((method, params))

        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)

        queued = self._one_shot_failures.get(method)
        if queued:
            raise queued.pop(0)
        if method in self.failures:
            raise self.failures[method]

        handler = getattr(self, "_rpc_" + method, None)
        if handler is None:
            raise ProviderRpcError(UNSUPPORTED_METHOD_CODE, f"Unsupported method: {method}")
        return handler(params)

    def _rpc_eth_requestAccounts(self, params: list) -> list[str]:
        self.authorized = True
        return list(self.accounts)

    def _rpc_eth_accounts(self, params: list) -> list[str]:
        return list(self.accounts) if self.authorized else []

    def _rpc_eth_chainId(self, params: list) -> str:
        return hex(self.chain_id)

    def _rpc_eth_getBalance(self, params: list) -> str:
        address = params[0].lower() if params else ""
        return hex(self.balances.get(address, 0))

    def _rpc_eth_estimateGas(self, params: list) -> str:
        return hex(self.gas_estimate)

    def _rpc_eth_gasPrice(self, params: list) -> str:
        return hex(self.gas_price_wei)

    def _rpc_eth_call(self, params: list) -> str:
        call = params[0] if params else {}
        data = call.get("data", "")
        if not data.startswith(BALANCE_OF_SELECTOR):
            return "0x"
        holder = "0x" + data[-40:]
        balance = self.token_balances.get(holder.lower(), 0)
        return "0x" + format(balance, "064x")

    def _rpc_eth_sendTransaction(self, params: list) -> str:
        tx = dict(params[0])
        self._nonce += 1
        seed = f"{self._nonce}:{tx.get('from')}:{tx.get('to')}:{tx.get('value')}"
        tx_hash = "0x" + hashlib.sha256(seed.encode()).hexdigest()
        tx["hash"] = tx_hash
        self.sent.append(tx)
        logger.info(f"[DRY RUN] Sent {tx.get('value')} wei to {tx.get('to')}: {tx_hash[:10]}...")

        if self.auto_mine:
            self.mine(tx_hash)
        return tx_hash

    def _rpc_eth_getTransactionReceipt(self, params: list) -> Optional[dict]:
        return self.receipts.get(params[0]) if params else None
