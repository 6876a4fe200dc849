"""Gas estimation through the connected provider.

The estimator never invents a budget: if the provider cannot estimate,
the caller gets GAS_ESTIMATION_FAILED with the provider's error attached
and decides what to do (the tracker only skips estimation when the user
supplied a gas limit).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from walletsdk.errors import ErrorKind, WalletError, is_user_rejection
from walletsdk.providers.base import InjectedProvider
from walletsdk.utils.units import parse_quantity, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class GasEstimate:
    """Estimated cost of a transfer."""

    gas_units: int
    gas_price_wei: int

    @property
    def fee_wei(self) -> int:
        return self.gas_units * self.gas_price_wei

    @property
    def fee(self) -> Decimal:
        """Fee in whole native units."""
        return to_decimal(self.fee_wei)


class GasEstimator:
    """Derives gas budgets from the provider's estimation calls."""

    async def estimate(
        self,
        provider: InjectedProvider,
        to: str,
        value: int,
        sender: Optional[str] = None,
    ) -> int:
        """Estimate gas units for a native transfer.

        Args:
            provider: Session provider
            to: Recipient address
            value: Amount in base units
            sender: Sending account, if known

        Returns:
            Gas units

        Raises:
            WalletError: GAS_ESTIMATION_FAILED, with the provider error as cause
        """
        tx = {"to": to, "value": hex(value)}
        if sender:
            tx["from"] = sender

        try:
            result = await provider.request("eth_estimateGas", [tx])
            gas_units = parse_quantity(result)
        except Exception as e:
            if is_user_rejection(e):
                raise WalletError(ErrorKind.USER_REJECTED, "Request rejected by user", cause=e)
            logger.warning(f"Gas estimation failed for transfer to {to[:10]}...: {e}")
            raise WalletError(ErrorKind.GAS_ESTIMATION_FAILED, "Gas estimation failed", cause=e)

        logger.debug(f"Estimated {gas_units} gas for transfer to {to[:10]}...")
        return gas_units

    async def gas_price(self, provider: InjectedProvider) -> int:
        """Get the current gas price in wei.

        Raises:
            WalletError: GAS_PRICE_FAILED, with the provider error as cause
        """
        try:
            return parse_quantity(await provider.request("eth_gasPrice"))
        except Exception as e:
            logger.warning(f"Failed to get gas price: {e}")
            raise WalletError(ErrorKind.GAS_PRICE_FAILED, "Failed to get gas price", cause=e)

    async def estimate_fee(
        self,
        provider: InjectedProvider,
        to: str,
        value: int,
        sender: Optional[str] = None,
    ) -> GasEstimate:
        """Estimate gas units and price together."""
        gas_units = await self.estimate(provider, to, value, sender)
        gas_price = await self.gas_price(provider)
        return GasEstimate(gas_units=gas_units, gas_price_wei=gas_price)
