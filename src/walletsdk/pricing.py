"""Asset valuation.

The engine values holdings through a ``PriceFeed``. The shipped feed
returns fixed USD prices taken from settings; a live feed can replace
it by implementing ``price``.
"""

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from walletsdk.config import Settings, get_settings


class PriceFeed(ABC):
    """Source of USD prices per asset symbol."""

    @abstractmethod
    def price(self, asset: str) -> Decimal:
        """Get the USD price of one whole unit of an asset."""
        raise NotImplementedError()

    def portfolio_value(self, holdings: Mapping[str, Decimal]) -> Decimal:
        """Sum of balance x price over the held assets, in cents precision."""
        total = sum(
            (amount * self.price(asset) for asset, amount in holdings.items()),
            Decimal("0"),
        )
        return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class FixedPriceFeed(PriceFeed):
    """Price feed backed by a static table. Unknown assets are worth 0."""

    def __init__(self, prices: Mapping[str, Decimal]):
        self.prices = {symbol.upper(): Decimal(price) for symbol, price in prices.items()}

    def price(self, asset: str) -> Decimal:
        return self.prices.get(asset.upper(), Decimal("0"))


def default_price_feed(settings: Optional[Settings] = None) -> FixedPriceFeed:
    """Fixed feed with the native and token prices from settings."""
    settings = settings or get_settings()
    return FixedPriceFeed(
        {
            settings.native_symbol: settings.native_price_usd,
            settings.token_symbol: settings.token_price_usd,
        }
    )
