"""Pytest configuration and fixtures."""

import os

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["PROVIDER"] = "dryrun"
os.environ["EMBEDDED"] = "false"

from walletsdk.config import Settings, reset_settings
from walletsdk.engine import WalletEngine
from walletsdk.providers.base import ProviderDescriptor
from walletsdk.providers.dryrun import DEFAULT_ACCOUNT, DryRunProvider
from walletsdk.providers.factory import reset_host_environment
from walletsdk.providers.registry import HostEnvironment

ONE_ETH = 10**18


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Clear cached settings and host environment between tests."""
    reset_settings()
    reset_host_environment()
    yield
    reset_settings()
    reset_host_environment()


@pytest.fixture
def settings() -> Settings:
    """Settings with fast confirmation polling."""
    return Settings(
        confirmation_poll_interval=0.01,
        confirmation_timeout=1.0,
        token_contract=None,
    )


@pytest.fixture
def provider() -> DryRunProvider:
    """Dry-run wallet holding 1 ETH on mainnet."""
    return DryRunProvider(balance_wei=ONE_ETH)


@pytest.fixture
def host(provider: DryRunProvider) -> HostEnvironment:
    """Host exposing the dry-run wallet as its preferred default endpoint."""
    return HostEnvironment(default=ProviderDescriptor(handle=provider, is_preferred=True))


@pytest.fixture
def engine(host: HostEnvironment, settings: Settings) -> WalletEngine:
    return WalletEngine(host, settings=settings)


@pytest_asyncio.fixture
async def connected_engine(engine: WalletEngine):
    """Engine with an established session."""
    result = await engine.connect()
    assert result.success
    assert engine.address == DEFAULT_ACCOUNT
    yield engine
    engine.disconnect()
    await engine.wait_idle()
