"""Provider factory for building the host environment from settings."""

import logging

from walletsdk.config import Settings, get_settings
from walletsdk.providers.base import InjectedProvider, ProviderDescriptor
from walletsdk.providers.dryrun import DryRunProvider
from walletsdk.providers.jsonrpc import JsonRpcProvider
from walletsdk.providers.registry import HostEnvironment

logger = logging.getLogger(__name__)

# Singleton instance
_host_instance: HostEnvironment | None = None


def create_provider(settings: Settings) -> InjectedProvider:
    """Create the injected provider named by settings.provider.

    - dryrun (default): in-memory simulated wallet
    - jsonrpc: node at settings.rpc_url
    """
    provider_name = settings.provider.lower()

    if provider_name == "jsonrpc":
        return JsonRpcProvider(rpc_url=settings.rpc_url, timeout=settings.rpc_timeout)

    if provider_name != "dryrun":
        logger.warning(f"Unknown provider '{settings.provider}', falling back to dryrun")
    return DryRunProvider(balance_wei=10**18)


def get_host_environment(settings: Settings | None = None) -> HostEnvironment:
    """Get the configured host environment.

    The configured provider becomes the preferred default endpoint.

    Returns:
        Cached HostEnvironment instance
    """
    global _host_instance

    if _host_instance is not None:
        return _host_instance

    settings = settings or get_settings()
    provider = create_provider(settings)
    _host_instance = HostEnvironment(
        default=ProviderDescriptor(handle=provider, is_preferred=True),
        embedded=settings.embedded,
    )
    logger.info(f"Host environment: provider={provider.name} embedded={settings.embedded}")
    return _host_instance


def reset_host_environment() -> None:
    """Reset host environment instance (useful for testing)."""
    global _host_instance
    _host_instance = None
