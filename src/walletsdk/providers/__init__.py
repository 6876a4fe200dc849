"""Injected EIP-1193 providers and provider selection."""

from walletsdk.providers.base import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    DISCONNECT,
    InjectedProvider,
    ProviderDescriptor,
    Subscription,
)
from walletsdk.providers.dryrun import DryRunProvider
from walletsdk.providers.jsonrpc import JsonRpcProvider
from walletsdk.providers.registry import HostEnvironment, ProviderRegistry

__all__ = [
    "ACCOUNTS_CHANGED",
    "CHAIN_CHANGED",
    "DISCONNECT",
    "InjectedProvider",
    "ProviderDescriptor",
    "Subscription",
    "DryRunProvider",
    "JsonRpcProvider",
    "HostEnvironment",
    "ProviderRegistry",
]
