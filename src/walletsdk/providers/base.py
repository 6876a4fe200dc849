"""Injected provider base interface.

An injected provider is the EIP-1193 endpoint a wallet exposes to the
host application: a ``request`` coroutine plus ``on``/``remove_listener``
for out-of-band notifications. The engine never owns a provider; the host
hands one in and the engine only references it for a session.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

# Provider events the engine listens to
ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"
DISCONNECT = "disconnect"


class InjectedProvider(ABC):
    """Abstract base class for EIP-1193 providers.

    Subclasses implement ``request``. Listener bookkeeping is shared so
    every provider can ``emit`` the events it observes.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Handler]] = {}

    @abstractmethod
    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send an RPC request through the wallet.

        Args:
            method: JSON-RPC method name (eth_requestAccounts, eth_getBalance, ...)
            params: Positional parameters for the method

        Returns:
            The method's result

        Raises:
            ProviderRpcError: If the wallet or node rejects the request
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        raise NotImplementedError()

    def on(self, event: str, handler: Handler) -> None:
        """Register a handler for a provider event."""
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Handler) -> None:
        """Remove a previously registered handler (no-op if absent)."""
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        """Number of handlers registered for an event."""
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """Deliver an event to every registered handler."""
        for handler in list(self._listeners.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"{self.name} handler for {event} failed: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


@dataclass(frozen=True)
class ProviderDescriptor:
    """One injected signing endpoint as seen by the host.

    Attributes:
        handle: The provider itself
        is_preferred: Endpoint the host prefers (MetaMask-style flag)
        is_restricted: Endpoint that must not be trusted from an embedded frame
    """

    handle: InjectedProvider
    is_preferred: bool = False
    is_restricted: bool = False

    @property
    def name(self) -> str:
        return self.handle.name


@dataclass
class Subscription:
    """Event handlers attached to one provider for one session.

    ``dispose`` detaches every handler; calling it twice is harmless.
    """

    provider: InjectedProvider
    handlers: dict[str, Handler] = field(default_factory=dict)
    active: bool = False

    def attach(self) -> "Subscription":
        for event, handler in self.handlers.items():
            self.provider.on(event, handler)
        self.active = True
        return self

    def dispose(self) -> None:
        if not self.active:
            return
        for event, handler in self.handlers.items():
            self.provider.remove_listener(event, handler)
        self.active = False
        logger.debug(f"Detached {len(self.handlers)} listeners from {self.provider.name}")
