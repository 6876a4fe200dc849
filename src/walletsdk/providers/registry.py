"""Provider discovery and selection.

The host exposes zero or more injected providers: a default endpoint
(``window.ethereum``-style) and optionally a list of endpoints when
several wallets are installed. Selection policy, in order:

1. In an embedded frame, endpoints flagged restricted are dropped.
2. The preferred endpoint sorts first; the rest keep their order.
3. If nothing survives, the default endpoint is used as a last resort,
   but only outside an embedded frame.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from walletsdk.providers.base import ProviderDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostEnvironment:
    """What the host page exposes to the engine.

    Attributes:
        default: The default injected endpoint, if any
        providers: Every endpoint when more than one wallet is installed
        embedded: Whether the app runs inside another page's frame
    """

    default: Optional[ProviderDescriptor] = None
    providers: tuple[ProviderDescriptor, ...] = field(default_factory=tuple)
    embedded: bool = False


class ProviderRegistry:
    """Discovers injected providers and picks the one to connect to."""

    def __init__(self, host: HostEnvironment):
        self.host = host

    @property
    def embedded(self) -> bool:
        return self.host.embedded

    def _candidates(self) -> list[ProviderDescriptor]:
        candidates: list[ProviderDescriptor] = []
        default = self.host.default

        # A preferred default endpoint leads, as a MetaMask-style window.ethereum would
        if default is not None and default.is_preferred:
            candidates.append(default)

        for descriptor in self.host.providers:
            if descriptor not in candidates:
                candidates.append(descriptor)

        return candidates

    def discover(self) -> list[ProviderDescriptor]:
        """List usable providers, best first.

        Deterministic and side-effect-free: the same host always yields
        the same list.
        """
        candidates = self._candidates()

        if self.embedded:
            restricted = [d.name for d in candidates if d.is_restricted]
            if restricted:
                logger.debug(f"Embedded frame: skipping restricted providers {restricted}")
            candidates = [d for d in candidates if not d.is_restricted]

        # sorted() is stable, so non-preferred endpoints keep host order
        candidates = sorted(candidates, key=lambda d: not d.is_preferred)

        default = self.host.default
        if not candidates and default is not None and not self.embedded:
            candidates = [default]

        return candidates

    def select(self) -> Optional[ProviderDescriptor]:
        """Pick the provider to connect to, or None if there is none."""
        providers = self.discover()
        return providers[0] if providers else None

    def is_preferred_available(self) -> bool:
        """Whether a preferred provider can be used from this context."""
        if self.embedded:
            return False
        return any(d.is_preferred for d in self.discover())

    def describe(self) -> list[dict]:
        """Summaries of discovered providers for display."""
        return [
            {
                "name": d.name,
                "preferred": d.is_preferred,
                "restricted": d.is_restricted,
            }
            for d in self.discover()
        ]
