"""Lookup table of provider configurations."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from gateway.core.errors import InvalidTokenName
from gateway.models.providers import ProviderConfig


class ProviderRegistry:
    """Hold each provider's immutable config; swaps replace a config whole."""

    def __init__(self, providers: Iterable[ProviderConfig] = ()) -> None:
        self._providers: Dict[str, ProviderConfig] = {p.name: p for p in providers}
        self._lock = threading.Lock()

    def names(self) -> List[str]:
        return list(self._providers)

    def find(self, name: str) -> Optional[ProviderConfig]:
        return self._providers.get(name.strip().lower())

    def get(self, name: str) -> ProviderConfig:
        """Return the provider config or raise ``InvalidTokenName``."""
        provider = self.find(name)
        if provider is None:
            raise InvalidTokenName("Invalid token name", validTokens=self.names())
        return provider

    def replace(self, provider: ProviderConfig) -> None:
        with self._lock:
            self._providers[provider.name] = provider

    def __iter__(self):
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderRegistry"]
