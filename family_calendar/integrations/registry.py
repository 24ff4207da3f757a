"""
Provider adapter registry.

Maps a linked calendar's provider tag to the adapter that speaks that
provider's API, so new providers plug in without touching the fetcher or
the write router.
"""

import logging
from typing import Iterable

from family_calendar.integrations.base import LinkedCalendar, ProviderAdapter
from family_calendar.integrations.exceptions import UnsupportedProviderError

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of ProviderAdapter instances keyed on provider tag."""

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()):
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Register (or replace) the adapter for adapter.provider."""
        tag = adapter.provider.lower()
        if tag in self._adapters:
            logger.warning(f"Replacing adapter for provider '{tag}'")
        self._adapters[tag] = adapter

    def get(self, provider: str) -> ProviderAdapter:
        """
        Get the adapter for a provider tag.

        Raises:
            UnsupportedProviderError: If no adapter is registered
        """
        try:
            return self._adapters[provider.lower()]
        except KeyError:
            raise UnsupportedProviderError(f"Unsupported calendar provider: {provider}")

    def for_calendar(self, calendar: LinkedCalendar) -> ProviderAdapter:
        """Get the adapter for a linked calendar."""
        return self.get(calendar.provider)

    @property
    def providers(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, provider: str) -> bool:
        return provider.lower() in self._adapters
