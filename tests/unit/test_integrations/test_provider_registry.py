"""Tests for ProviderRegistry."""

from unittest.mock import MagicMock

import pytest

from family_calendar.integrations.exceptions import UnsupportedProviderError
from family_calendar.integrations.registry import ProviderRegistry


def make_adapter(tag: str) -> MagicMock:
    adapter = MagicMock()
    adapter.provider = tag
    return adapter


class TestProviderRegistry:
    def test_get_registered_adapter(self):
        google = make_adapter("google")
        registry = ProviderRegistry([google])

        assert registry.get("google") is google
        assert registry.get("Google") is google
        assert "google" in registry

    def test_unknown_provider(self):
        registry = ProviderRegistry([make_adapter("google")])

        with pytest.raises(UnsupportedProviderError, match="outlook"):
            registry.get("outlook")

    def test_for_calendar(self, linked_calendar):
        google = make_adapter("google")
        registry = ProviderRegistry([google])

        assert registry.for_calendar(linked_calendar) is google

    def test_register_replaces(self):
        first, second = make_adapter("google"), make_adapter("google")
        registry = ProviderRegistry([first])
        registry.register(second)

        assert registry.get("google") is second
        assert registry.providers == ["google"]
