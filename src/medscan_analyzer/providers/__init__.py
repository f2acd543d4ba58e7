"""Provider adapters and their registry."""

from __future__ import annotations

from collections.abc import Callable

from ..core.config import Settings
from ..domain.models import ProviderId
from .base import ProviderAdapter, call_with_retry
from .gemini_adapter import GeminiAdapter
from .openai_adapter import OpenAIAdapter

# Adding a provider means adding one adapter and one entry here.
ADAPTER_FACTORIES: dict[ProviderId, Callable[[Settings], ProviderAdapter]] = {
    ProviderId.OPENAI: OpenAIAdapter.from_settings,
    ProviderId.GEMINI: GeminiAdapter.from_settings,
}


def build_adapters(settings: Settings) -> dict[ProviderId, ProviderAdapter]:
    """Instantiate one adapter per supported provider."""
    return {provider: factory(settings) for provider, factory in ADAPTER_FACTORIES.items()}


__all__ = [
    "ADAPTER_FACTORIES",
    "GeminiAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "build_adapters",
    "call_with_retry",
]
