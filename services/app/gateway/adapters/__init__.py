from typing import Dict

from ..router import Provider, ProviderRouter
from ..transport import ProviderTransport
from .anthropic import AnthropicAdapter
from .base import BaseAdapter, UpstreamRequest
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

_ADAPTER_CLASSES = {
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.OPENAI: OpenAIAdapter,
    Provider.GEMINI: GeminiAdapter,
}


def build_adapters(router: ProviderRouter, transport: ProviderTransport) -> Dict[Provider, BaseAdapter]:
    missing = set(Provider) - set(_ADAPTER_CLASSES)
    if missing:
        raise RuntimeError(f"no adapter registered for providers: {sorted(p.value for p in missing)}")
    return {provider: cls(router, transport) for provider, cls in _ADAPTER_CLASSES.items()}


__all__ = [
    "BaseAdapter",
    "UpstreamRequest",
    "AnthropicAdapter",
    "OpenAIAdapter",
    "GeminiAdapter",
    "build_adapters",
]
