from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Dict, Mapping, Optional

from .errors import ConfigurationError, ValidationError


class Provider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"


ANTHROPIC_API_KEY_ENV = "ANTHROPIC_API_KEY"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
GOOGLE_API_KEY_ENV = "GOOGLE_API_KEY"

ANTHROPIC_BASE_URL_ENV = "CHAT_UPSTREAM_ANTHROPIC_BASE_URL"
OPENAI_BASE_URL_ENV = "CHAT_UPSTREAM_OPENAI_BASE_URL"
GEMINI_BASE_URL_ENV = "CHAT_UPSTREAM_GEMINI_BASE_URL"

_API_KEY_ENVS: Dict[Provider, str] = {
    Provider.ANTHROPIC: ANTHROPIC_API_KEY_ENV,
    Provider.OPENAI: OPENAI_API_KEY_ENV,
    Provider.GEMINI: GOOGLE_API_KEY_ENV,
}

_BASE_URL_ENVS: Dict[Provider, str] = {
    Provider.ANTHROPIC: ANTHROPIC_BASE_URL_ENV,
    Provider.OPENAI: OPENAI_BASE_URL_ENV,
    Provider.GEMINI: GEMINI_BASE_URL_ENV,
}

_DEFAULT_BASE_URLS: Dict[Provider, str] = {
    Provider.ANTHROPIC: "https://api.anthropic.com",
    Provider.OPENAI: "https://api.openai.com",
    Provider.GEMINI: "https://generativelanguage.googleapis.com",
}

# Names shown to operators in error messages and the health report.
PROVIDER_LABELS: Dict[Provider, str] = {
    Provider.ANTHROPIC: "Anthropic",
    Provider.OPENAI: "OpenAI",
    Provider.GEMINI: "Google",
}

HEALTH_KEYS: Dict[Provider, str] = {
    Provider.ANTHROPIC: "anthropic",
    Provider.OPENAI: "openai",
    Provider.GEMINI: "google",
}


def select_provider(model: str) -> Provider:
    # Order matters: first match wins.
    if model.startswith("claude"):
        return Provider.ANTHROPIC
    if model.startswith("gpt"):
        return Provider.OPENAI
    if "gemini" in model:
        return Provider.GEMINI
    raise ValidationError(f"Unsupported model: {model}")


class ProviderRouter:
    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._environ = environ if environ is not None else os.environ
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    def resolve(self, model: str) -> Provider:
        provider = select_provider(model)
        self._logger.debug("chat route resolved: model=%s provider=%s", model, provider.value)
        return provider

    def get_api_key(self, provider: Provider) -> Optional[str]:
        value = self._environ.get(_API_KEY_ENVS[provider], "").strip()
        return value or None

    def require_api_key(self, provider: Provider) -> str:
        api_key = self.get_api_key(provider)
        if api_key is None:
            raise ConfigurationError(PROVIDER_LABELS[provider])
        return api_key

    def get_base_url(self, provider: Provider) -> str:
        configured = self._environ.get(_BASE_URL_ENVS[provider], "").strip().rstrip("/")
        return configured or _DEFAULT_BASE_URLS[provider]

    def configured_providers(self) -> Dict[str, bool]:
        return {
            HEALTH_KEYS[provider]: self.get_api_key(provider) is not None
            for provider in Provider
        }
