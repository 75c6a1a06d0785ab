"""Multi-provider chat gateway building blocks."""

from .adapters import (
    AnthropicAdapter,
    BaseAdapter,
    GeminiAdapter,
    OpenAIAdapter,
    UpstreamRequest,
    build_adapters,
)
from .dispatcher import ChatDispatcher, get_client_key, parse_chat_request
from .errors import (
    ConfigurationError,
    GatewayError,
    RateLimitError,
    StreamParseError,
    UpstreamError,
    ValidationError,
    error_response,
)
from .health import health
from .models import ChatRequest, ChatResponse, ErrorResponse, HealthStatus, Message
from .ratelimit import ClientRateLimiter
from .router import (
    ANTHROPIC_API_KEY_ENV,
    ANTHROPIC_BASE_URL_ENV,
    GEMINI_BASE_URL_ENV,
    GOOGLE_API_KEY_ENV,
    OPENAI_API_KEY_ENV,
    OPENAI_BASE_URL_ENV,
    Provider,
    ProviderRouter,
    select_provider,
)
from .streaming import (
    SSEEvent,
    SSEParser,
    StreamAdapter,
    collect_text,
    iter_canonical_sse,
    iter_stream_fragments,
)
from .transport import ProviderTransport, get_upstream_timeout_secs

__all__ = [
    "AnthropicAdapter",
    "BaseAdapter",
    "GeminiAdapter",
    "OpenAIAdapter",
    "UpstreamRequest",
    "build_adapters",
    "ChatDispatcher",
    "get_client_key",
    "parse_chat_request",
    "ConfigurationError",
    "GatewayError",
    "RateLimitError",
    "StreamParseError",
    "UpstreamError",
    "ValidationError",
    "error_response",
    "health",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "HealthStatus",
    "Message",
    "ClientRateLimiter",
    "ANTHROPIC_API_KEY_ENV",
    "ANTHROPIC_BASE_URL_ENV",
    "GEMINI_BASE_URL_ENV",
    "GOOGLE_API_KEY_ENV",
    "OPENAI_API_KEY_ENV",
    "OPENAI_BASE_URL_ENV",
    "Provider",
    "ProviderRouter",
    "select_provider",
    "SSEEvent",
    "SSEParser",
    "StreamAdapter",
    "collect_text",
    "iter_canonical_sse",
    "iter_stream_fragments",
    "ProviderTransport",
    "get_upstream_timeout_secs",
]
