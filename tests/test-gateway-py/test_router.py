#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Unit tests for provider routing, request parsing, payload building and health."""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from services.app.gateway import (  # noqa: E402
    AnthropicAdapter,
    ConfigurationError,
    GeminiAdapter,
    Message,
    OpenAIAdapter,
    Provider,
    ProviderRouter,
    ProviderTransport,
    ValidationError,
    build_adapters,
    get_client_key,
    get_upstream_timeout_secs,
    health,
    parse_chat_request,
    select_provider,
)
from services.app.gateway.transport import is_sse_response  # noqa: E402


@pytest.mark.parametrize("model,provider", [
    ("claude-3-5-sonnet-20241022", Provider.ANTHROPIC),
    ("gpt-4", Provider.OPENAI),
    ("gpt-4o-mini", Provider.OPENAI),
    ("gemini-pro", Provider.GEMINI),
    ("models/gemini-1.5-flash", Provider.GEMINI),
    # Prefix rules are checked before the substring rule.
    ("claude-gemini-hybrid", Provider.ANTHROPIC),
    ("gpt-gemini", Provider.OPENAI),
])
def test_select_provider(model, provider):
    assert select_provider(model) is provider


@pytest.mark.parametrize("model", ["unknown-model", "llama-3", "Claude-3", "my-gpt"])
def test_select_provider_unsupported(model):
    with pytest.raises(ValidationError, match="Unsupported model"):
        select_provider(model)


def test_router_base_url_override_and_default():
    router = ProviderRouter(environ={"CHAT_UPSTREAM_OPENAI_BASE_URL": " http://localhost:9000/ "})
    assert router.get_base_url(Provider.OPENAI) == "http://localhost:9000"
    assert router.get_base_url(Provider.GEMINI) == "https://generativelanguage.googleapis.com"


def test_router_credentials():
    router = ProviderRouter(environ={"OPENAI_API_KEY": "sk", "GOOGLE_API_KEY": "   "})
    assert router.require_api_key(Provider.OPENAI) == "sk"
    with pytest.raises(ConfigurationError, match="Google API key not configured"):
        router.require_api_key(Provider.GEMINI)
    assert router.configured_providers() == {"anthropic": False, "openai": True, "google": False}


def test_build_adapters_covers_every_provider():
    router = ProviderRouter(environ={})
    adapters = build_adapters(router, ProviderTransport(timeout_secs=1.0))
    assert set(adapters) == set(Provider)
    assert all(adapter.provider is provider for provider, adapter in adapters.items())


@pytest.mark.parametrize("headers,expected", [
    ({"x-forwarded-for": "203.0.113.1, 10.0.0.2", "x-real-ip": "10.9.9.9"}, "203.0.113.1"),
    ({"x-real-ip": "10.9.9.9"}, "10.9.9.9"),
    ({"x-forwarded-for": " , 10.0.0.2", "x-real-ip": "10.9.9.9"}, "10.9.9.9"),
    ({}, "unknown"),
])
def test_get_client_key(headers, expected):
    assert get_client_key(headers) == expected


def test_parse_chat_request_defaults():
    body = json.dumps({"messages": [{"role": "user", "content": "Hi"}], "model": "gpt-4"}).encode()
    request = parse_chat_request(body)
    assert request.stream is True
    assert request.systemPrompt is None
    assert request.messages == [Message(role="user", content="Hi")]


def test_parse_chat_request_null_stream_is_buffered():
    body = json.dumps({"messages": [{"role": "user", "content": "Hi"}], "model": "gpt-4", "stream": None}).encode()
    assert parse_chat_request(body).stream is False


@pytest.mark.parametrize("raw,message", [
    (b"", "Request body must be a JSON object"),
    (b"[1, 2]", "Request body must be a JSON object"),
    (b"\xff\xfe", "Request body must be valid JSON"),
    (b'{"messages": [{"role": "user", "content": "x"}], "model": ""}', "Model is required"),
])
def test_parse_chat_request_rejects(raw, message):
    with pytest.raises(ValidationError, match=message):
        parse_chat_request(raw)


def test_parse_chat_request_rejects_non_text_content():
    body = json.dumps({"messages": [{"role": "user", "content": ["a"]}], "model": "gpt-4"}).encode()
    with pytest.raises(ValidationError, match="messages.0.content"):
        parse_chat_request(body)


def test_messages_are_immutable():
    message = Message(role="user", content="Hi")
    with pytest.raises(Exception):
        message.content = "changed"


# ============== Payload building ==============

MESSAGES = [
    Message(role="user", content="q1"),
    Message(role="assistant", content="a1"),
    Message(role="user", content="q2"),
]


def _adapter(cls):
    return cls(ProviderRouter(environ={}), ProviderTransport(timeout_secs=1.0))


def test_openai_payload_without_system_prompt():
    upstream = _adapter(OpenAIAdapter).build_request(
        MESSAGES, "gpt-4", True, None, api_key="sk", base_url="https://api.openai.com"
    )
    assert upstream.url == "https://api.openai.com/v1/chat/completions"
    assert upstream.payload["stream"] is True
    assert [m["role"] for m in upstream.payload["messages"]] == ["user", "assistant", "user"]


def test_anthropic_payload_keeps_roles_and_streams():
    upstream = _adapter(AnthropicAdapter).build_request(
        MESSAGES, "claude-3", True, "sys", api_key="ak", base_url="https://api.anthropic.com"
    )
    assert upstream.payload == {
        "model": "claude-3",
        "max_tokens": 4096,
        "messages": [
            {"role": "user", "content": "q1"},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "q2"},
        ],
        "system": "sys",
        "stream": True,
    }


def test_gemini_payload_without_system_prompt():
    upstream = _adapter(GeminiAdapter).build_request(
        MESSAGES, "gemini-pro", False, None, api_key="gk", base_url="https://g"
    )
    assert upstream.url == "https://g/v1beta/models/gemini-pro:generateContent"
    assert upstream.params == {"key": "gk"}
    assert "systemInstruction" not in upstream.payload
    assert [c["role"] for c in upstream.payload["contents"]] == ["user", "model", "user"]


@pytest.mark.parametrize("cls,body,expected", [
    (OpenAIAdapter, {"choices": [{"message": {"content": "Hello!"}}]}, "Hello!"),
    (OpenAIAdapter, {"choices": []}, ""),
    (OpenAIAdapter, {"choices": [{"message": {"content": None}}]}, ""),
    (AnthropicAdapter, {"content": [{"type": "text", "text": "Hey"}]}, "Hey"),
    (AnthropicAdapter, {"content": [{"type": "tool_use", "id": "t"}]}, ""),
    (GeminiAdapter, {"candidates": [{"content": {"parts": [{"text": "Yo"}]}}]}, "Yo"),
    (GeminiAdapter, {}, ""),
])
def test_extract_text(cls, body, expected):
    assert _adapter(cls).extract_text(body) == expected


# ============== Health ==============

def test_health_status_shape():
    fixed = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone(timedelta(hours=2)))
    status = health(ProviderRouter(environ={"ANTHROPIC_API_KEY": "x"}), now=lambda: fixed)
    assert status.model_dump() == {
        "status": "healthy",
        "timestamp": "2026-01-02T01:04:05.678Z",
        "apis": {"anthropic": True, "openai": False, "google": False},
    }


# ============== Transport ==============

@pytest.mark.parametrize("raw,expected", [
    (None, 300.0),
    ("12.5", 12.5),
    ("45", 45.0),
    ("0", 300.0),
    ("-1", 300.0),
    ("abc", 300.0),
])
def test_get_upstream_timeout_secs(raw, expected):
    environ = {} if raw is None else {"CHAT_UPSTREAM_TIMEOUT_SECS": raw}
    assert get_upstream_timeout_secs(environ) == expected


def test_transport_uses_configured_timeout(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHAT_UPSTREAM_TIMEOUT_SECS", "7")
    assert ProviderTransport()._timeout_secs == 7.0
    assert ProviderTransport(timeout_secs=2.0)._timeout_secs == 2.0


@pytest.mark.parametrize("headers,expected", [
    ({"Content-Type": "text/event-stream; charset=utf-8"}, True),
    ({"content-type": "TEXT/EVENT-STREAM"}, True),
    ({"content-type": "application/json"}, False),
    ({}, False),
])
def test_is_sse_response(headers, expected):
    assert is_sse_response(headers) is expected
