from __future__ import annotations

import json
import logging
from typing import Dict, Mapping, Optional

import pydantic
from fastapi import Request
from fastapi.responses import Response

from .adapters import BaseAdapter
from .errors import GatewayError, RateLimitError, ValidationError, error_response
from .models import ChatRequest
from .ratelimit import ClientRateLimiter
from .router import Provider, ProviderRouter

UNKNOWN_CLIENT = "unknown"


def get_client_key(headers: Mapping[str, str]) -> str:
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_CLIENT


def parse_chat_request(raw_body: bytes) -> ChatRequest:
    try:
        body = json.loads(raw_body.decode("utf-8")) if raw_body else None
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    messages = body.get("messages")
    if not messages or not isinstance(messages, list):
        raise ValidationError("Messages array is required")
    if not body.get("model"):
        raise ValidationError("Model is required")
    # An explicit null asks for a buffered reply, only an absent field defaults to streaming.
    if "stream" in body and body["stream"] is None:
        body = dict(body, stream=False)

    try:
        return ChatRequest.model_validate(body)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid request field {location}: {first.get('msg')}")


class ChatDispatcher:
    def __init__(
        self,
        router: ProviderRouter,
        limiter: ClientRateLimiter,
        adapters: Dict[Provider, BaseAdapter],
        logger: Optional[logging.Logger] = None,
    ):
        self._router = router
        self._limiter = limiter
        self._adapters = adapters
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def limiter(self) -> ClientRateLimiter:
        return self._limiter

    async def handle(self, request: Request) -> Response:
        try:
            client_key = get_client_key(request.headers)
            if not self._limiter.allow(client_key):
                raise RateLimitError()

            chat_request = parse_chat_request(await request.body())
            provider = self._router.resolve(chat_request.model)
            adapter = self._adapters[provider]
            return await adapter.call(
                chat_request.messages,
                chat_request.model,
                chat_request.stream,
                chat_request.systemPrompt,
            )
        except GatewayError as exc:
            return error_response(exc)
        except Exception:
            self._logger.exception("chat request failed: path=%s", request.url.path)
            return error_response(GatewayError("Internal server error"))
