from __future__ import annotations

import os
from typing import Any, AsyncIterator, Mapping, Optional

import httpx

UPSTREAM_TIMEOUT_SECS_ENV = "CHAT_UPSTREAM_TIMEOUT_SECS"
DEFAULT_UPSTREAM_TIMEOUT_SECS = 300.0


def get_upstream_timeout_secs(environ: Optional[Mapping[str, str]] = None) -> float:
    source = environ if environ is not None else os.environ
    raw = source.get(UPSTREAM_TIMEOUT_SECS_ENV, str(int(DEFAULT_UPSTREAM_TIMEOUT_SECS)))
    try:
        value = float(raw)
        if value <= 0:
            return DEFAULT_UPSTREAM_TIMEOUT_SECS
        return value
    except (TypeError, ValueError):
        return DEFAULT_UPSTREAM_TIMEOUT_SECS


class ProviderTransport:
    """Shared async HTTP client for all provider calls."""

    def __init__(self, timeout_secs: Optional[float] = None):
        self._timeout_secs = (
            timeout_secs if timeout_secs is not None else get_upstream_timeout_secs()
        )
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_secs,
                follow_redirects=False,
            )
        return self._client

    async def post_json(
        self,
        url: str,
        headers: Mapping[str, str],
        payload: Any,
        *,
        params: Optional[Mapping[str, str]] = None,
        stream: bool = False,
    ) -> httpx.Response:
        client = await self._get_client()
        request = client.build_request(
            method="POST",
            url=url,
            headers=dict(headers),
            params=params,
            json=payload,
        )
        return await client.send(request, stream=stream)

    async def aclose(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None


async def iter_response_bytes(
    response: httpx.Response,
    chunk_size: int = 8192,
) -> AsyncIterator[bytes]:
    async for chunk in response.aiter_bytes(chunk_size):
        if chunk:
            yield chunk


def is_sse_response(headers: Mapping[str, str]) -> bool:
    content_type = httpx.Headers(headers).get("content-type", "")
    return "text/event-stream" in content_type.lower()
