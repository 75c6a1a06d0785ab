from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Sequence

import httpx
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..errors import ConfigurationError, UpstreamError, error_response
from ..models import ChatResponse, Message
from ..router import PROVIDER_LABELS, Provider, ProviderRouter
from ..streaming import StreamAdapter, collect_text, iter_canonical_sse, iter_stream_fragments
from ..transport import ProviderTransport, is_sse_response, iter_response_bytes

SSE_HEADERS = {"Cache-Control": "no-cache"}


@dataclass(frozen=True)
class UpstreamRequest:
    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, str]] = None


class BaseAdapter(StreamAdapter):
    provider: Provider

    def __init__(
        self,
        router: ProviderRouter,
        transport: ProviderTransport,
        logger: Optional[logging.Logger] = None,
    ):
        self._router = router
        self._transport = transport
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self.provider]

    @abstractmethod
    def build_request(
        self,
        messages: Sequence[Message],
        model: str,
        stream: bool,
        system_prompt: Optional[str],
        *,
        api_key: str,
        base_url: str,
    ) -> UpstreamRequest:
        raise NotImplementedError

    @abstractmethod
    def extract_text(self, body: Mapping[str, Any]) -> str:
        raise NotImplementedError

    async def call(
        self,
        messages: Sequence[Message],
        model: str,
        stream: bool = True,
        system_prompt: Optional[str] = None,
    ) -> Response:
        try:
            api_key = self._router.require_api_key(self.provider)
        except ConfigurationError as exc:
            self._logger.error("chat provider not configured: provider=%s", self.name)
            return error_response(exc)

        upstream = self.build_request(
            messages,
            model,
            stream,
            system_prompt,
            api_key=api_key,
            base_url=self._router.get_base_url(self.provider),
        )
        try:
            if stream:
                return await self._call_stream(upstream)
            return await self._call_once(upstream)
        except UpstreamError as exc:
            self._logger.error(
                "chat upstream error: provider=%s model=%s status=%s error=%s",
                self.name,
                model,
                exc.upstream_status,
                exc.message,
            )
            return error_response(exc)
        except httpx.HTTPError as exc:
            self._logger.exception("chat upstream request failed: provider=%s model=%s", self.name, model)
            return error_response(UpstreamError(str(exc) or f"{self.label} API error"))

    async def _call_once(self, upstream: UpstreamRequest) -> Response:
        response = await self._transport.post_json(
            upstream.url,
            upstream.headers,
            upstream.payload,
            params=upstream.params,
        )
        if not response.is_success:
            raise UpstreamError(self._error_message(response), upstream_status=response.status_code)

        if is_sse_response(response.headers):
            text = await collect_text(iter_stream_fragments(iter_response_bytes(response), self))
            return JSONResponse(ChatResponse(response=text).model_dump())

        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(f"{self.label} API returned an invalid response", upstream_status=response.status_code)
        if not isinstance(body, dict):
            raise UpstreamError(f"{self.label} API returned an invalid response", upstream_status=response.status_code)

        return JSONResponse(ChatResponse(response=self.extract_text(body)).model_dump())

    async def _call_stream(self, upstream: UpstreamRequest) -> Response:
        response = await self._transport.post_json(
            upstream.url,
            upstream.headers,
            upstream.payload,
            params=upstream.params,
            stream=True,
        )
        if not response.is_success:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise UpstreamError(self._error_message(response), upstream_status=response.status_code)

        return StreamingResponse(
            self._iter_stream_body(response),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    async def _iter_stream_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            fragments = iter_stream_fragments(iter_response_bytes(response), self)
            async for chunk in iter_canonical_sse(fragments, self.name):
                yield chunk
        finally:
            await response.aclose()

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        return self.extract_error_message(body) or f"{self.label} API error"

    @staticmethod
    def extract_error_message(body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        return None
