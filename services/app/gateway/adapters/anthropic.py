from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import UpstreamError
from ..models import Message
from ..router import Provider
from ..streaming import SSEEvent, load_frame_json
from .base import BaseAdapter, UpstreamRequest

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4096


class AnthropicAdapter(BaseAdapter):
    provider = Provider.ANTHROPIC

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
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system_prompt:
            payload["system"] = system_prompt
        if stream:
            payload["stream"] = True

        return UpstreamRequest(
            url=f"{base_url}/v1/messages",
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            payload=payload,
        )

    def extract_text(self, body: Mapping[str, Any]) -> str:
        content = body.get("content")
        if not isinstance(content, list):
            return ""
        texts: List[str] = []
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text_value = block.get("text")
            if isinstance(text_value, str):
                texts.append(text_value)
        return "".join(texts)

    def is_terminal(self, event: SSEEvent) -> bool:
        return event.event == "message_stop"

    def extract_fragment(self, event: SSEEvent) -> Optional[str]:
        payload = load_frame_json(event)
        frame_type = payload.get("type")

        if frame_type == "error":
            raise UpstreamError(self.extract_error_message(payload) or f"{self.label} API error")
        if frame_type != "content_block_delta":
            return None

        delta = payload.get("delta")
        if not isinstance(delta, dict) or delta.get("type") != "text_delta":
            return None
        text_value = delta.get("text")
        return text_value if isinstance(text_value, str) else None
