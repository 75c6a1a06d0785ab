from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import UpstreamError
from ..models import Message
from ..router import Provider
from ..streaming import DONE_SENTINEL, SSEEvent, load_frame_json
from .base import BaseAdapter, UpstreamRequest


class OpenAIAdapter(BaseAdapter):
    provider = Provider.OPENAI

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
        api_messages: List[Dict[str, str]] = []
        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        return UpstreamRequest(
            url=f"{base_url}/v1/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            payload={"model": model, "messages": api_messages, "stream": stream},
        )

    def extract_text(self, body: Mapping[str, Any]) -> str:
        # choices[0].message.content
        choice = self._first_choice(body)
        if choice is None:
            return ""
        message = choice.get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""

    def is_terminal(self, event: SSEEvent) -> bool:
        return event.data.strip() == DONE_SENTINEL

    def extract_fragment(self, event: SSEEvent) -> Optional[str]:
        payload = load_frame_json(event)
        error_message = self.extract_error_message(payload)
        if error_message:
            raise UpstreamError(error_message)

        # choices[0].delta.content
        choice = self._first_choice(payload)
        if choice is None:
            return None
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None

    @staticmethod
    def _first_choice(body: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        return first if isinstance(first, dict) else None
