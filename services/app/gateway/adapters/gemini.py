from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import UpstreamError
from ..models import Message
from ..router import Provider
from ..streaming import SSEEvent, load_frame_json
from .base import BaseAdapter, UpstreamRequest

GENERATION_CONFIG = {
    "temperature": 0.7,
    "maxOutputTokens": 2048,
}


class GeminiAdapter(BaseAdapter):
    provider = Provider.GEMINI

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
        # Gemini calls the assistant side of the conversation "model".
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
        ]
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": dict(GENERATION_CONFIG),
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        if stream:
            url = f"{base_url}/v1beta/models/{model}:streamGenerateContent"
            params = {"alt": "sse", "key": api_key}
        else:
            url = f"{base_url}/v1beta/models/{model}:generateContent"
            params = {"key": api_key}

        return UpstreamRequest(url=url, payload=payload, params=params)

    def extract_text(self, body: Mapping[str, Any]) -> str:
        return self._candidate_text(body) or ""

    def extract_fragment(self, event: SSEEvent) -> Optional[str]:
        payload = load_frame_json(event)
        error_message = self.extract_error_message(payload)
        if error_message:
            raise UpstreamError(error_message)
        return self._candidate_text(payload)

    @staticmethod
    def _candidate_text(body: Mapping[str, Any]) -> Optional[str]:
        # candidates[0].content.parts[].text
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        candidate = candidates[0]
        if not isinstance(candidate, dict):
            return None
        content = candidate.get("content")
        if not isinstance(content, dict):
            return None
        parts = content.get("parts")
        if not isinstance(parts, list):
            return None

        texts: List[str] = []
        for part in parts:
            if not isinstance(part, dict):
                continue
            text_value = part.get("text")
            if isinstance(text_value, str):
                texts.append(text_value)
        return "".join(texts) if texts else None
