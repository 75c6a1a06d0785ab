from __future__ import annotations

import codecs
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional

from .errors import StreamParseError, UpstreamError

DONE_SENTINEL = "[DONE]"

logger = logging.getLogger(__name__)


@dataclass
class SSEEvent:
    data: str
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEParser:
    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> List[SSEEvent]:
        if not chunk:
            return []

        # A trailing "\r" may be the first half of a "\r\n" split across chunks.
        self._buffer += chunk
        pending_cr = self._buffer.endswith("\r")
        if pending_cr:
            self._buffer = self._buffer[:-1]
        self._buffer = self._buffer.replace("\r\n", "\n").replace("\r", "\n")

        events: List[SSEEvent] = []
        while True:
            boundary = self._buffer.find("\n\n")
            if boundary < 0:
                break
            block = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + 2 :]
            event = self._parse_block(block)
            if event is not None:
                events.append(event)

        if pending_cr:
            self._buffer += "\r"
        return events

    def flush(self) -> List[SSEEvent]:
        if not self._buffer:
            return []

        block = self._buffer.replace("\r\n", "\n").replace("\r", "\n")
        self._buffer = ""
        event = self._parse_block(block)
        if event is None:
            return []
        return [event]

    @staticmethod
    def _parse_block(block: str) -> Optional[SSEEvent]:
        data_lines: List[str] = []
        event_name: Optional[str] = None
        event_id: Optional[str] = None
        retry: Optional[int] = None
        has_data = False

        for line in block.split("\n"):
            if not line or line.startswith(":"):
                continue

            if ":" in line:
                field, value = line.split(":", 1)
                if value.startswith(" "):
                    value = value[1:]
            else:
                field, value = line, ""

            if field == "data":
                has_data = True
                data_lines.append(value)
            elif field == "event":
                event_name = value
            elif field == "id":
                event_id = value
            elif field == "retry":
                try:
                    retry = max(0, int(value))
                except ValueError:
                    continue

        # Events without a data field are never dispatched.
        if not has_data:
            return None

        return SSEEvent(
            data="\n".join(data_lines),
            event=event_name,
            id=event_id,
            retry=retry,
        )


def encode_sse_data(data: str) -> bytes:
    lines = [f"data: {line}" for line in data.split("\n")]
    return ("\n".join(lines) + "\n\n").encode("utf-8")


def encode_sse_json(payload: Any) -> bytes:
    return encode_sse_data(json.dumps(payload, ensure_ascii=False))


def load_frame_json(event: SSEEvent) -> dict:
    try:
        payload = json.loads(event.data)
    except ValueError as exc:
        raise StreamParseError(f"invalid JSON frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise StreamParseError("frame payload is not an object")
    return payload


class StreamAdapter(ABC):
    """Turns one vendor's SSE frames into canonical text fragments."""

    name = "unknown"

    @abstractmethod
    def extract_fragment(self, event: SSEEvent) -> Optional[str]:
        """
        Return the text carried by ``event``, or None when it carries none.

        Raises StreamParseError for frames that cannot be decoded and
        UpstreamError for frames that report a vendor-side failure.
        """
        raise NotImplementedError

    def is_terminal(self, event: SSEEvent) -> bool:
        return False


async def iter_sse_events(chunks: AsyncIterator[bytes]) -> AsyncIterator[SSEEvent]:
    parser = SSEParser()
    decoder = codecs.getincrementaldecoder("utf-8")("replace")
    async for chunk in chunks:
        decoded = decoder.decode(chunk)
        if not decoded:
            continue
        for event in parser.feed(decoded):
            yield event
    for event in parser.feed(decoder.decode(b"", final=True)):
        yield event
    for event in parser.flush():
        yield event


async def iter_stream_fragments(
    chunks: AsyncIterator[bytes],
    adapter: StreamAdapter,
) -> AsyncIterator[str]:
    """Yield the non-empty text fragments of an upstream SSE body, in order."""
    skipped = 0
    events = iter_sse_events(chunks)
    try:
        async for event in events:
            if adapter.is_terminal(event):
                break
            try:
                fragment = adapter.extract_fragment(event)
            except StreamParseError:
                skipped += 1
                continue
            if fragment:
                yield fragment
    finally:
        await events.aclose()
        if skipped:
            logger.warning("skipped malformed stream frames: provider=%s count=%d", adapter.name, skipped)


async def iter_canonical_sse(fragments: AsyncIterator[str], provider: str) -> AsyncIterator[bytes]:
    """
    Re-encode text fragments as the gateway's own SSE stream.

    Every fragment becomes ``data: {"content": ...}``. The stream always ends
    with ``data: [DONE]``, also when no fragment arrived or the upstream
    failed part way (in which case an ``{"error": ...}`` frame comes first).
    """
    try:
        async for fragment in fragments:
            yield encode_sse_json({"content": fragment})
    except UpstreamError as exc:
        logger.error("chat stream upstream error: provider=%s error=%s", provider, exc.message)
        yield encode_sse_json({"error": exc.message})
    except Exception:
        logger.exception("chat stream failed: provider=%s", provider)
        yield encode_sse_json({"error": "Stream processing failed"})
    yield encode_sse_data(DONE_SENTINEL)


async def collect_text(fragments: AsyncIterator[str]) -> str:
    parts: List[str] = []
    async for fragment in fragments:
        parts.append(fragment)
    return "".join(parts)
