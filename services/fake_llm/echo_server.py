from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict, Iterator
import time
import json
import uuid


app = FastAPI(title="Fake Echo LLM (OpenAI, Anthropic and Gemini wire formats)", version="0.1.0")

# Magic prompts that make the fake upstream misbehave on purpose.
EMPTY_MARKER = "__EMPTY__"
MALFORMED_MARKER = "__MALFORMED__"
ERROR_MARKER = "__ERROR__"
STREAM_ERROR_MARKER = "__STREAM_ERROR__"

MALFORMED_FRAME = "data: {not json\n\n"


# ---- Schemas (minimal) ----
class ChatMessage(BaseModel):
    role: str
    content: str


class ChatCompletionsIn(BaseModel):
    model: Optional[str] = Field(default="echo-001")
    messages: List[ChatMessage]
    stream: Optional[bool] = False


class AnthropicMessagesIn(BaseModel):
    model: str
    max_tokens: int
    messages: List[ChatMessage]
    system: Optional[str] = None
    stream: Optional[bool] = False


class GeminiPart(BaseModel):
    text: str


class GeminiContent(BaseModel):
    role: Optional[str] = None
    parts: List[GeminiPart]


class GeminiGenerateIn(BaseModel):
    contents: List[GeminiContent]
    systemInstruction: Optional[GeminiContent] = None
    generationConfig: Optional[Dict[str, Any]] = None


def _split_stream_chunks(text: str) -> List[str]:
    if not text:
        return []
    if len(text) <= 12:
        return [text]
    chunk_size = max(1, len(text) // 3)
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def _echo_text(last_user: str) -> str:
    return "" if EMPTY_MARKER in last_user else last_user


def _sse(payload: Any, event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _error_body(message: str) -> Dict[str, Any]:
    return {"error": {"message": message, "type": "invalid_request_error"}}


def _last_user(messages: List[ChatMessage]) -> str:
    last = next((m.content for m in reversed(messages) if m.role == "user"), None)
    if last is None:
        last = "\n\n".join(m.content for m in messages)
    return last


# ---- OpenAI ----
def _iter_chat_completions_sse(resp_id: str, model: str, prompt: str) -> Iterator[str]:
    now = int(time.time())
    content = _echo_text(prompt)
    for piece in _split_stream_chunks(content):
        if MALFORMED_MARKER in prompt:
            yield MALFORMED_FRAME
        yield _sse({
            "id": resp_id,
            "object": "chat.completion.chunk",
            "created": now,
            "model": model,
            "choices": [{"index": 0, "delta": {"content": piece}, "finish_reason": None}],
        })
        if STREAM_ERROR_MARKER in prompt:
            yield _sse(_error_body("upstream overloaded"))
            return

    yield _sse({
        "id": resp_id,
        "object": "chat.completion.chunk",
        "created": now,
        "model": model,
        "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
    })
    yield "data: [DONE]\n\n"


@app.post("/v1/chat/completions")
def chat_completions(inp: ChatCompletionsIn, authorization: Optional[str] = Header(None)):
    if not authorization or not authorization.lower().startswith("bearer "):
        return JSONResponse(_error_body("Missing bearer token"), status_code=401)
    prompt = _last_user(inp.messages)
    if ERROR_MARKER in prompt:
        return JSONResponse(_error_body("The model does not exist"), status_code=404)

    resp_id = f"chatcmpl-{uuid.uuid4().hex[:12]}"
    model = inp.model or "echo-001"
    if inp.stream:
        return StreamingResponse(
            _iter_chat_completions_sse(resp_id=resp_id, model=model, prompt=prompt),
            media_type="text/event-stream",
        )
    return {
        "id": resp_id,
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": _echo_text(prompt)},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


# ---- Anthropic ----
def _iter_messages_sse(msg_id: str, model: str, prompt: str) -> Iterator[str]:
    yield _sse(
        {"type": "message_start", "message": {"id": msg_id, "type": "message", "role": "assistant", "model": model, "content": []}},
        event="message_start",
    )
    yield _sse({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}, event="content_block_start")
    yield _sse({"type": "ping"}, event="ping")
    for piece in _split_stream_chunks(_echo_text(prompt)):
        if MALFORMED_MARKER in prompt:
            yield "event: content_block_delta\n" + MALFORMED_FRAME
        yield _sse(
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": piece}},
            event="content_block_delta",
        )
        if STREAM_ERROR_MARKER in prompt:
            yield _sse({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}, event="error")
            return
    yield _sse({"type": "content_block_stop", "index": 0}, event="content_block_stop")
    yield _sse({"type": "message_delta", "delta": {"stop_reason": "end_turn"}}, event="message_delta")
    yield _sse({"type": "message_stop"}, event="message_stop")


@app.post("/v1/messages")
def messages(inp: AnthropicMessagesIn, x_api_key: Optional[str] = Header(None)):
    if not x_api_key:
        return JSONResponse({"type": "error", "error": {"type": "authentication_error", "message": "x-api-key header is required"}}, status_code=401)
    prompt = _last_user(inp.messages)
    if ERROR_MARKER in prompt:
        return JSONResponse({"type": "error", "error": {"type": "not_found_error", "message": f"model: {inp.model}"}}, status_code=404)

    msg_id = f"msg_{uuid.uuid4().hex[:12]}"
    if inp.stream:
        return StreamingResponse(
            _iter_messages_sse(msg_id=msg_id, model=inp.model, prompt=prompt),
            media_type="text/event-stream",
        )
    return {
        "id": msg_id,
        "type": "message",
        "role": "assistant",
        "model": inp.model,
        "content": [{"type": "text", "text": _echo_text(prompt)}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 0, "output_tokens": 0},
    }


# ---- Gemini ----
def _gemini_chunk(text: str) -> Dict[str, Any]:
    return {"candidates": [{"index": 0, "content": {"role": "model", "parts": [{"text": text}]}}]}


def _iter_generate_sse(prompt: str) -> Iterator[str]:
    for piece in _split_stream_chunks(_echo_text(prompt)):
        if MALFORMED_MARKER in prompt:
            yield MALFORMED_FRAME
        yield _sse(_gemini_chunk(piece))
        if STREAM_ERROR_MARKER in prompt:
            yield _sse({"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}})
            return


def _gemini_prompt(inp: GeminiGenerateIn) -> str:
    user_turns = [c for c in inp.contents if c.role != "model"]
    source = user_turns[-1] if user_turns else inp.contents[-1]
    return "".join(part.text for part in source.parts)


@app.post("/v1beta/models/{model_action}")
def generate_content(inp: GeminiGenerateIn, model_action: str, key: Optional[str] = Query(None), alt: Optional[str] = Query(None)):
    if not key:
        return JSONResponse({"error": {"code": 403, "message": "API key missing", "status": "PERMISSION_DENIED"}}, status_code=403)
    model, _, action = model_action.partition(":")
    prompt = _gemini_prompt(inp)
    if ERROR_MARKER in prompt:
        return JSONResponse({"error": {"code": 404, "message": f"models/{model} is not found", "status": "NOT_FOUND"}}, status_code=404)

    if action == "streamGenerateContent":
        return StreamingResponse(_iter_generate_sse(prompt), media_type="text/event-stream")
    if action == "generateContent":
        return _gemini_chunk(_echo_text(prompt))
    return JSONResponse({"error": {"code": 400, "message": f"unknown action: {action}"}}, status_code=400)


@app.get("/v1/health")
def health():
    return {"status": "ok"}
