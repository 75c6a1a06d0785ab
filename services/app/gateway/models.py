from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[Message] = Field(min_length=1)
    model: str = Field(min_length=1)
    stream: bool = True
    systemPrompt: Optional[str] = None


class ChatResponse(BaseModel):
    response: str


class ErrorResponse(BaseModel):
    error: str


class HealthStatus(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
    apis: Dict[str, bool]
