"""AI provider, model registry and chat models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class AIUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class AIResponse(BaseModel):
    """Provider-neutral completion result."""

    content: str
    usage: AIUsage = Field(default_factory=AIUsage)
    model: str
    finish_reason: str | None = None


class AIModel(BaseModel):
    """An entry of the model registry."""

    id: str | None = None
    provider: str
    model_id: str
    name: str
    max_tokens: int = Field(default=4096, ge=1)
    input_cost: float = Field(default=0.0, ge=0.0, description="USD per 1K input tokens")
    output_cost: float = Field(default=0.0, ge=0.0, description="USD per 1K output tokens")
    capabilities: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_default: bool = False

    model_config = {"from_attributes": True, "protected_namespaces": ()}


class AIModelUpdate(BaseModel):
    name: str | None = None
    max_tokens: int | None = Field(default=None, ge=1)
    input_cost: float | None = Field(default=None, ge=0.0)
    output_cost: float | None = Field(default=None, ge=0.0)
    capabilities: list[str] | None = None
    is_active: bool | None = None
    is_default: bool | None = None


class ChatRequest(BaseModel):
    """Stateless chat completion request."""

    model: str = Field(default="")
    prompt: str | None = None
    messages: list[ChatTurn] | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)


class ChatSessionCreate(BaseModel):
    title: str | None = None
    model_id: str | None = None

    model_config = {"protected_namespaces": ()}


class ChatMessageCreate(BaseModel):
    content: str = Field(..., min_length=1)
    model_id: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)

    model_config = {"protected_namespaces": ()}


class ChatMessageOut(BaseModel):
    id: str
    role: str
    content: str
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatSessionOut(BaseModel):
    id: str
    title: str
    model_id: str | None = None
    created_at: datetime
    updated_at: datetime
    messages: list[ChatMessageOut] = Field(default_factory=list)

    model_config = {"from_attributes": True, "protected_namespaces": ()}
