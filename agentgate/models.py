"""Pydantic models shared across the pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EnforcementMode(str, Enum):
    """How budget breaches are handled."""

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"


class ExecutionType(str, Enum):
    """Kind of provider call an agent performs."""

    CHAT = "chat"
    IMAGE = "image"
    AUDIO = "audio"
    TRANSCRIPTION = "transcription"
    EMBEDDING = "embedding"
    MODERATION = "moderation"


class TokenUsage(BaseModel):
    """Token counts from a provider call."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class ProviderRequest(BaseModel):
    """Normalized request handed to a provider client."""

    agent_type: str
    execution_type: ExecutionType = ExecutionType.CHAT
    input: Any = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    stream: bool = False


class ProviderResponse(BaseModel):
    """What a provider adapter returns.

    Optional fields are left as None by adapters that do not report them;
    nothing downstream checks for capabilities.
    """

    content: Any = None
    model_id: Optional[str] = None
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost: Optional[float] = None
    finish_reason: Optional[str] = None
    segments: Optional[list[dict[str, Any]]] = None
    words: Optional[list[dict[str, Any]]] = None
    language: Optional[str] = None
    duration: Optional[float] = None

    @property
    def tokens(self) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens, output_tokens=self.output_tokens
        )


class Result(BaseModel):
    """Validated result returned to the caller of an agent."""

    model_config = ConfigDict(protected_namespaces=())

    content: Any = None
    model_id: Optional[str] = None
    chosen_model_id: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    cached: bool = False
    attempts_count: int = 1
    attempts: list[dict[str, Any]] = Field(default_factory=list)
    tenant_id: Optional[str] = None
    finish_reason: Optional[str] = None
    segments: Optional[list[dict[str, Any]]] = None
    words: Optional[list[dict[str, Any]]] = None
    language: Optional[str] = None
    duration: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def used_fallback(self) -> bool:
        """Whether a model other than the requested one produced the result."""
        return bool(
            self.chosen_model_id and self.model_id and self.chosen_model_id != self.model_id
        )
