"""Request / response models shared by the orchestrator and its adapters."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "Backend",
    "AUTO",
    "HistoryMessage",
    "QueryRequest",
    "QueryResponse",
    "ProviderStatus",
    "CacheStats",
]

AUTO = "auto"


class Backend(str, Enum):
    """Text-generation backends the orchestrator can route to."""
    PERPLEXITY = "perplexity"
    GROQ = "groq"
    GEMINI = "gemini"
    COHERE = "cohere"


class HistoryMessage(BaseModel):
    """One prior turn of a conversation."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str


class QueryRequest(BaseModel):
    """A natural-language request. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    message: str = Field(..., description="The user's question or instruction")
    context: Optional[str] = Field(None, description="Extra grounding text")
    history: Tuple[HistoryMessage, ...] = Field(default=(), description="Ordered prior turns")
    system_prompt: Optional[str] = Field(None, description="System instruction for the backend")
    preferred_provider: Union[Backend, Literal["auto"]] = Field(
        AUTO, description="Explicit backend, or 'auto' for tiered fallback"
    )

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("message is required")
        return value

    @property
    def explicit_backend(self) -> Optional[Backend]:
        if self.preferred_provider == AUTO:
            return None
        return Backend(self.preferred_provider)


class QueryResponse(BaseModel):
    """Normalized answer returned to the caller."""
    model_config = ConfigDict(frozen=True)

    content: str
    provider: Backend
    model: str
    latency_ms: int = Field(..., ge=0)
    citations: Optional[Tuple[str, ...]] = None
    cached: bool = False
    tier: int = Field(..., ge=1)


@dataclass(frozen=True)
class ProviderStatus:
    """Live rate-limiter view of one backend."""
    backend: Backend
    available_now: bool
    requests_used_in_window: int
    limit: int


@dataclass(frozen=True)
class CacheStats:
    size: int
