"""AI Provider Adapters for the text-generation backends."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from core import env
from core.errors import ProviderError
from core.logging import logger

from .schemas import Backend, HistoryMessage


@dataclass
class AdapterRequest:
    """Everything a backend needs to answer one request."""
    message: str
    model: str
    context: Optional[str] = None
    history: Sequence[HistoryMessage] = field(default_factory=tuple)
    system_prompt: Optional[str] = None


@dataclass
class AdapterReply:
    """Raw backend answer, before normalization."""
    content: str
    citations: Optional[List[str]] = None


# Uniform adapter signature. Implementations raise on failure instead of
# returning a degraded reply.
Adapter = Callable[[AdapterRequest], Awaitable[AdapterReply]]


class BaseProvider(ABC):
    """Base class for HTTP backends.

    Owns the round trip (one ``httpx.AsyncClient`` per call) and maps every
    failure to ``ProviderError``; subclasses describe the wire format.
    """

    backend: Backend
    default_base_url: str

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: float = 30.0):
        self.api_key = api_key if api_key is not None else env.api_key_for(self.backend.value)
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def __call__(self, request: AdapterRequest) -> AdapterReply:
        return await self.call(request)

    async def call(self, request: AdapterRequest) -> AdapterReply:
        name = self.backend.value
        if not self.enabled:
            raise ProviderError(name, "missing API key")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._endpoint(request),
                    headers=self._headers(),
                    json=self._build_payload(request),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.error(f"{name} API error: HTTP {status}")
                raise ProviderError(name, f"HTTP {status}", status_code=status) from e
            except httpx.HTTPError as e:
                logger.error(f"{name} transport error: {e!r}")
                raise ProviderError(name, str(e) or type(e).__name__) from e
            except ValueError as e:
                raise ProviderError(name, "response body is not JSON") from e

        try:
            reply = self._parse(data)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(name, f"malformed response ({type(e).__name__}: {e})") from e
        if not reply.content:
            raise ProviderError(name, "empty response")
        return reply

    @abstractmethod
    def _endpoint(self, request: AdapterRequest) -> str:
        pass

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _build_payload(self, request: AdapterRequest) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _parse(self, data: Dict[str, Any]) -> AdapterReply:
        pass

    def _system_text(self, request: AdapterRequest) -> str:
        """System prompt and context folded into one instruction block."""
        parts = []
        if request.system_prompt:
            parts.append(request.system_prompt)
        if request.context:
            parts.append(f"Context:\n{request.context}")
        return "\n\n".join(parts)

    def _convert_messages(self, request: AdapterRequest) -> List[Dict[str, str]]:
        """OpenAI-style message list: system, history, then the new user turn."""
        messages = []
        system = self._system_text(request)
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend({"role": m.role, "content": m.content} for m in request.history)
        messages.append({"role": "user", "content": request.message})
        return messages


class _ChatCompletionsProvider(BaseProvider):
    """Backends speaking the OpenAI ``/chat/completions`` dialect."""

    def _endpoint(self, request: AdapterRequest) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: AdapterRequest) -> Dict[str, Any]:
        return {
            "model": request.model,
            "messages": self._convert_messages(request),
        }

    def _parse(self, data: Dict[str, Any]) -> AdapterReply:
        return AdapterReply(content=data["choices"][0]["message"]["content"])


class PerplexityProvider(_ChatCompletionsProvider):
    """Perplexity Sonar; answers carry inline ``[n]`` markers and a citation list."""

    backend = Backend.PERPLEXITY
    default_base_url = "https://api.perplexity.ai"

    def _parse(self, data: Dict[str, Any]) -> AdapterReply:
        reply = super()._parse(data)
        citations = data.get("citations")
        if citations:
            reply.citations = [str(c) for c in citations]
        return reply


class GroqProvider(_ChatCompletionsProvider):
    backend = Backend.GROQ
    default_base_url = "https://api.groq.com/openai/v1"


class GeminiProvider(BaseProvider):
    """Google Gemini ``generateContent``."""

    backend = Backend.GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def _endpoint(self, request: AdapterRequest) -> str:
        return f"{self.base_url}/models/{request.model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: AdapterRequest) -> Dict[str, Any]:
        system = self._system_text(request)
        contents = []
        for msg in request.history:
            if msg.role == "system":
                system = f"{system}\n\n{msg.content}" if system else msg.content
                continue
            contents.append({
                "role": "model" if msg.role == "assistant" else "user",
                "parts": [{"text": msg.content}],
            })
        contents.append({"role": "user", "parts": [{"text": request.message}]})

        payload: Dict[str, Any] = {"contents": contents}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    def _parse(self, data: Dict[str, Any]) -> AdapterReply:
        parts = data["candidates"][0]["content"]["parts"]
        return AdapterReply(content="".join(p.get("text", "") for p in parts))


class CohereProvider(BaseProvider):
    """Cohere ``/chat`` (v1), which takes the system prompt as a preamble."""

    backend = Backend.COHERE
    default_base_url = "https://api.cohere.ai/v1"

    _ROLES = {"user": "USER", "assistant": "CHATBOT", "system": "SYSTEM"}

    def _endpoint(self, request: AdapterRequest) -> str:
        return f"{self.base_url}/chat"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: AdapterRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "message": request.message,
        }
        if request.history:
            payload["chat_history"] = [
                {"role": self._ROLES[m.role], "message": m.content} for m in request.history
            ]
        system = self._system_text(request)
        if system:
            payload["preamble"] = system
        return payload

    def _parse(self, data: Dict[str, Any]) -> AdapterReply:
        return AdapterReply(content=data["text"])


PROVIDER_CLASSES = {
    Backend.PERPLEXITY: PerplexityProvider,
    Backend.GROQ: GroqProvider,
    Backend.GEMINI: GeminiProvider,
    Backend.COHERE: CohereProvider,
}


# Provider factory
def create_provider(backend, **kwargs) -> BaseProvider:
    """Create a provider instance by backend (enum member or its name)."""
    try:
        backend = Backend(backend.lower() if isinstance(backend, str) else backend)
    except ValueError:
        raise ValueError(f"Unknown provider type: {backend}")
    return PROVIDER_CLASSES[backend](**kwargs)
