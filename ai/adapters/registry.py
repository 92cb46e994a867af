"""Lookup table from backend variant to adapter function and model name."""
from typing import Dict, Iterable, Mapping, Optional

from core.errors import ConfigError
from core.logging import logger

from .providers import Adapter, create_provider
from .schemas import Backend


DEFAULT_MODELS: Dict[Backend, str] = {
    Backend.PERPLEXITY: "sonar-reasoning-pro",
    Backend.GROQ: "llama-3.1-70b-versatile",
    Backend.GEMINI: "gemini-1.5-flash",
    Backend.COHERE: "command-r",
}


class ProviderRegistry:
    """Maps each Backend to the adapter that serves it and the model it asks for."""

    def __init__(
        self,
        adapters: Mapping[Backend, Adapter],
        models: Optional[Mapping[Backend, str]] = None,
    ):
        self._adapters: Dict[Backend, Adapter] = {Backend(k): v for k, v in adapters.items()}
        self._models: Dict[Backend, str] = dict(DEFAULT_MODELS)
        if models:
            self._models.update({Backend(k): v for k, v in models.items()})

    def get(self, backend: Backend) -> Adapter:
        if backend not in self._adapters:
            raise KeyError(f"provider {backend.value} not registered")
        return self._adapters[backend]

    def model_for(self, backend: Backend) -> str:
        return self._models[backend]

    def require(self, order: Iterable[Backend]) -> None:
        """Fail fast when a backend in *order* has no adapter."""
        missing = [b.value for b in order if b not in self._adapters]
        if missing:
            raise ConfigError(f"No adapter registered for: {', '.join(missing)}")

    def __contains__(self, backend) -> bool:
        return backend in self._adapters

    @classmethod
    def from_settings(cls, config) -> "ProviderRegistry":
        """Build the HTTP adapters described by a ``core.config.Config``."""
        adapters: Dict[Backend, Adapter] = {}
        models: Dict[Backend, str] = {}
        timeout = config.app.ATTEMPT_TIMEOUT_SEC or 30.0
        for name, provider_cfg in config.providers.providers.items():
            try:
                backend = Backend(name)
            except ValueError:
                raise ConfigError(f"Unknown provider in configuration: {name}")
            provider = create_provider(backend, base_url=provider_cfg.base_url, timeout=timeout)
            if not provider.enabled:
                logger.warning(f"No API key configured for {name}; its calls will fail")
            adapters[backend] = provider
            models[backend] = provider_cfg.model
        logger.info(f"Registered providers: {', '.join(b.value for b in adapters)}")
        return cls(adapters, models)
