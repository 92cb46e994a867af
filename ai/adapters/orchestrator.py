"""Tiered multi-provider query orchestrator.

A query is answered from the response cache when possible.  Otherwise an
explicitly requested backend is tried exactly once, or, in ``auto`` mode, the
backends are walked in fixed tier order.  Each backend gets ``max_retries + 1``
attempts with exponential backoff between them before the next tier is tried.
Only total failure reaches the caller, as ``AllBackendsExhausted``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from core.errors import AllBackendsExhausted, ConfigError, ProviderError, RateLimitExceeded
from core.logging import logger
from core.scheduler import MaintenanceScheduler

from .cache import ResponseCache, make_cache_key
from .metrics import MetricsRecorder, UsageMetrics
from .normalize import normalize_reply
from .providers import AdapterReply, AdapterRequest
from .ratelimit import FixedWindowRateLimiter
from .registry import ProviderRegistry
from .schemas import Backend, CacheStats, ProviderStatus, QueryRequest, QueryResponse

__all__ = ["Orchestrator", "OrchestratorConfig", "AttemptOutcome"]

DEFAULT_TIER_ORDER: Tuple[Backend, ...] = (
    Backend.PERPLEXITY,
    Backend.GROQ,
    Backend.GEMINI,
    Backend.COHERE,
)

# Requests per window
DEFAULT_RATE_LIMITS: Dict[Backend, int] = {
    Backend.PERPLEXITY: 50,
    Backend.GROQ: 100,
    Backend.GEMINI: 60,
    Backend.COHERE: 100,
}

CLEANUP_JOB_ID = "response-cache-cleanup"


@dataclass(frozen=True)
class OrchestratorConfig:
    """Construction-time settings; fixed for the lifetime of an Orchestrator."""

    cache_ttl_sec: float = 300.0
    rate_window_sec: float = 60.0
    rate_limits: Mapping[Backend, int] = field(default_factory=lambda: dict(DEFAULT_RATE_LIMITS))
    tier_order: Tuple[Backend, ...] = DEFAULT_TIER_ORDER
    max_retries: int = 2
    retry_base_delay_sec: float = 0.5
    attempt_timeout_sec: Optional[float] = 30.0
    cleanup_interval_sec: Optional[float] = None
    cache_include_history: bool = False

    def __post_init__(self):
        try:
            order = tuple(Backend(b) for b in self.tier_order)
            limits = {Backend(k): int(v) for k, v in self.rate_limits.items()}
        except ValueError as e:
            raise ConfigError(f"Invalid orchestrator configuration: {e}") from e
        if not order:
            raise ConfigError("tier_order must name at least one backend")
        if len(set(order)) != len(order):
            raise ConfigError("tier_order must not repeat a backend")
        missing = [b.value for b in order if b not in limits]
        if missing:
            raise ConfigError(f"No rate limit configured for: {', '.join(missing)}")
        if any(v <= 0 for v in limits.values()):
            raise ConfigError("rate limits must be positive")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.cache_ttl_sec <= 0 or self.rate_window_sec <= 0:
            raise ConfigError("cache TTL and rate window must be positive")
        object.__setattr__(self, "tier_order", order)
        object.__setattr__(self, "rate_limits", MappingProxyType(limits))

    @property
    def attempts_per_backend(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, config) -> "OrchestratorConfig":
        """Build from a ``core.config.Config``."""
        app = config.app
        providers = config.providers
        return cls(
            cache_ttl_sec=app.CACHE_TTL_SEC,
            rate_window_sec=app.RATE_LIMIT_WINDOW_SEC,
            rate_limits={name: p.rate_limit for name, p in providers.providers.items()},
            tier_order=tuple(providers.tier_order),
            max_retries=app.MAX_RETRIES_PER_PROVIDER,
            retry_base_delay_sec=app.RETRY_BASE_DELAY_SEC,
            attempt_timeout_sec=app.ATTEMPT_TIMEOUT_SEC,
            cache_include_history=app.CACHE_INCLUDE_HISTORY,
        )


@dataclass
class AttemptOutcome:
    """Result of one adapter attempt; failures are values, not exceptions."""

    ok: bool
    response: Optional[QueryResponse] = None
    error: Optional[str] = None
    latency_ms: int = 0
    rate_limited: bool = False


class Orchestrator:
    """Long-lived query service. Create one per process (or per test)."""

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        registry: Optional[ProviderRegistry] = None,
        *,
        metrics: Optional[MetricsRecorder] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if registry is None:
            from core.config import get_settings

            settings = get_settings()
            config = config or OrchestratorConfig.from_settings(settings)
            registry = ProviderRegistry.from_settings(settings)
        self.config = config or OrchestratorConfig()
        self.registry = registry
        self.registry.require(self.config.tier_order)

        self._clock = clock
        self._sleep = sleep
        self.cache = ResponseCache(self.config.cache_ttl_sec, clock=clock)
        self.rate_limiter = FixedWindowRateLimiter(
            self.config.rate_limits, self.config.rate_window_sec, clock=clock
        )
        self.metrics = metrics or MetricsRecorder()
        self._scheduler: Optional[MaintenanceScheduler] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Schedule periodic cache cleanup on the running event loop."""
        if self._scheduler is None:
            self._scheduler = MaintenanceScheduler()
            interval = self.config.cleanup_interval_sec or self.config.cache_ttl_sec
            self._scheduler.add_interval_job(self.cache.cleanup, interval, CLEANUP_JOB_ID)
        await self._scheduler.start()
        logger.info("Orchestrator started")

    async def dispose(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.shutdown()
            self._scheduler = None
        logger.info("Orchestrator disposed")

    async def __aenter__(self) -> "Orchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def query(self, request: QueryRequest) -> QueryResponse:
        cache_key = make_cache_key(request, self.config.cache_include_history)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            self.metrics.record_cache_hit()
            logger.info("Cache hit for query")
            self._log_query(request, cached, None)
            return cached

        backend = request.explicit_backend
        if backend is not None:
            return await self._query_explicit(backend, request, cache_key)
        return await self._query_tiers(request, cache_key)

    def get_metrics(self) -> UsageMetrics:
        return self.metrics.snapshot()

    def reset_metrics(self) -> None:
        self.metrics.reset()

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(size=self.cache.size())

    async def clear_cache(self) -> None:
        await self.cache.clear()
        logger.info("Cache cleared")

    def get_provider_status(self) -> List[ProviderStatus]:
        return self.rate_limiter.status(self.config.tier_order)

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------
    async def _query_explicit(self, backend: Backend, request: QueryRequest, cache_key: str) -> QueryResponse:
        if backend not in self.config.tier_order:
            error = "backend is not enabled"
            self._log_query(request, None, error)
            raise AllBackendsExhausted({backend.value: error})

        tier = self.config.tier_order.index(backend) + 1
        outcome = await self._attempt(backend, request, tier)
        if not outcome.ok:
            logger.error(f"{backend.value} failed after {outcome.latency_ms}ms: {outcome.error}")
            self._log_query(request, None, outcome.error)
            raise AllBackendsExhausted({backend.value: outcome.error})

        await self.cache.set(cache_key, outcome.response)
        self._log_query(request, outcome.response, None)
        return outcome.response

    async def _query_tiers(self, request: QueryRequest, cache_key: str) -> QueryResponse:
        failures: Dict[str, str] = {}

        for index, backend in enumerate(self.config.tier_order):
            tier = index + 1
            for attempt in range(self.config.attempts_per_backend):
                logger.info(f"Trying {backend.value} (tier {tier}, attempt {attempt + 1})")
                outcome = await self._attempt(backend, request, tier)

                if outcome.ok:
                    await self.cache.set(cache_key, outcome.response)
                    if tier > 1:
                        logger.info(f"Fallback to tier {tier} ({backend.value}) successful")
                    self._log_query(request, outcome.response, None)
                    return outcome.response

                if outcome.rate_limited:
                    logger.warning(f"{backend.value} attempt {attempt + 1} refused: {outcome.error}")
                else:
                    logger.warning(
                        f"{backend.value} attempt {attempt + 1} failed after {outcome.latency_ms}ms: {outcome.error}"
                    )
                if attempt < self.config.max_retries:
                    await self._sleep(self._backoff(attempt))
                else:
                    failures[backend.value] = outcome.error

        logger.error(f"All AI providers failed: {failures}")
        self._log_query(request, None, "all backends exhausted")
        raise AllBackendsExhausted(failures)

    async def _attempt(self, backend: Backend, request: QueryRequest, tier: int) -> AttemptOutcome:
        if not self.rate_limiter.try_consume(backend):
            refused = RateLimitExceeded(backend.value, self.rate_limiter.limit_for(backend))
            return AttemptOutcome(ok=False, error=str(refused), rate_limited=True)

        started = self._clock()
        try:
            reply = await self._invoke(backend, request)
        except asyncio.TimeoutError:
            error = f"timed out after {self.config.attempt_timeout_sec}s"
        except ProviderError as e:
            error = e.message
        except Exception as e:
            # Any other exception from an adapter is still just a failed attempt.
            logger.error(f"{backend.value} adapter raised {type(e).__name__}", exc_info=True)
            error = str(e) or type(e).__name__
        else:
            content, citations = normalize_reply(backend, reply.content, reply.citations)
            if content:
                latency_ms = self._elapsed_ms(started)
                response = QueryResponse(
                    content=content,
                    provider=backend,
                    model=self.registry.model_for(backend),
                    latency_ms=latency_ms,
                    citations=citations,
                    cached=False,
                    tier=tier,
                )
                self.metrics.record(backend, latency_ms, True, tier > 1)
                return AttemptOutcome(ok=True, response=response, latency_ms=latency_ms)
            # Nothing left once citation markers are stripped.
            error = "empty response"

        latency_ms = self._elapsed_ms(started)
        self.metrics.record(backend, latency_ms, False, False)
        return AttemptOutcome(ok=False, error=error, latency_ms=latency_ms)

    async def _invoke(self, backend: Backend, request: QueryRequest) -> AdapterReply:
        adapter = self.registry.get(backend)
        adapter_request = AdapterRequest(
            message=request.message,
            model=self.registry.model_for(backend),
            context=request.context,
            history=request.history,
            system_prompt=request.system_prompt,
        )
        reply = await asyncio.wait_for(adapter(adapter_request), timeout=self.config.attempt_timeout_sec)
        if not isinstance(reply, AdapterReply) or not reply.content:
            raise ProviderError(backend.value, "empty response")
        return reply

    def _backoff(self, attempt: int) -> float:
        return self.config.retry_base_delay_sec * (2 ** attempt)

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int(round((self._clock() - started) * 1000)))

    def _log_query(self, request: QueryRequest, response: Optional[QueryResponse], error: Optional[str]) -> None:
        message = request.message
        log_data = {
            "message": message[:100] + ("..." if len(message) > 100 else ""),
            "provider": response.provider.value if response else "failed",
            "model": response.model if response else "none",
            "latency": response.latency_ms if response else 0,
            "cached": response.cached if response else False,
            "tier": response.tier if response else 0,
            "error": error,
        }
        if error:
            logger.error(f"Query failed: {log_data}", extra={"query": log_data})
        else:
            logger.info(f"Query completed: {log_data}", extra={"query": log_data})
