"""Adapters layer: provider adapters, caching, rate limiting and the tiered orchestrator.

The public API is **stable** and intentionally minimal.
"""

from __future__ import annotations

from .cache import ResponseCache, make_cache_key
from .metrics import MetricsRecorder, UsageMetrics
from .normalize import normalize_reply, strip_citation_markers
from .orchestrator import AttemptOutcome, Orchestrator, OrchestratorConfig
from .providers import (
    Adapter,
    AdapterReply,
    AdapterRequest,
    BaseProvider,
    CohereProvider,
    GeminiProvider,
    GroqProvider,
    PerplexityProvider,
    create_provider,
)
from .ratelimit import FixedWindowRateLimiter
from .registry import ProviderRegistry
from .schemas import (
    AUTO,
    Backend,
    CacheStats,
    HistoryMessage,
    ProviderStatus,
    QueryRequest,
    QueryResponse,
)

__all__ = [
    "ResponseCache",
    "make_cache_key",
    "MetricsRecorder",
    "UsageMetrics",
    "normalize_reply",
    "strip_citation_markers",
    "AttemptOutcome",
    "Orchestrator",
    "OrchestratorConfig",
    "Adapter",
    "AdapterReply",
    "AdapterRequest",
    "BaseProvider",
    "CohereProvider",
    "GeminiProvider",
    "GroqProvider",
    "PerplexityProvider",
    "create_provider",
    "FixedWindowRateLimiter",
    "ProviderRegistry",
    "AUTO",
    "Backend",
    "CacheStats",
    "HistoryMessage",
    "ProviderStatus",
    "QueryRequest",
    "QueryResponse",
]
