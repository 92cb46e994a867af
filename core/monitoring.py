import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import prometheus_client as prom
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CollectorRegistry

from core.errors import AllBackendsExhausted

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Mirrors orchestrator usage metrics into Prometheus collectors.

    Each exporter owns its CollectorRegistry so several orchestrators (or
    tests) never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.metrics = {
            'attempts': prom.Counter(
                'ai_attempts_total', 'Backend attempts by outcome', ['backend', 'outcome'],
                registry=self.registry,
            ),
            'latency': prom.Histogram(
                'ai_attempt_latency_seconds', 'Backend attempt latency', ['backend'],
                registry=self.registry,
            ),
            'cache_hits': prom.Counter('ai_cache_hits_total', 'Queries answered from cache', registry=self.registry),
            'fallbacks': prom.Counter('ai_fallbacks_total', 'Answers served by a tier below 1', registry=self.registry),
        }

    def observe_attempt(self, backend: str, latency_ms: float, success: bool) -> None:
        outcome = 'success' if success else 'error'
        self.metrics['attempts'].labels(backend=backend, outcome=outcome).inc()
        self.metrics['latency'].labels(backend=backend).observe(latency_ms / 1000.0)

    def observe_cache_hit(self) -> None:
        self.metrics['cache_hits'].inc()

    def observe_fallback(self) -> None:
        self.metrics['fallbacks'].inc()

    def render(self) -> bytes:
        return prom.generate_latest(self.registry)


def _status_to_dict(status) -> Dict[str, Any]:
    return {
        'backend': status.backend.value,
        'available_now': status.available_now,
        'requests_used_in_window': status.requests_used_in_window,
        'limit': status.limit,
    }


def create_app(orchestrator=None, exporter: Optional[PrometheusExporter] = None) -> FastAPI:
    """HTTP surface over one Orchestrator: queries plus operational endpoints."""
    from ai.adapters import Orchestrator, QueryRequest, QueryResponse

    if orchestrator is None:
        orchestrator = Orchestrator()
    if exporter is None:
        exporter = orchestrator.metrics.exporter or PrometheusExporter()
    orchestrator.metrics.exporter = exporter

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await orchestrator.start()
        try:
            yield
        finally:
            await orchestrator.dispose()

    app = FastAPI(title="AI Query Orchestrator", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    @app.post('/v1/query', response_model=QueryResponse)
    async def query(request: QueryRequest):
        try:
            return await orchestrator.query(request)
        except AllBackendsExhausted as e:
            logger.warning(f"Answering 503: {e}")
            return JSONResponse(
                status_code=503,
                content={'error': str(e), 'failures': e.failures},
            )

    @app.get('/v1/metrics')
    async def usage_metrics():
        return orchestrator.get_metrics().to_dict()

    @app.post('/v1/metrics/reset', status_code=204)
    async def reset_metrics():
        orchestrator.reset_metrics()

    @app.get('/v1/cache')
    async def cache_stats():
        return {'size': orchestrator.get_cache_stats().size}

    @app.delete('/v1/cache', status_code=204)
    async def clear_cache():
        await orchestrator.clear_cache()

    @app.get('/v1/providers')
    async def provider_status():
        return [_status_to_dict(s) for s in orchestrator.get_provider_status()]

    @app.get('/health')
    async def health_check():
        statuses = orchestrator.get_provider_status()
        if not any(s.available_now for s in statuses):
            raise HTTPException(status_code=503, detail='all backends rate limited')
        return {'status': 'OK', 'backends': [s.backend.value for s in statuses]}

    @app.get('/metrics')
    async def prometheus_metrics():
        return PlainTextResponse(exporter.render(), media_type=prom.CONTENT_TYPE_LATEST)

    return app
