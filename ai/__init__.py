"""AI module: multi-provider query orchestration."""

from ai.adapters import Orchestrator, OrchestratorConfig, QueryRequest, QueryResponse

__all__ = ["Orchestrator", "OrchestratorConfig", "QueryRequest", "QueryResponse", "quick_query"]

# Quick start entry point
async def quick_query(message: str, preferred_provider: str = "auto", **kwargs) -> QueryResponse:
    """
    One-off query through a freshly configured orchestrator.

    Args:
        message: The question to ask
        preferred_provider: Backend name, or "auto" for tiered fallback
        **kwargs: Other QueryRequest fields (context, history, system_prompt)

    Returns:
        The normalized response
    """
    async with Orchestrator() as orchestrator:
        return await orchestrator.query(
            QueryRequest(message=message, preferred_provider=preferred_provider, **kwargs)
        )
