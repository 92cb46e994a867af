from typing import Dict, Mapping, Optional


class OrchestratorError(Exception):
    """Base exception class for the AI query orchestrator."""
    pass


class ConfigError(OrchestratorError):
    """Raised when there is an error in a configuration file or value."""
    pass


class RateLimitExceeded(OrchestratorError):
    """Raised when a backend's request budget for the current window is spent."""

    def __init__(self, backend: str, limit: int):
        self.backend = backend
        self.limit = limit
        super().__init__(f"{backend} rate limit exceeded ({limit} requests per window)")


class ProviderError(OrchestratorError):
    """Raised when a backend call fails (network, HTTP status or malformed payload)."""

    def __init__(self, backend: str, message: str, status_code: Optional[int] = None):
        self.backend = backend
        self.message = message
        self.status_code = status_code
        super().__init__(f"{backend}: {message}")


class AllBackendsExhausted(OrchestratorError):
    """Raised when no backend could answer a query.

    ``failures`` maps every backend that was tried to its last error message,
    in the order the backends were tried.
    """

    def __init__(self, failures: Mapping[str, str]):
        self.failures: Dict[str, str] = dict(failures)
        tried = "; ".join(f"{name}: {msg}" for name, msg in self.failures.items())
        super().__init__(
            f"AI service unavailable. Tried {len(self.failures)} backend(s): {tried}"
        )

    @property
    def backends(self):
        return list(self.failures)
