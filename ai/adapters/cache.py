"""Response cache for the orchestrator.

ResponseCache – in-memory TTL cache keyed by a request *fingerprint*: the
SHA256 of a canonical JSON rendering of the cache-relevant request fields.
Expired entries are evicted lazily on read and in bulk by ``cleanup()``, which
the orchestrator runs on a background timer.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from typing import Callable, Dict, Optional, Tuple

from core.logging import logger

from .schemas import QueryRequest, QueryResponse

__all__ = [
    "ResponseCache",
    "make_cache_key",
]


def make_cache_key(request: QueryRequest, include_history: bool = False) -> str:
    """Deterministic fingerprint of *request*.

    Only message, context and system prompt participate by default, so the
    same question asked with a different preferred provider shares an entry.
    """
    key_data = {
        "message": request.message,
        "context": request.context,
        "systemPrompt": request.system_prompt,
    }
    if include_history:
        key_data["history"] = [[m.role, m.content] for m in request.history]
    stable_string = json.dumps(key_data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(stable_string.encode("utf-8")).hexdigest()


class ResponseCache:
    """asyncio-safe TTL cache for fingerprint → QueryResponse."""

    def __init__(self, ttl_sec: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_sec
        self._clock = clock
        self._store: Dict[str, Tuple[float, QueryResponse]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[QueryResponse]:
        """Return a copy of the stored response marked ``cached=True``, or None."""
        async with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None
            ts, val = entry
            if self._clock() - ts >= self._ttl:
                # expired
                del self._store[key]
                return None
            return val.model_copy(update={"cached": True})

    async def set(self, key: str, value: QueryResponse) -> None:
        async with self._lock:
            self._store[key] = (self._clock(), value)

    async def cleanup(self) -> int:
        """Drop every entry older than the TTL; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, (ts, _) in self._store.items() if now - ts >= self._ttl]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug(f"Response cache cleanup evicted {len(expired)} entries")
        return len(expired)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()

    def size(self) -> int:
        return len(self._store)
