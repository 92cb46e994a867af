"""Response normalization across backends."""
import re
from typing import FrozenSet, Optional, Tuple

from .schemas import Backend

__all__ = ["strip_citation_markers", "normalize_reply", "CITING_BACKENDS"]

_CITATION_MARKER = re.compile(r"\[\d+\]")

# Backends that embed numbered citation markers such as "[1]" in their prose.
CITING_BACKENDS: FrozenSet[Backend] = frozenset({Backend.PERPLEXITY})


def strip_citation_markers(content: str) -> str:
    return _CITATION_MARKER.sub("", content).strip()


def normalize_reply(
    backend: Backend, content: str, citations=None
) -> Tuple[str, Optional[Tuple[str, ...]]]:
    """Return (content, citations) in the shape every backend shares.

    Markers are removed from the text only; the citation referents are kept
    as-is in the separate tuple.
    """
    if backend in CITING_BACKENDS:
        content = strip_citation_markers(content)
    return content, tuple(citations) if citations else None
