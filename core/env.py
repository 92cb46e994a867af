# -*- coding: utf-8 -*-
"""
Unified Environment Variable Loader.

This module loads environment variables from a .env file and exposes the
provider credentials and logging knobs as Python constants. Several backends
are known under more than one variable name, so lookups fall back through a
list of aliases.

Example:
    import core.env
    print(core.env.GROQ_API_KEY)
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file located in the project root
# The search path starts from the current working directory and goes up.
load_dotenv()

def _first(*keys: str, default: str | None = None) -> str | None:
    """
    Return the value of the first environment variable that is set and not empty.

    Args:
        *keys: A sequence of environment variable names to check.
        default: The default value to return if no variable is found.

    Returns:
        The value of the first found environment variable, or the default value.
    """
    for key in keys:
        val = os.getenv(key)
        if val:
            return val
    return default

# --- General & Core ---
LOG_LEVEL: str = _first('LOG_LEVEL', default='INFO')
LOG_FILE: str | None = _first('LOG_FILE')

# --- Provider credentials ---
PERPLEXITY_API_KEY: str | None = _first('PERPLEXITY_API_KEY', 'PPLX_API_KEY')
GROQ_API_KEY: str | None = _first('GROQ_API_KEY')
GEMINI_API_KEY: str | None = _first('GEMINI_API_KEY', 'GOOGLE_API_KEY')
COHERE_API_KEY: str | None = _first('COHERE_API_KEY', 'CO_API_KEY')

API_KEYS = {
    'perplexity': ('PERPLEXITY_API_KEY', 'PPLX_API_KEY'),
    'groq': ('GROQ_API_KEY',),
    'gemini': ('GEMINI_API_KEY', 'GOOGLE_API_KEY'),
    'cohere': ('COHERE_API_KEY', 'CO_API_KEY'),
}


def api_key_for(backend: str) -> str | None:
    """Resolve the API key for *backend* at call time (honours later env changes)."""
    return _first(*API_KEYS.get(backend, ()))
