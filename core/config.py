import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError

# --- Base Path ---
BASE_DIR = Path(__file__).resolve().parent.parent
logger = logging.getLogger(__name__)

# --- Environment-based Settings ---

class AppSettings(BaseSettings):
    """
    Orchestrator settings loaded from environment variables.
    The .env file is loaded automatically by pydantic-settings.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # --- General & Core ---
    PROVIDERS_CONFIG_PATH: Optional[str] = Field(None, description="Optional: Path to a specific providers YAML file.")

    # --- Cache ---
    CACHE_TTL_SEC: float = Field(300.0, gt=0, description="Maximum age of a cached response.")
    CACHE_INCLUDE_HISTORY: bool = Field(False, description="Add conversation history to the cache fingerprint.")

    # --- Rate limiting & retries ---
    RATE_LIMIT_WINDOW_SEC: float = Field(60.0, gt=0, description="Length of the fixed rate-limit window.")
    MAX_RETRIES_PER_PROVIDER: int = Field(2, ge=0, description="Retries per backend after the first attempt.")
    RETRY_BASE_DELAY_SEC: float = Field(0.5, ge=0, description="Base delay of the exponential backoff.")
    ATTEMPT_TIMEOUT_SEC: Optional[float] = Field(30.0, description="Per-attempt timeout; unset to wait indefinitely.")

# --- YAML-based Configuration Models ---

class ProviderConfig(BaseModel):
    model: str
    rate_limit: int = Field(..., gt=0)
    base_url: Optional[str] = None

class ProvidersConfig(BaseModel):
    tier_order: List[str]
    providers: Dict[str, ProviderConfig]

    @field_validator('tier_order')
    @classmethod
    def _unique_tiers(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("tier_order must name at least one backend")
        if len(set(value)) != len(value):
            raise ValueError("tier_order must not repeat a backend")
        return value

DEFAULT_PROVIDERS = {
    "tier_order": ["perplexity", "groq", "gemini", "cohere"],
    "providers": {
        "perplexity": {"model": "sonar-reasoning-pro", "rate_limit": 50},
        "groq": {"model": "llama-3.1-70b-versatile", "rate_limit": 100},
        "gemini": {"model": "gemini-1.5-flash", "rate_limit": 60},
        "cohere": {"model": "command-r", "rate_limit": 100},
    },
}

# --- Main Config Object ---

class Config:
    """
    A unified configuration object.
    """
    def __init__(self, app: Optional[AppSettings] = None):
        self.app = app or AppSettings()
        self.providers: ProvidersConfig = self._load_providers()

    def _load_providers(self) -> ProvidersConfig:
        if self.app.PROVIDERS_CONFIG_PATH:
            path = Path(self.app.PROVIDERS_CONFIG_PATH)
        else:
            path = BASE_DIR / 'configs' / 'providers.yml'
        if not path.exists():
            logger.info(f"Providers config {path} not found, using built-in defaults")
            return ProvidersConfig.model_validate(DEFAULT_PROVIDERS)
        return load_yaml(path, ProvidersConfig)

def load_yaml(path: Path, model: type[BaseModel]) -> BaseModel:
    """Loads a YAML file and validates it with the given Pydantic model."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Configuration file '{path}' is not valid YAML: {e}") from e
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Configuration file '{path}' failed validation: {e}") from e

# --- Global Config Instance ---
_settings_instance = None

def get_settings() -> Config:
    """
    Returns a singleton instance of the Config object.
    This function controls when the settings are loaded and validated,
    making the application more testable.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Config()
    return _settings_instance

def reset_settings() -> None:
    """Drops the cached Config so the next get_settings() re-reads the environment."""
    global _settings_instance
    _settings_instance = None
