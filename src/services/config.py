"""
Loads and handles config from config.yml
Credentials (TTS_API_KEY, STORAGE_ACCESS_KEY, STORAGE_SECRET_KEY) are loaded from .env
"""
import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from core.errors import ConfigurationError
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)


class RetryConfig(BaseModel):
    """Backoff settings shared by outbound calls."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
        )


class Config(BaseModel):
    # Core
    DATABASE_PATH: str = "data/bulletins.db"

    # Content source
    SCRAPER_API_URL: str = "http://localhost:8000"
    SCRAPER_LIMIT: int = 100
    SCRAPER_TIMEOUT: float = 30.0

    # Scoring
    DEFAULT_CONFIDENCE_THRESHOLD: float = 0.6

    # Summarizer (Ollama)
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"
    SUMMARY_MAX_TOKENS: int = 100
    SUMMARY_TEMPERATURE: float = 0.5
    SUMMARY_TIMEOUT: float = 60.0

    # Script
    PROGRAM_NAME: str = "the Hourly News Brief"
    MAX_SCRIPT_CLUSTERS: int = 5

    # TTS
    TTS_ENDPOINT: str = "https://api.yarngpt.com/v1/tts"
    TTS_API_KEY: Optional[str] = None
    TTS_VOICE: str = "Idera"
    TTS_SPEED: float = 1.0
    TTS_TIMEOUT: float = 30.0
    AUDIO_BATCH_SIZE: int = 10

    # Object storage (S3-compatible)
    STORAGE_ENDPOINT: Optional[str] = None
    STORAGE_REGION: str = "auto"
    STORAGE_BUCKET: Optional[str] = None
    STORAGE_PUBLIC_DOMAIN: Optional[str] = None
    STORAGE_PREFIX: str = "broadcasts/"
    STORAGE_ACCESS_KEY: Optional[str] = None
    STORAGE_SECRET_KEY: Optional[str] = None
    STORAGE_TIMEOUT: float = 60.0

    # Outbound calls
    retry: RetryConfig = RetryConfig()
    tts_retry: RetryConfig = RetryConfig(max_attempts=1)


AUDIO_REQUIRED = [
    "TTS_API_KEY",
    "STORAGE_ENDPOINT",
    "STORAGE_BUCKET",
    "STORAGE_PUBLIC_DOMAIN",
    "STORAGE_ACCESS_KEY",
    "STORAGE_SECRET_KEY",
]


def _get_config_path() -> Optional[str]:
    """Get the path to config.yml, handling different working directories."""
    explicit = os.getenv("BULLETIN_CONFIG")
    if explicit:
        if not os.path.exists(explicit):
            raise ConfigurationError(f"BULLETIN_CONFIG points to a missing file: {explicit}")
        return explicit

    # Try relative path first
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    # Try from project root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    return None


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from config.yml and credentials from .env."""
    # Load .env for sensitive credentials
    load_dotenv()

    config_path = path or _get_config_path()
    data: Dict[str, Any] = {}

    if config_path:
        with open(config_path, 'r') as file:
            data = yaml.safe_load(file) or {}
    else:
        logger.warning("No config.yml found, using defaults")

    # Environment wins over the file for any known key
    for key in Config.model_fields:
        if key.isupper() and os.getenv(key):
            data[key] = os.getenv(key)

    try:
        return Config(**data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def missing_settings(config: Config, required: List[str]) -> List[str]:
    return [key for key in required if not getattr(config, key, None)]


def require_audio_credentials(config: Config) -> None:
    """Fail fast when the audio stage cannot run."""
    missing = missing_settings(config, AUDIO_REQUIRED)
    if missing:
        raise ConfigurationError(
            "Missing required settings for audio generation:\n  - "
            + "\n  - ".join(missing)
            + "\n\nSet them in .env or resources/config.yml."
        )
