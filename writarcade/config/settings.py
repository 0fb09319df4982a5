"""
Configuration management for WritArcade

Loads environment variables and provides engine settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "WritArcade"
    port: int = 3000
    log_level: str = "INFO"
    debug_mode: bool = False
    debug_log_dir: str = "logs/debug"
    debug_api_calls: bool = False  # JSONL log of every LLM call

    # Language model providers (exported to the environment for LiteLLM)
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    # Default model when a request does not name one
    default_model: str = "gpt-4o-mini"

    # Path to models.yaml (None = bundled writarcade/config/models.yaml)
    models_config_path: Optional[str] = None

    # =========================================================================
    # Venice AI image generation
    # Without an API key every image request degrades to "no image"
    # =========================================================================
    venice_api_key: Optional[str] = None
    venice_api_base: str = "https://api.venice.ai/api/v1"

    # Comma-separated list of image backends the synthesizer may select
    image_backends: str = "venice-sd35,qwen-image,hidream,wai-Illustrious"
    image_style: str = "comic_book"
    image_aspect_ratio: str = "landscape"
    image_timeout_seconds: float = 90.0

    # =========================================================================
    # Story pacing and panel structure
    # =========================================================================
    max_panels: int = 5
    narrative_length_unit: str = "sentences"  # "sentences" or "words"
    narrative_min: int = 2
    narrative_max: int = 4
    narrative_timeout_seconds: float = 120.0  # Whole stream deadline
    narrative_chunk_timeout_seconds: float = 30.0  # Max stall between tokens
    history_message_limit: int = 20

    # Structured game generation
    game_generation_max_retries: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_image_backends(self) -> List[str]:
        """Parse the configured image backend list."""
        return [b.strip() for b in self.image_backends.split(",") if b.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
