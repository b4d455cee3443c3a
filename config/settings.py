"""
Configuration settings for the Artwork Recommender System

Manages all configuration parameters including:
- Database connections
- Redis cache settings
- Bandit and persistence parameters
- Narrative generation
- API and logging settings
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database settings
    database_url: str = Field(
        default="sqlite:///artflow.db",
        description="SQLAlchemy URL for catalogue, profiles and bandit models"
    )

    # Redis settings
    redis_enabled: bool = Field(
        default=False,
        description="Use Redis as the local model cache instead of process memory"
    )
    redis_host: str = Field(default="localhost", description="Redis server host")
    redis_port: int = Field(default=6379, description="Redis server port")
    redis_password: Optional[str] = Field(default=None, description="Redis server password")

    # Contextual Bandit settings
    bandit_alpha: float = Field(
        default=0.3,
        description="Exploration parameter for LinUCB algorithm"
    )
    exploration_ratio: float = Field(
        default=0.2,
        description="Share of each recommendation list labelled as exploration (0-1)"
    )

    # Model persistence settings
    persist_debounce_seconds: float = Field(
        default=5.0,
        description="Quiet period after the last update before a model is persisted"
    )
    model_cache_ttl: int = Field(
        default=3600,
        description="Local model cache time-to-live in seconds"
    )

    # Recommendation settings
    default_limit: int = Field(default=6, description="Recommendations returned when no limit is given")
    max_recommendations: int = Field(default=20, description="Maximum number of recommendations per request")
    candidate_pool_size: int = Field(default=100, description="Artworks pulled from the catalogue per request")
    recent_views_limit: int = Field(default=10, description="Recent views kept in the request context")
    recent_searches_limit: int = Field(default=5, description="Recent searches kept in the request context")

    # Narrative settings
    narrative_provider: str = Field(
        default="template",
        description="Explanation backend: 'template' or 'openai'"
    )
    narrative_model: str = Field(default="gpt-4o-mini", description="Chat model for narratives")
    narrative_timeout_seconds: float = Field(
        default=8.0,
        description="Per-explanation timeout before falling back to default text"
    )

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path")


# Global settings instance
_settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def update_settings(**kwargs) -> Settings:
    """Update settings with new values."""
    global _settings
    if _settings is None:
        _settings = Settings()

    for key, value in kwargs.items():
        if hasattr(_settings, key):
            setattr(_settings, key, value)

    return _settings


# Environment-specific configurations
class DevelopmentSettings(Settings):
    """Development environment settings."""
    debug: bool = True
    log_level: str = "DEBUG"
    database_url: str = "sqlite:///artflow_dev.db"


class ProductionSettings(Settings):
    """Production environment settings."""
    debug: bool = False
    log_level: str = "WARNING"
    redis_enabled: bool = True
    model_cache_ttl: int = 7200


class TestingSettings(Settings):
    """Testing environment settings."""
    debug: bool = True
    log_level: str = "DEBUG"
    database_url: str = "sqlite:///:memory:"
    persist_debounce_seconds: float = 0.05


def get_environment_settings(environment: str = None) -> Settings:
    """Get settings for a specific environment."""
    if environment is None:
        environment = os.getenv("ENVIRONMENT", "development")

    if environment == "production":
        return ProductionSettings()
    elif environment == "testing":
        return TestingSettings()
    else:
        return DevelopmentSettings()


def validate_settings(settings: Settings) -> bool:
    """Validate configuration settings."""
    errors = []

    if "://" not in settings.database_url:
        errors.append("Invalid database URL format")

    if not (0 <= settings.redis_port <= 65535):
        errors.append("Invalid Redis port number")

    if not (0 <= settings.bandit_alpha <= 10):
        errors.append("Bandit alpha must be between 0 and 10")

    if not (0 <= settings.exploration_ratio <= 1):
        errors.append("Exploration ratio must be between 0 and 1")

    if settings.persist_debounce_seconds < 0:
        errors.append("Persist debounce must not be negative")

    if settings.narrative_provider not in ("template", "openai"):
        errors.append("Narrative provider must be 'template' or 'openai'")

    if settings.narrative_timeout_seconds <= 0:
        errors.append("Narrative timeout must be positive")

    if not (1 <= settings.api_port <= 65535):
        errors.append("Invalid API port number")

    if settings.max_recommendations <= 0:
        errors.append("Max recommendations must be positive")

    if not (0 < settings.default_limit <= settings.max_recommendations):
        errors.append("Default limit must be between 1 and max recommendations")

    if settings.candidate_pool_size <= 0:
        errors.append("Candidate pool size must be positive")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True


def configure_logging(settings: Settings):
    """Apply the configured log level and optional log file to the root logger."""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True
    )


# Default configuration for quick setup
DEFAULT_CONFIG = {
    "database_url": "sqlite:///artflow.db",
    "redis_enabled": False,
    "redis_host": "localhost",
    "redis_port": 6379,
    "bandit_alpha": 0.3,
    "exploration_ratio": 0.2,
    "persist_debounce_seconds": 5.0,
    "model_cache_ttl": 3600,
    "default_limit": 6,
    "max_recommendations": 20,
    "candidate_pool_size": 100,
    "narrative_provider": "template",
    "api_host": "0.0.0.0",
    "api_port": 8000,
    "debug": False,
    "log_level": "INFO"
}


def create_default_config_file(filepath: str = ".env"):
    """Create a default configuration file."""
    config_content = []

    for key, value in DEFAULT_CONFIG.items():
        if isinstance(value, str):
            config_content.append(f'{key.upper()}="{value}"')
        else:
            config_content.append(f'{key.upper()}={value}')

    config_content.extend([
        "",
        "# Optional: LLM narratives (requires NARRATIVE_PROVIDER=openai)",
        "# OPENAI_API_KEY=",
        "",
        "# Optional: Environment",
        "# ENVIRONMENT=development"
    ])

    with open(filepath, 'w') as f:
        f.write('\n'.join(config_content))

    print(f"Default configuration file created: {filepath}")


if __name__ == "__main__":
    create_default_config_file()

    settings = get_settings()
    print("Current settings:")
    print(f"Database URL: {settings.database_url}")
    print(f"Redis: {'enabled' if settings.redis_enabled else 'disabled'} ({settings.redis_host}:{settings.redis_port})")
    print(f"Bandit Alpha: {settings.bandit_alpha}")
    print(f"Exploration Ratio: {settings.exploration_ratio}")
    print(f"API Port: {settings.api_port}")

    try:
        validate_settings(settings)
        print("Settings validation: PASSED")
    except ValueError as e:
        print(f"Settings validation: FAILED - {e}")
