"""
Configuration management for Taqvo Community.

This module provides centralized configuration management using environment variables
and default values. Configuration is loaded from environment variables with
fallbacks to sensible defaults for development.
"""

from typing import Dict, Any, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from the project directory
project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
load_dotenv(env_file)

# Also try to load from the current working directory
load_dotenv()


class SupabaseConfig(BaseSettings):
    """Supabase (PostgREST) connection configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")
    timeout: float = Field(default=10.0, alias="SUPABASE_TIMEOUT")
    read_retries: int = Field(default=2, alias="SUPABASE_READ_RETRIES")
    leaderboard_limit: int = Field(default=20, alias="LEADERBOARD_LIMIT")

    @property
    def is_configured(self) -> bool:
        """Whether both the project URL and anon key are present."""
        return bool(self.url and self.anon_key)

    @property
    def rest_url(self) -> str:
        """Get the PostgREST base URL."""
        return f"{(self.url or '').rstrip('/')}/rest/v1"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format (anon key masked)."""
        return {
            'url': self.url,
            'anon_key': '***' if self.anon_key else None,
            'timeout': self.timeout,
            'read_retries': self.read_retries,
            'leaderboard_limit': self.leaderboard_limit,
        }


class StorageConfig(BaseSettings):
    """Local state storage configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    state_dir: str = Field(default="~/.taqvo", alias="TAQVO_STATE_DIR")
    state_file_name: str = Field(default="community_state.json")

    @property
    def state_path(self) -> Path:
        """Get the state directory as Path object."""
        return Path(self.state_dir).expanduser()

    @property
    def state_file(self) -> Path:
        """Get the key/value state file path."""
        return self.state_path / self.state_file_name


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore"  # Allow extra fields in env file to be ignored
    )

    # Runtime
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    # Configuration sections
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get complete application settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None


def get_supabase_config() -> SupabaseConfig:
    """Get Supabase configuration."""
    return get_settings().supabase


def get_storage_config() -> StorageConfig:
    """Get local storage configuration."""
    return get_settings().storage
