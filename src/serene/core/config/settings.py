"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Serene wellness core configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    serene_log_level: str = "info"

    # Storage (wellness records)
    db_path: str = "~/.serene/wellness.db"

    # Encryption of free-text fields (chat content, stress notes/triggers/symptoms).
    # create_app() refuses to start when empty.
    encryption_key: str = ""

    # Insert the built-in breathing patterns on startup
    seed_default_patterns: bool = True


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
