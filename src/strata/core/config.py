"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: STRATA_
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STRATA_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    storage_backend: Literal["memory", "sqlite"] = Field(
        default="memory", description="Key-value backend (memory or sqlite)"
    )
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="strata.db", description="SQLite database name")

    # Identity
    agent_id: str = Field(default="default", description="Agent identifier for agent-scoped keys")

    # Limits
    max_conversation_length: int = Field(default=50, description="Messages kept per session")
    max_episodes: int = Field(default=1000, description="Episodes kept per agent")

    # Collaborators (empty = disabled, heuristics are used instead)
    llm_model: str = Field(default="", description="LiteLLM model name for summarization")
    llm_api_key: str = Field(default="", description="API key for the summarization model")
    llm_api_base: str = Field(default="", description="Base URL for local/OpenAI-compatible models")
    embedding_model: str = Field(default="", description="LiteLLM embedding model name")

    # Logging
    log_level: str = Field(default="INFO", description="Log level for the strata logger")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
