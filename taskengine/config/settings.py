"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names.

Example:
    from taskengine.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_iterations = settings.engine.max_iterations
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class ModelSettings(BaseSettings):
    """Oracle model identifier and credentials (OpenAI-compatible endpoint)."""

    model_id: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("MODEL_ID", "MODEL_NAME", "OPENAI_MODEL"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "OPENAI_BASE_URL"),
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        validation_alias=AliasChoices("MODEL_TEMPERATURE"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=(),
    )


class EngineSettings(BaseSettings):
    """Control-loop budgets and context limits.

    - max_iterations: planner invocations per task (1-100, default: 10)
    - max_consecutive_failures: failed steps in a row before the task aborts
    - max_retries: retry budget recorded on every failure record
    - context_char_budget: characters of prior results passed through verbatim
    """

    max_iterations: int = Field(default=10, ge=1, le=100, alias="MAX_ITERATIONS")
    max_consecutive_failures: int = Field(default=3, ge=1, le=20, alias="MAX_CONSECUTIVE_FAILURES")
    max_retries: int = Field(default=2, ge=0, le=10, alias="MAX_RETRIES")
    context_char_budget: int = Field(default=8000, ge=500, alias="CONTEXT_CHAR_BUDGET")
    summary_preview_chars: int = Field(default=300, ge=20, le=2000, alias="SUMMARY_PREVIEW_CHARS")
    raw_chunk_size: int = Field(default=100, ge=1, alias="RAW_CHUNK_SIZE")
    format_step_results: bool = Field(default=True, alias="FORMAT_STEP_RESULTS")
    connection_timeout: float = Field(default=30.0, gt=0, alias="CONNECTION_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ObservabilitySettings(BaseSettings):
    """Tracing and logging configuration."""

    langsmith_project: Optional[str] = Field(default=None, alias="LANGCHAIN_PROJECT")
    langsmith_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LANGCHAIN_API_KEY", "LANGSMITH_API_KEY")
    )
    langsmith_endpoint: Optional[str] = Field(default=None, alias="LANGCHAIN_ENDPOINT")
    tracing_enabled: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")

    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_prompt_max_length: int = Field(default=500, ge=100, le=5000, alias="LOG_PROMPT_MAX_LENGTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing three nested settings groups:
    - model: Oracle model routing and API credentials (ModelSettings)
    - engine: Control-loop budgets (EngineSettings)
    - observability: Tracing and logging (ObservabilitySettings)

    services_config points at the YAML file describing capability services.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    services_config: Optional[str] = Field(default=None, alias="SERVICES_CONFIG")
    model: ModelSettings = Field(default_factory=ModelSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
        populate_by_name=True,
        protected_namespaces=(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
