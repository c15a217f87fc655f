"""Typed settings configuration - single source of truth."""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Text generation
    openai_api_key: SecretStr | None = None
    premium_model: str = "gpt-4o"
    worker_model: str = Field(
        default="gpt-4o-mini", validation_alias=AliasChoices("WORKER_MODEL", "worker_model")
    )
    llm_timeout_ms: int = 60_000
    llm_max_tokens: int = 4000
    llm_temperature: float = 0.2

    # Fan-out
    max_parallel_workers: int = Field(
        default=4,
        gt=0,
        validation_alias=AliasChoices("MAX_PARALLEL_WORKERS", "max_parallel_workers"),
    )
    parallel_by_default: bool = Field(
        default=False,
        validation_alias=AliasChoices("PARALLEL_BY_DEFAULT", "parallel_by_default"),
    )

    # Worker retries (milliseconds)
    worker_retry_count: int = Field(default=1, ge=0)
    retry_backoff_base_ms: int = 1000
    retry_backoff_multiplier: float = 2.0
    retry_backoff_max_ms: int = 5000
    retry_jitter_max_ms: int = 250

    # Quality gates
    strict_coverage: bool = True
    polish_enabled: bool = True
    min_content_chars: int = 50
    max_document_chars: int = 20 * 3000
    section_heading_level: int = Field(default=2, ge=1, le=6)

    # Collaborators
    templates_dir: str = "templates"
    precedents_path: str | None = None
    retriever_max_results: int = 5


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable per-run pipeline configuration.

    Built from Settings once and handed to orchestrator constructors, so tests
    and callers can override values without touching the environment.
    """

    max_parallel_workers: int = 4
    worker_model: str = "gpt-4o-mini"
    parallel_by_default: bool = False
    worker_retry_count: int = 1
    retry_backoff_base_ms: int = 1000
    retry_backoff_multiplier: float = 2.0
    retry_backoff_max_ms: int = 5000
    retry_jitter_max_ms: int = 250
    strict_coverage: bool = True
    polish_enabled: bool = True
    min_content_chars: int = 50
    max_document_chars: int = 20 * 3000
    section_heading_level: int = 2

    def __post_init__(self) -> None:
        if self.max_parallel_workers < 1:
            raise ValueError("max_parallel_workers must be a positive integer")
        if self.worker_retry_count < 0:
            raise ValueError("worker_retry_count must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PipelineConfig":
        """Freeze the pipeline-relevant subset of Settings."""
        s = settings or get_settings()
        return cls(
            max_parallel_workers=s.max_parallel_workers,
            worker_model=s.worker_model,
            parallel_by_default=s.parallel_by_default,
            worker_retry_count=s.worker_retry_count,
            retry_backoff_base_ms=s.retry_backoff_base_ms,
            retry_backoff_multiplier=s.retry_backoff_multiplier,
            retry_backoff_max_ms=s.retry_backoff_max_ms,
            retry_jitter_max_ms=s.retry_jitter_max_ms,
            strict_coverage=s.strict_coverage,
            polish_enabled=s.polish_enabled,
            min_content_chars=s.min_content_chars,
            max_document_chars=s.max_document_chars,
            section_heading_level=s.section_heading_level,
        )
