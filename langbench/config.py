"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MANIFEST_PATH = "/.well-known/llm.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Benchmark
    benchmark_concurrency: int = Field(default=4, ge=1)
    manifest_path: str = DEFAULT_MANIFEST_PATH
    allow_single_record_modules: bool = False  # Accept bare-object modules

    # Fetch policy (manifest + modules)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch_max_attempts: int = Field(default=3, ge=1)
    fetch_retry_delay_seconds: float = Field(default=0.5, ge=0)

    # Traditional extraction
    extraction_timeout_seconds: float = Field(default=15.0, gt=0)
    user_agent: str = "LangShakeBench/0.1 (+https://langshake.org)"

    # Output
    output_dir: str = "./output"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    try:
        return Settings()
    except Exception as e:
        if "validation" in type(e).__name__.lower():
            raise RuntimeError(
                "Invalid benchmark configuration. Check the BENCHMARK_*, FETCH_* and "
                "EXTRACTION_* environment variables (or .env file)."
            ) from e
        raise
