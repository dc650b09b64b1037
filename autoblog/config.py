"""
Application configuration management using Pydantic Settings.

Every setting can be overridden via a .env file or environment variables
and is validated when AppConfig is constructed.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration loaded from environment variables.

    Nothing here holds live connections; JobRuntime turns a config into
    the store, clients and worker pools.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== LLM =====
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None,
        description="Anthropic API key used for drafting, SEO and FAQ generation"
    )

    MODEL_NAME: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for the blog draft"
    )

    METADATA_MODEL_NAME: Optional[str] = Field(
        default=None,
        description="Model used for SEO metadata and FAQ extraction (defaults to MODEL_NAME)"
    )

    TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for the draft"
    )

    MAX_TOKENS: int = Field(
        default=16000,
        ge=256,
        le=64000,
        description="Upper bound on draft output tokens; each draft asks for 1.5 tokens per requested word up to this"
    )

    LLM_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Timeout applied to every text-generation call"
    )

    # ===== WordPress =====
    WORDPRESS_URL: Optional[str] = Field(
        default=None,
        description="Base URL of the WordPress site, e.g. https://blog.example.com"
    )

    WORDPRESS_USERNAME: Optional[str] = Field(
        default=None,
        description="WordPress user for application-password auth"
    )

    WORDPRESS_APP_PASSWORD: Optional[str] = Field(
        default=None,
        description="WordPress application password"
    )

    WORDPRESS_TOKEN: Optional[str] = Field(
        default=None,
        description="Pre-issued bearer token; takes precedence over username/password"
    )

    WORDPRESS_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every WordPress REST call"
    )

    # ===== Job Store =====
    JOB_DB_PATH: str = Field(
        default="autoblog_jobs.db",
        description="SQLite file holding job records"
    )

    Storage_Path: Optional[str] = Field(
        default=None,
        alias="STORAGE_PATH",
        description="Persistent volume mount; when set, the job DB lives inside it"
    )

    JOB_RETENTION_DAYS: int = Field(
        default=30,
        ge=1,
        description="Terminal jobs older than this are removed by cleanup"
    )

    # ===== Worker Pools =====
    GENERATION_CONCURRENCY: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Simultaneous content-generation jobs"
    )

    GENERATION_RATE_LIMIT_MAX: int = Field(
        default=10,
        ge=1,
        description="Max content-generation starts per rate window"
    )

    GENERATION_RATE_LIMIT_WINDOW_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Length of the sliding rate window for content generation"
    )

    PUBLISH_CONCURRENCY: int = Field(
        default=1,
        ge=1,
        le=8,
        description="Simultaneous publishing jobs (1 keeps WordPress writes serialized)"
    )

    JOB_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Execution attempts per job before it is marked failed"
    )

    JOB_BACKOFF_BASE_SECONDS: float = Field(
        default=5.0,
        ge=0,
        description="First retry delay; doubles on each further attempt"
    )

    JOB_BACKOFF_MAX_SECONDS: float = Field(
        default=300.0,
        ge=0,
        description="Cap on the retry delay"
    )

    WORKER_POLL_INTERVAL: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between dequeue ticks"
    )

    ENABLE_WORKERS: bool = Field(
        default=True,
        description="Run the worker pools inside the web process (disable when a separate worker runs)"
    )

    @field_validator("ENABLE_WORKERS", "DEBUG", mode="before")
    @classmethod
    def parse_bool_string(cls, v):
        """Parse boolean from string values (platform env vars are strings)."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return False

    # ===== Application Settings =====
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment mode: development or production"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable auto-reload and verbose logging"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="API server host"
    )

    API_PORT: int = Field(
        default=4000,
        ge=1024,
        le=65535,
        description="API server port"
    )

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # ===== Computed Properties =====

    @property
    def job_db_path(self) -> str:
        """Job DB path, placed on persistent storage when STORAGE_PATH is set."""
        if self.Storage_Path:
            return str(Path(self.Storage_Path) / Path(self.JOB_DB_PATH).name)
        return self.JOB_DB_PATH

    @property
    def metadata_model_name(self) -> str:
        return self.METADATA_MODEL_NAME or self.MODEL_NAME

    @property
    def allowed_origins_list(self) -> list[str]:
        if self.ALLOWED_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def wordpress_configured(self) -> bool:
        """Check if WordPress credentials are complete."""
        if not self.WORDPRESS_URL:
            return False
        return bool(
            self.WORDPRESS_TOKEN
            or (self.WORDPRESS_USERNAME and self.WORDPRESS_APP_PASSWORD)
        )

    @property
    def llm_configured(self) -> bool:
        return self.ANTHROPIC_API_KEY is not None
