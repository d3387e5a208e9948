"""Application settings using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="coursemarket", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=1, description="Number of workers")
    api_reload: bool = Field(default=True, description="Enable auto-reload")

    # Authentication (tokens are issued by the identity service)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Access token expiration (minutes)"
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="coursemarket", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=10.0, description="Request timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Access engine
    platform_fee_rate: Decimal = Field(
        default=Decimal("0.20"),
        ge=0,
        le=1,
        description="Share of an approved payment kept by the platform",
    )
    capacity_reserve_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a reservation keeps retrying lost compare-and-swaps",
    )
    capacity_backoff_base_ms: float = Field(
        default=2.0, gt=0, description="First retry backoff after a lost swap"
    )
    capacity_backoff_max_ms: float = Field(
        default=50.0, gt=0, description="Upper bound of the jittered retry backoff"
    )
    enrollment_claim_timeout_seconds: int = Field(
        default=120,
        ge=1,
        description="Age after which an unconfirmed enrollment claim is abandoned",
    )
    access_cache_ttl_seconds: int = Field(
        default=300, description="Redis TTL for cached access-grant lookups"
    )
    notification_queue_size: int = Field(
        default=1000, description="Pending dispatches before new ones are dropped"
    )

    # Subscription plans (amounts in cents)
    subscription_monthly_price: int = Field(
        default=2900, description="Monthly plan price (cents)"
    )
    subscription_annual_price: int = Field(
        default=29000, description="Annual plan price (cents)"
    )
    subscription_monthly_days: int = Field(
        default=30, description="Days granted by a monthly plan"
    )
    subscription_annual_days: int = Field(
        default=365, description="Days granted by an annual plan"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    def plan_price(self, plan: str) -> int:
        """Price in cents for a subscription plan."""
        if plan == "annual":
            return self.subscription_annual_price
        return self.subscription_monthly_price

    def plan_days(self, plan: str) -> int:
        """Duration in days granted by a subscription plan."""
        if plan == "annual":
            return self.subscription_annual_days
        return self.subscription_monthly_days


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
