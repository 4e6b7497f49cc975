"""Application configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Clinica API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, alias="DB_MAX_OVERFLOW")
    auto_create_schema: bool = Field(
        default=False,
        alias="AUTO_CREATE_SCHEMA",
        description="Create missing tables on startup",
    )

    # Redis
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")
    cache_namespace: str = Field(default="clinica", alias="CACHE_NAMESPACE")

    # Auth0
    auth0_domain: str = Field(..., alias="AUTH0_DOMAIN")
    auth0_audience: str = Field(..., alias="AUTH0_AUDIENCE")
    auth0_algorithms_str: str = Field(default="RS256", alias="AUTH0_ALGORITHMS")
    jwks_cache_ttl: int = Field(default=3600, alias="JWKS_CACHE_TTL")
    # Access-token claim carrying the user's email (custom claims are namespaced)
    auth0_email_claim: str = Field(default="email", alias="AUTH0_EMAIL_CLAIM")

    @property
    def auth0_algorithms(self) -> list[str]:
        """Get accepted token algorithms as a list."""
        return [alg.strip() for alg in self.auth0_algorithms_str.split(",") if alg.strip()]

    @property
    def auth0_issuer(self) -> str:
        """Issuer claim expected in Auth0 access tokens."""
        return f"https://{self.auth0_domain}/"

    # Email (Resend)
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    email_from: str = Field(
        default="Clinica <no-reply@clinica.example.com>",
        alias="EMAIL_FROM",
    )

    # Notification queue
    notification_queue_size: int = Field(default=1000, alias="NOTIFICATION_QUEUE_SIZE")
    notification_max_attempts: int = Field(default=3, alias="NOTIFICATION_MAX_ATTEMPTS")
    # Seconds before the first retry; doubled on each further attempt
    notification_retry_delay: float = Field(default=2.0, alias="NOTIFICATION_RETRY_DELAY")

    # Booking rules
    patient_cancellation_lead_days: int = Field(
        default=7,
        alias="PATIENT_CANCELLATION_LEAD_DAYS",
        description=(
            "Patients may cancel only when the appointment is more than this many days away"
        ),
    )
    clinical_access_includes_cancelled: bool = Field(
        default=True,
        alias="CLINICAL_ACCESS_INCLUDES_CANCELLED",
        description="Whether cancelled appointments still link a physician to a patient record",
    )

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
