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
    app_name: str = Field(default="MedTech Health API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Identity provider (hosted auth REST API)
    auth_url: str = Field(..., alias="AUTH_URL")
    auth_anon_key: str = Field(..., alias="AUTH_ANON_KEY")
    auth_jwt_secret: str = Field(..., alias="AUTH_JWT_SECRET")
    auth_jwt_algorithm: str = Field(default="HS256", alias="AUTH_JWT_ALGORITHM")
    auth_jwt_audience: str = Field(default="authenticated", alias="AUTH_JWT_AUDIENCE")
    auth_redirect_url: str = Field(
        default="exp://localhost:8081/--/auth/callback",
        alias="AUTH_REDIRECT_URL",
    )
    password_reset_redirect_url: str = Field(
        default="exp://localhost:8081/--/reset-password",
        alias="PASSWORD_RESET_REDIRECT_URL",
    )
    auth_timeout_seconds: float = Field(default=10.0, alias="AUTH_TIMEOUT_SECONDS")

    # Payment processor (Pesapal v3)
    pesapal_api_url: str = Field(default="https://pay.pesapal.com/v3", alias="PESAPAL_API_URL")
    pesapal_consumer_key: str = Field(..., alias="PESAPAL_CONSUMER_KEY")
    pesapal_consumer_secret: str = Field(..., alias="PESAPAL_CONSUMER_SECRET")
    pesapal_callback_url: str = Field(
        default="exp://localhost:8081/--/payment-callback",
        alias="PESAPAL_CALLBACK_URL",
    )
    pesapal_notification_id: str = Field(
        default="medtech-notification",
        alias="PESAPAL_NOTIFICATION_ID",
    )
    pesapal_currency: str = Field(default="KES", alias="PESAPAL_CURRENCY")
    pesapal_timeout_seconds: float = Field(default=30.0, alias="PESAPAL_TIMEOUT_SECONDS")

    # Booking rules
    default_consultation_fee: float = Field(default=2000, alias="DEFAULT_CONSULTATION_FEE")
    booking_window_days: int = Field(default=14, ge=1, le=90, alias="BOOKING_WINDOW_DAYS")
    time_slots: list[str] = Field(
        default=["09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00"],
        alias="TIME_SLOTS",
        description="Daily catalogue of bookable start times (HH:MM, clinic wall clock)",
    )
    clinic_timezone: str = Field(default="UTC", alias="CLINIC_TIMEZONE")
    payment_reference_prefix: str = Field(default="MEDTECH", alias="PAYMENT_REFERENCE_PREFIX")
    # Pending bookings older than this are cancelled by scripts/expire_bookings.py
    provisional_booking_ttl_minutes: int = Field(
        default=60,
        alias="PROVISIONAL_BOOKING_TTL_MINUTES",
    )

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:8081",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
