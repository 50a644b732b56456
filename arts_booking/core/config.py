"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    
    # Environment
    ENV: str = "dev"
    
    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"
    
    # Database (PostgreSQL in production; SQLite is fine for local dev)
    DATABASE_URL: str = "sqlite:///./arts_booking.db"
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    
    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60  # General API
    RATE_LIMIT_BOOKING: int = 10  # Booking creation / reschedule
    
    # Record a conflict log row for every finding that rejects a booking
    LOG_CONFLICTS_ON_REJECT: bool = True
    
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
    
    @property
    def booking_rate_limit(self) -> str:
        """Limit string for booking write endpoints."""
        return f"{self.RATE_LIMIT_BOOKING}/minute"


settings = Settings()
