"""
Centralized configuration management for the pipeline analytics service.
Loads and validates all environment variables.
"""
import os
from typing import List

import pytz


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # Database
        # Database URL with fallback for development
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pipeline_analytics_dev.db")

        # Environment
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

        # Calendar days for daily counters are cut in this zone
        self.REPORTING_TIMEZONE = os.getenv("REPORTING_TIMEZONE", "UTC")

        # Counter write path
        self.METRICS_WRITE_MAX_RETRIES = int(os.getenv("METRICS_WRITE_MAX_RETRIES", "5"))
        self.METRICS_WRITE_BACKOFF_BASE_MS = int(os.getenv("METRICS_WRITE_BACKOFF_BASE_MS", "25"))
        self.METRICS_WRITE_BACKOFF_MAX_MS = int(os.getenv("METRICS_WRITE_BACKOFF_MAX_MS", "1000"))

        # Read path
        self.METRICS_QUERY_TIMEOUT_MS = int(os.getenv("METRICS_QUERY_TIMEOUT_MS", "5000"))

        # Event-id dedupe ledger
        self.EVENT_DEDUPE_ENABLED = os.getenv("EVENT_DEDUPE_ENABLED", "true").lower() in ("true", "1", "yes")
        self.EVENT_DEDUPE_RETENTION_DAYS = int(os.getenv("EVENT_DEDUPE_RETENTION_DAYS", "7"))

        # CORS Configuration
        allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
        self.ALLOWED_ORIGINS: List[str] = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

        # Sentry Error Tracking
        self.SENTRY_DSN = os.getenv("SENTRY_DSN", "")
        self.SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

        # Observability Configuration
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.OBS_REDACT_PII = os.getenv("OBS_REDACT_PII", "true").lower() in ("true", "1", "yes")
        self.OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
        self.OTEL_SERVICE_NAME_API = os.getenv("OTEL_SERVICE_NAME_API", "pipeline-analytics-api")
        self.ENABLE_TRACING = os.getenv("ENABLE_TRACING", "false").lower() in ("true", "1", "yes")

        # Development/Testing Configuration
        self.DEV_MODE = os.getenv("DEV_MODE", "false").lower() in ("true", "1", "yes")
        self.DEV_TEST_COMPANY_ID = os.getenv("DEV_TEST_COMPANY_ID", "dev-test-company")
        self.DEV_TEST_USER_ID = os.getenv("DEV_TEST_USER_ID", "dev-test-user")

        # Validate required settings
        self._validate_settings()

    def _validate_settings(self):
        """Validate settings with environment-aware relaxations."""
        if self.REPORTING_TIMEZONE not in pytz.all_timezones_set:
            raise ValueError(f"REPORTING_TIMEZONE '{self.REPORTING_TIMEZONE}' is not a known timezone")

        if self.METRICS_WRITE_MAX_RETRIES < 0:
            raise ValueError("METRICS_WRITE_MAX_RETRIES must be >= 0")

        if self.is_production:
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must point at a server database in production")
            if self.DEV_MODE:
                raise ValueError("DEV_MODE must be disabled in production")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def reporting_tz(self):
        """pytz zone used to cut calendar days."""
        return pytz.timezone(self.REPORTING_TIMEZONE)


# Global settings instance
settings = Settings()
