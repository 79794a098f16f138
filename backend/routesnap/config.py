"""
RouteSnap Backend — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
       Fails fast on malformed values instead of at the first scan request.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development. A deployment that
    scans photos MUST set GEMINI_API_KEY; text-only parsing works without it.

    Attributes are grouped by concern for readability.
    """

    # ── Google Gemini (OCR) ───────────────────────────────────────────────
    # What: API key for Google Generative AI (Gemini Vision)
    # Required: only for POST /api/stops/scan
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for route-sheet transcription"
    )

    # Options: gemini-1.5-flash (faster, cheaper), gemini-1.5-pro (handles
    # smudged carbon copies better)
    gemini_model: str = Field(default="gemini-1.5-flash")

    # ── Geocoding ─────────────────────────────────────────────────────────
    # What: Nominatim-compatible search endpoint (GET ?q=...&format=jsonv2)
    geocoder_url: str = Field(default="https://nominatim.openstreetmap.org/search")

    # Nominatim's usage policy requires an identifying User-Agent
    geocoder_user_agent: str = Field(default="routesnap/1.0")

    # Seconds per geocoder request
    geocoder_timeout: float = Field(default=10.0, gt=0, le=60)

    # What: Max in-flight geocoder requests per scan
    # Why low: Public Nominatim allows ~1 request/second
    geocode_concurrency: int = Field(default=2, ge=1, le=32)

    # Comma-separated ISO country codes to bias results, e.g. "us,ca"
    geocoder_country_codes: Optional[str] = Field(default=None)

    # Addresses kept in the per-process geocode cache (least recently used evicted)
    geocoder_cache_size: int = Field(default=2048, ge=1, le=1_000_000)

    # ── Parser Defaults ───────────────────────────────────────────────────
    # Used when an API request or CLI call leaves the flag unset
    parser_strict_status: bool = Field(default=False)
    parser_skip_comments: bool = Field(default=True)
    parser_debug: bool = Field(default=False)

    # ── File Storage ──────────────────────────────────────────────────────
    # What: Scratch directory for uploaded photos while OCR runs
    storage_root: str = Field(default="./storage")

    # Default: 10MB. Valid range: 1MB to 50MB
    max_file_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs (parsed by cors_origins_list)
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Retry Configuration ───────────────────────────────────────────────
    # What: Tenacity retry settings for Gemini and geocoder calls
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: int = Field(default=2, ge=1, le=30)
    retry_max_wait: int = Field(default=10, ge=5, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # After N consecutive OCR failures, stop calling Gemini for M seconds
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=60, ge=10, le=300)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    rate_limit_requests: int = Field(default=100, ge=10, le=10000)
    rate_limit_window: int = Field(default=3600, ge=60, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def geocoder_country_codes_list(self) -> List[str]:
        if not self.geocoder_country_codes:
            return []
        return [code.strip().lower() for code in self.geocoder_country_codes.split(",") if code.strip()]

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Checks each required field and raises ValueError with guidance.
        """
        errors = []
        if not self.gemini_api_key or self.gemini_api_key == "your_gemini_api_key_here":
            errors.append(
                "GEMINI_API_KEY is not set; photo scans will fail. "
                "Get a key at https://aistudio.google.com/app/apikey"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
