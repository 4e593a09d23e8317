from functools import lru_cache
import os

from pydantic import BaseModel


class Settings(BaseModel):
    secret_key: str = os.getenv("SECRET_KEY", "change-me-in-production")
    admin_secret_key: str = os.getenv("ADMIN_SECRET_KEY", "change-admin-secret-in-production")
    access_token_expire_minutes: int = 60 * 24  # 1 day
    algorithm: str = "HS256"

    # LLM provider
    groq_api_key: str | None = os.getenv("GROQ_API_KEY")
    groq_model: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")

    # Geocoding
    mapbox_access_token: str | None = os.getenv("MAPBOX_ACCESS_TOKEN")

    # Email (Resend)
    resend_api_key: str | None = os.getenv("RESEND_API_KEY")
    email_from: str = os.getenv("EMAIL_FROM", "SailMatch <notifications@sailmatch.app>")
    app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:3000")

    # Rate Limiting Configuration
    ai_rate_limit: int = int(os.getenv("AI_RATE_LIMIT", "30"))  # requests per minute

    # Matching
    default_auto_approval_threshold: int = int(os.getenv("DEFAULT_AUTO_APPROVAL_THRESHOLD", "80"))

    # Background jobs
    enable_scheduler: bool = os.getenv("ENABLE_SCHEDULER", "false").lower() in {"1", "true", "yes"}
    scheduler_timezone: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")


@lru_cache
def get_settings() -> Settings:
    return Settings()
