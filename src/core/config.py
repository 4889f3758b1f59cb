import os
from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from services.assessment_engine.engine import DEFAULT_CATALOG_PATH

# Load .env file if it exists, for local development
# In production, environment variables should be set directly.
if os.path.exists(".env"):
    from dotenv import load_dotenv
    load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Founder Dependency Assessment API"
    catalog_path: str = DEFAULT_CATALOG_PATH
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Outbound email (Resend HTTP API)
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str = ""
    email_from: str = "Assessment <amber@scaleupsucces.nl>"
    email_internal_recipient: str = "info@scaleupsucces.nl"
    email_timeout_seconds: float = 10.0
    cta_url: str = "https://scaleupsucces.nl/contact/"

    # Rate limiting of the email-sending endpoints
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: int = 60
    rate_limit_paths: List[str] = [
        "/api/v1/assessment/send-results",
        "/api/v1/assessment/submit",
    ]
    redis_url: str = "redis://localhost:6379/0"

    model_config = SettingsConfigDict(env_prefix='ASSESSMENT_')


@lru_cache
def get_settings() -> Settings:
    return Settings()
