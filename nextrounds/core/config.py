"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_KEYS = {"", "your_gemini_api_key_here", "your_secret_key_here"}


class Settings(BaseSettings):
    # Supabase (auth + hosted Postgres)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_jwt_secret: str = ""

    # PostgreSQL (Supabase direct connection)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "password"
    postgres_db: str = "postgres"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_version: str = "2024-06-20"
    pro_plan_name: str = "Next Rounds AI - Pro Plan"
    pro_plan_description: str = "Unlimited interview questions and all export formats"
    pro_price_cents: int = 699
    pro_currency: str = "usd"

    # Gemini (OpenAI-compatible endpoint)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_model: str = "gemini-1.5-flash"
    ai_timeout_seconds: float = 60.0

    # Usage limits
    free_monthly_limit: int = 3
    generation_rate_limit_per_hour: int = 10
    max_resume_size_mb: int = 10
    max_job_description_chars: int = 10000
    max_resume_chars: int = 20000

    # Contact form / SMTP
    support_email: str = "nextroundsai@gmail.com"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    contact_rate_limit: int = 3
    contact_rate_window_seconds: int = 300

    # App
    app_url: str = "http://localhost:3000"
    cron_secret: str = ""
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def ai_configured(self) -> bool:
        return self.gemini_api_key not in PLACEHOLDER_KEYS

    @property
    def stripe_configured(self) -> bool:
        return self.stripe_secret_key not in PLACEHOLDER_KEYS

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
