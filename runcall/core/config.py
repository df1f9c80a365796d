from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    PUBLIC_BASE_URL: str = "https://run-call.vercel.app"

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str | None = None
    GOOGLE_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    RESEND_API_KEY: str | None = None
    RESEND_FROM: str | None = None

    STORE_PROVIDER: str = "memory"  # "memory" | "json"
    DATA_DIR: str = "./data"

    SLOT_DURATION_MINUTES: int = 30
    HOLD_TTL_MINUTES: int = 15
    TOKEN_SAFETY_MARGIN_SECONDS: int = Field(default=60, ge=60)
    SLOT_LEAD_TIME_MINUTES: int = 0
    SLOT_ALIGN_TO_BOUNDARY: bool = False
    DEFAULT_LOOKAHEAD_DAYS: int = 14

    AVAILABILITY_KEYWORD_FIRST: str = "run"
    AVAILABILITY_KEYWORD_SECOND: str = "call"


settings = Settings()
