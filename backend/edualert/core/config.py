from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "EduAlert"
    ENVIRONMENT: str = "development"
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"

    # Security
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    SESSION_EXPIRE_HOURS: int = 24
    SESSION_COOKIE_NAME: str = "auth-token"
    INTERNAL_API_KEY: str = ""
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Accounts
    ALLOWED_EMAIL_DOMAIN: str = "moe.gov.gy"
    PASSWORD_MIN_LENGTH: int = 12
    PROFILE_PASSWORD_MIN_LENGTH: int = 8
    OTP_EXPIRY_MINUTES: int = 5
    RESET_CODE_EXPIRY_MINUTES: int = 60
    DEFAULT_ADMIN_EMAIL: str = "phil.mingo@moe.gov.gy"
    DEFAULT_ADMIN_PASSWORD: str = ""

    # Database (Supabase Postgres via asyncpg in production)
    DATABASE_URL: str = "sqlite+aiosqlite:///./edualert.db"
    DB_QUERY_TIMEOUT_SECONDS: float = 10.0

    # AI
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"
    AI_TIMEOUT_SECONDS: float = 15.0
    TRIAGE_TIMEOUT_SECONDS: float = 30.0
    AI_DAILY_QUESTION_LIMIT: int = 10

    # Email
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@moe.gov.gy"
    SENDGRID_FROM_NAME: str = "EduAlert"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

settings = Settings()
