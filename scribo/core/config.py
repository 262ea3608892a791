from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from environment variables (.env)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Scribo"
    ENV: str = "dev"

    # SECURITY
    SECRET_KEY: str = "CHANGE_ME"
    COOKIE_SECURE: bool = False   # set True behind HTTPS
    COOKIE_SAMESITE: str = "lax"
    COOKIE_DOMAIN: str = ""
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24  # 1 day

    # CORS
    CORS_ALLOW_ORIGINS: str = "http://localhost:3000"  # "*" or "https://a.com,https://b.com"
    CORS_ALLOW_CREDENTIALS: bool = True

    # DATABASE / CACHE
    DATABASE_DSN: str = "sqlite:///./scribo.db"
    REDIS_URL: str = ""  # empty => no redis (export lock falls back to the DB row lock)

    # FILES
    UPLOAD_DIR: str = "./uploads"
    EXPORT_DIR: str = "./uploads/exports"
    MAX_UPLOAD_MB: int = 10

    # EXPORTS
    EXPORT_LOCK_TIMEOUT_SECONDS: int = 120
    EXPORT_LOCK_WAIT_SECONDS: int = 30

    # OUTBOUND EMAIL (activities)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    MAIL_FROM: str = "no-reply@scribo.local"

    # LOGGING
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # BOOTSTRAP
    AUTO_SEED_FIELDS: bool = True
    AUTO_SEED_MODELS: bool = True

    def cors_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if not s or s == "*":
            return ["*"]
        return [x.strip() for x in s.split(",") if x.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return int(self.MAX_UPLOAD_MB) * 1024 * 1024


settings = Settings()
