# app/core/config.py
import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Uniform Distribution")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
    SITE_URL: str = os.getenv("SITE_URL", "http://127.0.0.1:8000")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ))

    # ---------- MySQL ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "uniform_user")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "uniform_distribution")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")

    # Full URL override (sqlite:///./dev.db for local runs)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None

    SQLALCHEMY_DATABASE_URI: str = DATABASE_URL or (
        f"mysql+{DB_DRIVER}://{quote_plus(MYSQL_USER)}:{quote_plus(MYSQL_PASSWORD)}"
        f"@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}?charset=utf8mb4")

    # ---------- Security ----------
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-this")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

    # ---------- Email ----------
    SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.office365.com")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_FROM: str = os.getenv("SMTP_FROM", "no-reply@uniform.local")
    SMTP_TLS: bool = _flag("SMTP_TLS", "true")

    # ---------- Notifications ----------
    NOTIFICATION_MAX_ATTEMPTS: int = int(
        os.getenv("NOTIFICATION_MAX_ATTEMPTS", "3"))
    NOTIFICATION_RETRY_BACKOFF_SECONDS: int = int(
        os.getenv("NOTIFICATION_RETRY_BACKOFF_SECONDS", "60"))
    NOTIFICATION_DUPLICATE_WINDOW_MINUTES: int = int(
        os.getenv("NOTIFICATION_DUPLICATE_WINDOW_MINUTES", "5"))
    NOTIFICATION_QUEUE_BATCH: int = int(
        os.getenv("NOTIFICATION_QUEUE_BATCH", "50"))
    NOTIFICATION_BRAND_COLOR: str = os.getenv("NOTIFICATION_BRAND_COLOR", "#4A90A4")
    NOTIFICATION_TIMEZONE: str = os.getenv("NOTIFICATION_TIMEZONE", "Asia/Kolkata")

    # ---------- WhatsApp ----------
    WHATSAPP_VERIFY_TOKEN: str = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
    WHATSAPP_API_URL: str = os.getenv("WHATSAPP_API_URL", "")
    WHATSAPP_API_TOKEN: str = os.getenv("WHATSAPP_API_TOKEN", "")
    WHATSAPP_TIMEOUT_SECONDS: int = int(
        os.getenv("WHATSAPP_TIMEOUT_SECONDS", "10"))


settings = Settings()
