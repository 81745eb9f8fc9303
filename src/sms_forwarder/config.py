from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _project_root() -> Path:
    # Repo root in local dev, /app in Docker (PROJECT_ROOT)
    return Path(os.getenv("PROJECT_ROOT", Path(__file__).resolve().parents[2]))


def _env_optional(name: str) -> str | None:
    # Treat "FOO=" the same as an unset variable
    value = os.getenv(name)
    return value or None


class Settings(BaseModel):
    project_root: Path = Field(default_factory=_project_root)

    # Where the single forwarding policy lives (STORAGE_FILE, else storage.json
    # under project root)
    storage_file: Path = Field(
        default_factory=lambda data: Path(
            os.getenv("STORAGE_FILE") or data["project_root"] / "storage.json"
        )
    )

    # --- Twilio webhook validation ---
    twilio_auth_token: str | None = Field(default_factory=lambda: _env_optional("TWILIO_AUTH_TOKEN"))
    # Twilio signs the public URL; behind a TLS-terminating proxy we only see http.
    twilio_webhook_protocol: str = Field(
        default_factory=lambda: os.getenv("TWILIO_WEBHOOK_PROTOCOL", "https")
    )
    twilio_webhook_host: str | None = Field(
        default_factory=lambda: _env_optional("TWILIO_WEBHOOK_HOST")
    )

    # --- Email transports ---
    sendgrid_api_key: str | None = Field(default_factory=lambda: _env_optional("SENDGRID_API_KEY"))
    sendgrid_api_url: str = Field(
        default_factory=lambda: os.getenv(
            "SENDGRID_API_URL", "https://api.sendgrid.com/v3/mail/send"
        )
    )
    smtp_host: str | None = Field(default_factory=lambda: _env_optional("SMTP_HOST"))
    smtp_port: int = Field(default_factory=lambda: int(os.getenv("SMTP_PORT", "587")))
    smtp_secure: bool = Field(default_factory=lambda: _env_flag("SMTP_SECURE"))
    smtp_user: str | None = Field(default_factory=lambda: _env_optional("SMTP_USER"))
    smtp_pass: str | None = Field(default_factory=lambda: _env_optional("SMTP_PASS"))
    mail_from: str = Field(default_factory=lambda: os.getenv("MAIL_FROM", "no-reply@example.com"))
    email_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
    )

    # --- HTTP server ---
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    cors_origin: str = Field(default_factory=lambda: os.getenv("CORS_ORIGIN", "*"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    # .env next to the service; variables already in the environment win
    load_dotenv(_project_root() / ".env")
    return Settings()
