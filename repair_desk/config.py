from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[1]

# Process env stays the source of truth; .env only fills missing values.
load_dotenv(BASE_DIR / ".env", override=False)

DEFAULT_ALLOWED_ORIGINS = (
    "https://gsmteam.nl",
    "https://www.gsmteam.nl",
    "https://gsm-team-2.myshopify.com",
)


class ConfigError(RuntimeError):
    """A required environment value is missing or invalid."""


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_float(value: str | None, default: float | None) -> float | None:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid number in env: {value!r}") from exc


def _parse_origins(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return DEFAULT_ALLOWED_ORIGINS
    return tuple(x.strip().rstrip("/") for x in raw.split(",") if x.strip())


@dataclass
class Settings:
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_timeout: float | None = None
    mail_transport: str = "mailgun"
    mailgun_api_key: str = ""
    mailgun_domain: str = ""
    mailgun_region: str = "us"
    mail_from: str = ""
    mail_debug_to: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_secure: bool = False
    smtp_timeout: float = 20.0
    allowed_origins: tuple[str, ...] = field(default=DEFAULT_ALLOWED_ORIGINS)
    shop_name: str = "GSM Team"
    quote_pdf_enabled: bool = True
    review_require_pending: bool = False
    log_level: str = "INFO"

    def require_store(self) -> tuple[str, str]:
        if not self.supabase_url:
            raise ConfigError("Missing env: SUPABASE_URL")
        if not self.supabase_service_role_key:
            raise ConfigError("Missing env: SUPABASE_SERVICE_ROLE_KEY")
        return self.supabase_url, self.supabase_service_role_key

    def require_mail(self) -> None:
        if self.mail_transport == "mailgun":
            if not self.mailgun_api_key:
                raise ConfigError("Missing env: MAILGUN_API_KEY")
            if not self.mailgun_domain:
                raise ConfigError("Missing env: MAILGUN_DOMAIN")
        elif self.mail_transport == "smtp":
            if not self.smtp_host:
                raise ConfigError("Missing env: SMTP_HOST")
        else:
            raise ConfigError(f"Unknown MAIL_TRANSPORT: {self.mail_transport}")

    def sender(self) -> str:
        if self.mail_from:
            return self.mail_from
        if self.mail_transport == "smtp":
            return self.smtp_user or f"{self.shop_name} <noreply@{self.smtp_host}>"
        return f"{self.shop_name} <postmaster@{self.mailgun_domain}>"


def load_settings() -> Settings:
    try:
        smtp_port = int(os.getenv("SMTP_PORT", "587"))
    except ValueError as exc:
        raise ConfigError("Invalid number in env: SMTP_PORT") from exc
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").strip(),
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
        supabase_timeout=_as_float(os.getenv("SUPABASE_TIMEOUT"), None),
        mail_transport=os.getenv("MAIL_TRANSPORT", "mailgun").strip().lower(),
        mailgun_api_key=os.getenv("MAILGUN_API_KEY", "").strip(),
        mailgun_domain=os.getenv("MAILGUN_DOMAIN", "").strip(),
        mailgun_region=os.getenv("MAILGUN_REGION", "us").strip().lower(),
        mail_from=os.getenv("MAIL_FROM", "").strip(),
        mail_debug_to=os.getenv("MAIL_DEBUG_TO", "").strip(),
        smtp_host=os.getenv("SMTP_HOST", "").strip(),
        smtp_port=smtp_port,
        smtp_user=os.getenv("SMTP_USER", "").strip(),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_secure=_as_bool(os.getenv("SMTP_SECURE")),
        smtp_timeout=_as_float(os.getenv("SMTP_TIMEOUT"), 20.0) or 20.0,
        allowed_origins=_parse_origins(os.getenv("ALLOWED_ORIGINS")),
        shop_name=os.getenv("SHOP_NAME", "GSM Team").strip() or "GSM Team",
        quote_pdf_enabled=_as_bool(os.getenv("QUOTE_PDF_ENABLED"), default=True),
        review_require_pending=_as_bool(os.getenv("REVIEW_REQUIRE_PENDING")),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
