# app/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple


class ConfigError(RuntimeError):
    """Raised when required environment variables are missing."""


def _as_bool(v: str | None, default: bool = False) -> bool:
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _as_hours(v: str | None, default: Tuple[int, ...]) -> Tuple[int, ...]:
    if not v:
        return default
    try:
        hours = sorted({int(h) for h in v.split(",") if h.strip()})
    except ValueError as e:
        raise ConfigError(f"SCHEDULE_HOURS must be comma-separated integers: {v!r}") from e
    if not hours:
        raise ConfigError(f"SCHEDULE_HOURS has no hours: {v!r}")
    for h in hours:
        if not 0 <= h <= 23:
            raise ConfigError(f"SCHEDULE_HOURS entry out of range: {h}")
    return tuple(hours)



@dataclass
class Settings:
    # JSearch (RapidAPI)
    rapidapi_key: str = os.getenv("RAPIDAPI_KEY", "")
    jsearch_host: str = os.getenv("JSEARCH_HOST", "jsearch.p.rapidapi.com")
    search_region: str = os.getenv("SEARCH_REGION", "UAE")
    search_num_pages: int = int(os.getenv("SEARCH_NUM_PAGES", "1"))
    search_timeout: float = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30"))

    # Document store
    data_dir: Path = Path(os.getenv("DATA_DIR", "data"))

    # Bearer secret for scheduled triggers
    cron_secret: str = os.getenv("CRON_SECRET", "")

    # SMTP transport
    smtp_host: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    email_user: str = os.getenv("EMAIL_USER", "")
    email_password: str = os.getenv("EMAIL_PASSWORD", "")

    # Cover letter
    applicant_name: str = os.getenv("APPLICANT_NAME", "")
    applicant_headline: str = os.getenv("APPLICANT_HEADLINE", "4+ Years React/Next.js Experience")
    resume_path: Path | None = Path(os.environ["RESUME_PATH"]) if os.getenv("RESUME_PATH") else None

    # Dispatch
    dispatch_cap: int = int(os.getenv("DISPATCH_CAP", "50"))
    send_delay: float = float(os.getenv("SEND_DELAY_SECONDS", "3"))
    # Re-send to records already marked Sent (duplicates will be sent)
    dispatch_include_sent: bool = _as_bool(os.getenv("DISPATCH_INCLUDE_SENT"), False)

    # Hour-of-day (UTC) triggers used for the "next run" label
    schedule_hours: Tuple[int, ...] = field(
        default_factory=lambda: _as_hours(os.getenv("SCHEDULE_HOURS"), (8, 12, 14, 18))
    )

    def missing(self) -> list[str]:
        required = {
            "RAPIDAPI_KEY": self.rapidapi_key,
            "CRON_SECRET": self.cron_secret,
            "EMAIL_USER": self.email_user,
            "EMAIL_PASSWORD": self.email_password,
            "APPLICANT_NAME": self.applicant_name,
        }
        return [name for name, value in required.items() if not value]

    def require(self) -> "Settings":
        """Fail fast at process start when credentials or secrets are absent."""
        missing = self.missing()
        if missing:
            raise ConfigError("Missing required environment variables: " + ", ".join(missing))
        return self


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
