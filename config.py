import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        admin_user_ids: list[int],
        app_base_url: str,
        reset_token_ttl_minutes: int,
        password_min_length: int,
        upload_dir: Path,
        upload_base_url: str,
        upload_max_bytes: int,
        smtp_host: Optional[str],
        smtp_port: int,
        smtp_user: Optional[str],
        smtp_password: Optional[str],
        mail_from: str,
        brapi_token: Optional[str],
        quotes_timeout_secs: float,
        quotes_cache_secs: int,
        quotes_refresh_minutes: int,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.admin_user_ids = admin_user_ids
        self.app_base_url = app_base_url
        self.reset_token_ttl_minutes = reset_token_ttl_minutes
        self.password_min_length = password_min_length
        self.upload_dir = upload_dir
        self.upload_base_url = upload_base_url
        self.upload_max_bytes = upload_max_bytes
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.mail_from = mail_from
        self.brapi_token = brapi_token
        self.quotes_timeout_secs = quotes_timeout_secs
        self.quotes_cache_secs = quotes_cache_secs
        self.quotes_refresh_minutes = quotes_refresh_minutes
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _parse_id_list(raw: str) -> list[int]:
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if part:
            ids.append(int(part))
    return ids


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "America/Sao_Paulo")
    session_secret = os.getenv(
        "FINANCE_SESSION_SECRET",
        "3f9d1c0b7a8e44d2b6c5a1e0f7d9c2b48e6a0f1d3c5b7a9e2d4f6a8c0e1b3d5f",
    )
    app_base_url = os.getenv("FINANCE_APP_BASE_URL", "http://localhost:8000")
    upload_dir = Path(
        os.getenv("FINANCE_UPLOAD_DIR", str(data_dir / "uploads"))
    ).resolve()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_hours=int(os.getenv("FINANCE_SESSION_MAX_AGE_HOURS", "720")),
        admin_user_ids=_parse_id_list(os.getenv("FINANCE_ADMIN_USER_IDS", "")),
        app_base_url=app_base_url,
        reset_token_ttl_minutes=int(os.getenv("FINANCE_RESET_TOKEN_TTL_MINUTES", "60")),
        password_min_length=int(os.getenv("FINANCE_PASSWORD_MIN_LENGTH", "6")),
        upload_dir=upload_dir,
        upload_base_url=os.getenv(
            "FINANCE_UPLOAD_BASE_URL", f"{app_base_url}/uploads"
        ),
        upload_max_bytes=int(os.getenv("FINANCE_UPLOAD_MAX_BYTES", str(5 * 1024 * 1024))),
        smtp_host=os.getenv("FINANCE_SMTP_HOST") or None,
        smtp_port=int(os.getenv("FINANCE_SMTP_PORT", "587")),
        smtp_user=os.getenv("FINANCE_SMTP_USER") or None,
        smtp_password=os.getenv("FINANCE_SMTP_PASSWORD") or None,
        mail_from=os.getenv("FINANCE_MAIL_FROM", "no-reply@localhost"),
        brapi_token=os.getenv("FINANCE_BRAPI_TOKEN") or None,
        quotes_timeout_secs=float(os.getenv("FINANCE_QUOTES_TIMEOUT_SECS", "5")),
        quotes_cache_secs=int(os.getenv("FINANCE_QUOTES_CACHE_SECS", "120")),
        quotes_refresh_minutes=int(os.getenv("FINANCE_QUOTES_REFRESH_MINUTES", "30")),
        scheduler_enabled=os.getenv("FINANCE_SCHEDULER_ENABLED", "0") in ("1", "true"),
    )
