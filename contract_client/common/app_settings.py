from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

# 访问令牌约 24h 过期，提前 1h 刷新
DEFAULT_REFRESH_INTERVAL = 23 * 60 * 60


def _as_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


@dataclass(frozen=True)
class AppSettings:
    app_name: str
    api_url: str
    http_timeout: float
    refresh_interval: int
    credential_file: str
    login_path: str
    log_level: str
    log_file: str


def load_app_settings() -> AppSettings:
    return AppSettings(
        app_name=os.getenv("APP_NAME", "contract-client"),
        api_url=os.getenv("CONTRACTS_API_URL", "http://127.0.0.1:8000/api").rstrip("/"),
        http_timeout=_as_float(os.getenv("HTTP_TIMEOUT"), 30.0),
        refresh_interval=_as_int(
            os.getenv("TOKEN_REFRESH_INTERVAL"), DEFAULT_REFRESH_INTERVAL
        ),
        credential_file=os.getenv("CREDENTIAL_FILE", "data/session.json"),
        login_path=os.getenv("LOGIN_PATH", "/login"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE", ""),
    )


settings = load_app_settings()
