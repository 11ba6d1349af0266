from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    if not v:
        return default
    return v in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


@dataclass(frozen=True)
class Settings:
    """Process-level settings. Step behaviour lives in each step's FormConfiguration."""

    steps_path: Optional[str] = None
    base_url: Optional[str] = None
    confirm_step: Optional[str] = None
    cookie_name: str = "form_wizard_sid"
    session_ttl_sec: int = 3600
    log_level: str = "INFO"
    http_log: bool = False
    http_log_headers: bool = False
    http_log_body_max_bytes: int = 4096

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read `FORM_WIZARD_*` environment variables.

        - `FORM_WIZARD_STEPS_PATH` JSON wizard definition to mount
        - `FORM_WIZARD_BASE_URL` / `FORM_WIZARD_CONFIRM_STEP` override the file
        - `FORM_WIZARD_SESSION_COOKIE`, `FORM_WIZARD_SESSION_TTL_SEC`
        - `FORM_WIZARD_LOG_LEVEL`
        - `FORM_WIZARD_HTTP_LOG`, `FORM_WIZARD_HTTP_LOG_HEADERS`, `FORM_WIZARD_HTTP_LOG_BODY_MAX_BYTES`
        """
        return cls(
            steps_path=_env_str("FORM_WIZARD_STEPS_PATH") or None,
            base_url=_env_str("FORM_WIZARD_BASE_URL") or None,
            confirm_step=_env_str("FORM_WIZARD_CONFIRM_STEP") or None,
            cookie_name=_env_str("FORM_WIZARD_SESSION_COOKIE", "form_wizard_sid"),
            session_ttl_sec=_env_int("FORM_WIZARD_SESSION_TTL_SEC", 3600),
            log_level=_env_str("FORM_WIZARD_LOG_LEVEL", "INFO").upper(),
            http_log=_env_bool("FORM_WIZARD_HTTP_LOG", default=False),
            http_log_headers=_env_bool("FORM_WIZARD_HTTP_LOG_HEADERS", default=False),
            http_log_body_max_bytes=_env_int("FORM_WIZARD_HTTP_LOG_BODY_MAX_BYTES", 4096),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
