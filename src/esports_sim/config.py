"""Static shell constants and startup settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from .errors import MissingConfigurationError

APP_TITLE = "VALORANT ESPORTS SIMULATOR"
APP_SUBTITLE = "Manage your team to glory"
APP_FOOTER = "Build your esports empire, one match at a time"

REGIONS: tuple[str, ...] = ("EMEA", "China", "Pacific", "Americas")
REGION_DESCRIPTIONS: dict[str, str] = {
    "EMEA": "Europe, Middle East & Africa",
    "China": "Chinese League",
    "Pacific": "Asia-Pacific Region",
    "Americas": "North & South America",
}

SAVE_NAME_MAX_LENGTH = 50
MIN_PASSWORD_LENGTH = 6

TEAMS_TABLE = "teams"
SAVED_GAMES_TABLE = "saved_games"

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    log_level: str = "INFO"
    log_format: str = "text"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def _raw(env: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return ""


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _raw(env, name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _raw(env, name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings(env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> Settings:
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    url = _raw(env, "SUPABASE_URL", "VITE_SUPABASE_URL")
    anon_key = _raw(env, "SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY")
    if not url or not anon_key:
        raise MissingConfigurationError("Missing Supabase environment variables")

    log_format = _raw(env, "ESPORTS_SIM_LOG_FORMAT").lower() or "text"
    if log_format not in {"text", "json"}:
        log_format = "text"
    return Settings(
        supabase_url=url.rstrip("/"),
        supabase_anon_key=anon_key,
        http_timeout=_float(env, "ESPORTS_SIM_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        log_level=(_raw(env, "ESPORTS_SIM_LOG_LEVEL") or "INFO").upper(),
        log_format=log_format,
        host=_raw(env, "ESPORTS_SIM_HOST") or DEFAULT_HOST,
        port=_int(env, "ESPORTS_SIM_PORT", DEFAULT_PORT),
    )
