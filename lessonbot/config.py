from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from lessonbot.domain import ConfigError

DEFAULT_BASE_URL = "http://www.bbdc.sg/bbdc"

_SESSION_LABEL_RE = re.compile(r"^SESSION_(\d+)$")


def _parse_chat_id(name: str, raw: str) -> str:
    # Telegram allows numeric IDs; groups/supergroups can be negative.
    try:
        int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Expected integer chat id.") from e
    if raw == "0":
        raise ConfigError(f"Invalid {name} value: '0' is not a valid chat id")
    return raw


def _parse_telegram_chat_ids(raw: str) -> tuple[str, ...]:
    # TELEGRAM_CHAT_ID supports a single value or a comma-separated list.
    # Examples:
    #   TELEGRAM_CHAT_ID=123456789
    #   TELEGRAM_CHAT_ID=123456789,-1001234567890
    seen: set[str] = set()
    result: list[str] = []
    for p in _split_csv(raw):
        _parse_chat_id("TELEGRAM_CHAT_ID", p)
        if p in seen:
            continue
        seen.add(p)
        result.append(p)

    if not result:
        raise ConfigError("TELEGRAM_CHAT_ID is empty. Provide at least one chat id.")

    return tuple(result)


def _split_csv(raw: str) -> list[str]:
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]


@dataclass(frozen=True)
class WantedFilters:
    """Categories requested from the listing page (sent as repeated form fields).

    Days use the site's numbering where 1 = Sunday and 7 = Saturday.
    """

    months: tuple[str, ...] = ()
    sessions: tuple[str, ...] = ()
    days: tuple[str, ...] = ()


@dataclass(frozen=True)
class Settings:
    identity: str
    secret: str
    account_id: str

    telegram_bot_token: str
    telegram_chat_ids: tuple[str, ...]
    # Failure notices only go here; regular recipients never see them.
    telegram_admin_chat_id: str | None = None

    wanted: WantedFilters = field(default_factory=WantedFilters)
    # (session number, label) pairs, e.g. ("3", "11:30-13:10")
    session_labels: tuple[tuple[str, str], ...] = ()

    lookahead_days: int = 10
    min_lead_hours: int = 12

    # Pause between cycles is drawn uniformly from this range (seconds, inclusive).
    retry_min_seconds: int = 120
    retry_max_seconds: int = 419

    # How many times open session + login + listing fetch is attempted within one cycle.
    check_retry_attempts: int = 2
    http_timeout_seconds: float = 30.0

    # Liveness listener port for the hosting platform; None disables the listener.
    liveness_port: int | None = None

    base_url: str = DEFAULT_BASE_URL

    def session_label(self, session_number: str) -> str:
        return dict(self.session_labels).get(session_number, f"Session {session_number}")


def _require(name: str, *aliases: str) -> str:
    for key in (name, *aliases):
        value = os.getenv(key)
        if value:
            return value
    raise ConfigError(f"Missing required environment variable: {name}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _session_labels(environ: dict[str, str]) -> tuple[tuple[str, str], ...]:
    # SESSION_3=11:30-13:10 -> (("3", "11:30-13:10"),)
    labels: dict[str, str] = {}
    for key, value in environ.items():
        m = _SESSION_LABEL_RE.match(key)
        if m and value.strip():
            labels[m.group(1)] = value.strip()
    return tuple(sorted(labels.items()))


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    lookahead_days = _int_env("DAYSTOLOOKAHEAD", 10)
    if lookahead_days < 1:
        raise ConfigError("DAYSTOLOOKAHEAD must be >= 1")

    min_lead_hours = _int_env("MIN_LEAD_HOURS", 12)
    if min_lead_hours < 0:
        raise ConfigError("MIN_LEAD_HOURS must be >= 0")

    retry_min_seconds = _int_env("RETRY_MIN_SECONDS", 120)
    retry_max_seconds = _int_env("RETRY_MAX_SECONDS", 419)
    if retry_min_seconds < 1:
        raise ConfigError("RETRY_MIN_SECONDS must be >= 1")
    if retry_max_seconds < retry_min_seconds:
        raise ConfigError("RETRY_MAX_SECONDS must be >= RETRY_MIN_SECONDS")

    check_retry_attempts = _int_env("CHECK_RETRY_ATTEMPTS", 2)
    if check_retry_attempts < 1:
        raise ConfigError("CHECK_RETRY_ATTEMPTS must be >= 1")

    http_timeout_seconds = _float_env("HTTP_TIMEOUT_SECONDS", 30.0)
    if http_timeout_seconds <= 0:
        raise ConfigError("HTTP_TIMEOUT_SECONDS must be > 0")

    liveness_port: int | None = None
    if os.getenv("PORT", "").strip():
        liveness_port = _int_env("PORT", 0)
        if not 1 <= liveness_port <= 65535:
            raise ConfigError(f"PORT must be in 1..65535, got {liveness_port}")

    admin_raw = os.getenv("TELEGRAM_ADMIN_CHAT_ID", "").strip()
    admin_chat_id = _parse_chat_id("TELEGRAM_ADMIN_CHAT_ID", admin_raw) if admin_raw else None

    wanted = WantedFilters(
        months=tuple(_split_csv(os.getenv("WANTED_MONTHS", ""))),
        sessions=tuple(_split_csv(os.getenv("WANTED_SESSIONS", ""))),
        days=tuple(_split_csv(os.getenv("WANTED_DAYS", ""))),
    )

    return Settings(
        identity=_require("NRIC"),
        secret=_require("PASSWORD"),
        account_id=_require("ACCOUNT_ID"),
        telegram_bot_token=_require("TELEGRAM_BOT_TOKEN", "TELEGRAM_TOKEN"),
        telegram_chat_ids=_parse_telegram_chat_ids(_require("TELEGRAM_CHAT_ID", "CHAT_ID")),
        telegram_admin_chat_id=admin_chat_id,
        wanted=wanted,
        session_labels=_session_labels(dict(os.environ)),
        lookahead_days=lookahead_days,
        min_lead_hours=min_lead_hours,
        retry_min_seconds=retry_min_seconds,
        retry_max_seconds=retry_max_seconds,
        check_retry_attempts=check_retry_attempts,
        http_timeout_seconds=http_timeout_seconds,
        liveness_port=liveness_port,
        base_url=os.getenv("BBDC_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
    )
