from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from dotenv import load_dotenv

from mail2line.exceptions import ConfigError

DEFAULT_MAX_EMAILS_PER_RUN = 100
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
EXTRACTION_MODES = ("ai", "patterns")

KEY_LINE_ACCESS_TOKEN = "lineAccessToken"
KEY_LINE_GROUP_ID = "lineGroupId"
KEY_GEMINI_API_KEY = "geminiApiKey"
KEY_SENDER_WHITELIST = "senderWhitelist"
KEY_LAST_PROCESSED_TIME = "lastProcessedTime"
KEY_MAX_EMAILS_PER_RUN = "maxEmailsPerRun"
KEY_EXTRACTION_MODE = "extractionMode"

REQUIRED_KEYS = (
    KEY_LINE_ACCESS_TOKEN,
    KEY_LINE_GROUP_ID,
    KEY_GEMINI_API_KEY,
    KEY_SENDER_WHITELIST,
    KEY_LAST_PROCESSED_TIME,
)
OPTIONAL_KEYS = (KEY_MAX_EMAILS_PER_RUN, KEY_EXTRACTION_MODE)
SECRET_KEYS = frozenset({KEY_LINE_ACCESS_TOKEN, KEY_GEMINI_API_KEY})

MIN_LINE_TOKEN_LENGTH = 50
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(slots=True)
class Settings:
    root_dir: Path
    data_dir: Path
    db_path: Path
    logs_dir: Path
    gmail_client_secret_path: Path
    gmail_token_path: Path
    log_level: str = "INFO"
    gemini_model: str = DEFAULT_GEMINI_MODEL
    http_timeout_sec: float = 30.0
    run_budget_sec: float = 360.0
    run_safety_margin_sec: float = 30.0

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("M2L_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        data_dir = Path(os.getenv("M2L_DATA_DIR", root_dir / "data")).expanduser().resolve()
        db_path = Path(os.getenv("M2L_DB_PATH", data_dir / "mail2line.sqlite3")).expanduser().resolve()
        logs_dir = Path(os.getenv("M2L_LOG_DIR", root_dir / "logs")).expanduser().resolve()

        gmail_client_secret_path = Path(
            os.getenv("GMAIL_OAUTH_CLIENT_SECRET_PATH", root_dir / "secrets" / "gmail_client_secret.json")
        ).expanduser().resolve()
        gmail_token_path = Path(
            os.getenv("GMAIL_OAUTH_TOKEN_PATH", data_dir / "auth" / "gmail_token.json")
        ).expanduser().resolve()

        return cls(
            root_dir=root_dir,
            data_dir=data_dir,
            db_path=db_path,
            logs_dir=logs_dir,
            gmail_client_secret_path=gmail_client_secret_path,
            gmail_token_path=gmail_token_path,
            log_level=os.getenv("M2L_LOG_LEVEL", "INFO"),
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            http_timeout_sec=float(os.getenv("M2L_HTTP_TIMEOUT_SEC", "30")),
            run_budget_sec=float(os.getenv("M2L_RUN_BUDGET_SEC", "360")),
            run_safety_margin_sec=float(os.getenv("M2L_RUN_SAFETY_MARGIN_SEC", "30")),
        )

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.data_dir, self.logs_dir]:
            path.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.gmail_token_path.parent.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True, slots=True)
class AppConfig:
    line_access_token: str
    line_group_id: str
    gemini_api_key: str
    sender_whitelist: tuple[str, ...]
    last_processed_time: int
    max_emails_per_run: int = DEFAULT_MAX_EMAILS_PER_RUN
    extraction_mode: str = "ai"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...


def parse_whitelist(raw: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for part in raw.split(","):
        address = part.strip().lower()
        if address:
            seen.setdefault(address, None)
    return tuple(seen)


def is_valid_email(address: str) -> bool:
    return bool(EMAIL_PATTERN.match(address))


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


class ConfigStore:
    """Loads and validates ``AppConfig`` from a key-value store.

    The watermark (``lastProcessedTime``) is the only value written during a
    run; every write goes straight to the store.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _read(self, key: str) -> str | None:
        value = self.store.get(key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def _line_credentials(self) -> tuple[str | None, str | None]:
        token = self._read(KEY_LINE_ACCESS_TOKEN)
        group_id = self._read(KEY_LINE_GROUP_ID)
        if validate_value(KEY_LINE_ACCESS_TOKEN, token or "") or validate_value(KEY_LINE_GROUP_ID, group_id or ""):
            return None, None
        return token, group_id

    def load(self) -> AppConfig:
        try:
            return self._load()
        except ConfigError as exc:
            if exc.has_line_credentials:
                raise
            token, group_id = self._line_credentials()
            raise ConfigError(str(exc), line_access_token=token, line_group_id=group_id) from exc

    def _load(self) -> AppConfig:
        raw = {key: self._read(key) for key in REQUIRED_KEYS + OPTIONAL_KEYS}

        missing = [key for key in REQUIRED_KEYS if raw[key] is None]
        if missing:
            raise ConfigError(f"Missing required configuration keys: {', '.join(missing)}")

        for key, value in raw.items():
            if value is None:
                continue
            problem = validate_value(key, value)
            if problem:
                raise ConfigError(problem)

        max_raw = raw[KEY_MAX_EMAILS_PER_RUN]
        return AppConfig(
            line_access_token=raw[KEY_LINE_ACCESS_TOKEN],
            line_group_id=raw[KEY_LINE_GROUP_ID],
            gemini_api_key=raw[KEY_GEMINI_API_KEY],
            sender_whitelist=parse_whitelist(raw[KEY_SENDER_WHITELIST]),
            last_processed_time=_parse_int(KEY_LAST_PROCESSED_TIME, raw[KEY_LAST_PROCESSED_TIME]),
            max_emails_per_run=(
                _parse_int(KEY_MAX_EMAILS_PER_RUN, max_raw) if max_raw else DEFAULT_MAX_EMAILS_PER_RUN
            ),
            extraction_mode=(raw[KEY_EXTRACTION_MODE] or "ai").lower(),
        )

    def last_processed_time(self) -> int:
        raw = self._read(KEY_LAST_PROCESSED_TIME)
        return _parse_int(KEY_LAST_PROCESSED_TIME, raw) if raw else 0

    def update_last_processed_time(self, timestamp_ms: int) -> int:
        """Persist the watermark if it moves forward; return the stored value."""
        current = self.last_processed_time()
        if timestamp_ms <= current:
            return current
        self.store.set(KEY_LAST_PROCESSED_TIME, str(int(timestamp_ms)))
        return int(timestamp_ms)

    def set_value(self, key: str, value: str) -> None:
        if key not in REQUIRED_KEYS + OPTIONAL_KEYS:
            raise ConfigError(f"Unknown configuration key: {key}")
        problem = validate_value(key, value.strip())
        if problem:
            raise ConfigError(problem)
        self.store.set(key, value.strip())

    def unset_value(self, key: str) -> bool:
        """Remove a stored key; returns False when nothing was stored."""
        if key not in REQUIRED_KEYS + OPTIONAL_KEYS:
            raise ConfigError(f"Unknown configuration key: {key}")
        return self.store.delete(key)


def validate_value(key: str, value: str) -> str | None:
    """Return a problem description for ``value`` under ``key``, or None if it is acceptable."""
    if key == KEY_LINE_ACCESS_TOKEN:
        if len(value) < MIN_LINE_TOKEN_LENGTH:
            return "Invalid LINE access token (too short)"
    elif key == KEY_LINE_GROUP_ID:
        if not value.startswith("C"):
            return "Invalid LINE group ID (must start with C)"
    elif key == KEY_GEMINI_API_KEY:
        if not value:
            return "Gemini API key cannot be empty"
    elif key == KEY_SENDER_WHITELIST:
        addresses = parse_whitelist(value)
        if not addresses:
            return "Sender whitelist cannot be empty"
        for address in addresses:
            if not is_valid_email(address):
                return f"Invalid email address in whitelist: {address}"
    elif key == KEY_LAST_PROCESSED_TIME:
        try:
            if int(value) < 0:
                return "lastProcessedTime must be >= 0"
        except ValueError:
            return f"lastProcessedTime must be an integer, got {value!r}"
    elif key == KEY_MAX_EMAILS_PER_RUN:
        try:
            if int(value) < 1:
                return "Max emails per run must be positive"
        except ValueError:
            return f"maxEmailsPerRun must be an integer, got {value!r}"
    elif key == KEY_EXTRACTION_MODE:
        if value.lower() not in EXTRACTION_MODES:
            return f"extractionMode must be one of {', '.join(EXTRACTION_MODES)}"
    return None
