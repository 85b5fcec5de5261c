from __future__ import annotations

import platform
import sys

from mail2line.config import ConfigStore, Settings
from mail2line.core.db import PropertyRepository
from mail2line.exceptions import ConfigError


def run_doctor_checks(settings: Settings) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 10) else "warn",
            "detail": platform.python_version(),
        }
    )

    checks.append(
        {
            "check": "gmail_oauth_client_secret",
            "status": "ok" if settings.gmail_client_secret_path.exists() else "warn",
            "detail": str(settings.gmail_client_secret_path),
        }
    )
    checks.append(
        {
            "check": "gmail_oauth_token",
            "status": "ok" if settings.gmail_token_path.exists() else "warn",
            "detail": str(settings.gmail_token_path),
        }
    )

    if not settings.db_path.exists():
        checks.append({"check": "config_store", "status": "warn", "detail": f"no database at {settings.db_path}"})
        return checks

    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        try:
            config = ConfigStore(repository).load()
        except ConfigError as exc:
            checks.append({"check": "config", "status": "error", "detail": str(exc)})
        else:
            checks.append(
                {
                    "check": "config",
                    "status": "ok",
                    "detail": (
                        f"{len(config.sender_whitelist)} senders, watermark {config.last_processed_time}, "
                        f"extraction={config.extraction_mode}"
                    ),
                }
            )

    return checks
