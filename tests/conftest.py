from __future__ import annotations

import logging
from pathlib import Path

import pytest

from fakes import LINE_GROUP, LINE_TOKEN
from mail2line.config import ConfigStore, Settings
from mail2line.core.db import PropertyRepository


@pytest.fixture()
def repository(tmp_path: Path):
    repo = PropertyRepository(tmp_path / "mail2line.sqlite3")
    repo.migrate()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def config_store(repository) -> ConfigStore:  # noqa: ANN001
    repository.set("lineAccessToken", LINE_TOKEN)
    repository.set("lineGroupId", LINE_GROUP)
    repository.set("geminiApiKey", "gemini-key")
    repository.set("senderWhitelist", "a@x.com")
    repository.set("lastProcessedTime", "1000")
    return ConfigStore(repository)


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch) -> Settings:  # noqa: ANN001
    for name in ("M2L_HOME", "M2L_DATA_DIR", "M2L_DB_PATH", "M2L_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("mail2line-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger
