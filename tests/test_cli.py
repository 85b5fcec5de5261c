from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from mail2line.cli import app
from mail2line.config import Settings
from mail2line.core.db import PropertyRepository

runner = CliRunner()


def _env(tmp_path: Path) -> dict[str, str]:
    return {"M2L_HOME": str(tmp_path)}


def test_init_seeds_watermark(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    with PropertyRepository(tmp_path / "data" / "mail2line.sqlite3") as repository:
        assert int(repository.get("lastProcessedTime")) > 0


def test_config_set_and_show_masks_secrets(tmp_path: Path) -> None:
    token = "s" * 60
    assert runner.invoke(app, ["config", "set", "lineAccessToken", token], env=_env(tmp_path)).exit_code == 0

    result = runner.invoke(app, ["config", "show"], env=_env(tmp_path))

    assert result.exit_code == 0
    assert token not in result.output
    assert "ssss...ssss" in result.output
    assert "geminiApiKey" in result.output


def test_config_set_rejects_invalid_value(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "set", "lineGroupId", "U-not-a-group"], env=_env(tmp_path))

    assert result.exit_code != 0


def test_config_unset_removes_stored_key(tmp_path: Path) -> None:
    assert runner.invoke(app, ["config", "set", "maxEmailsPerRun", "10"], env=_env(tmp_path)).exit_code == 0

    result = runner.invoke(app, ["config", "unset", "maxEmailsPerRun"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    assert "Removed" in result.output
    with PropertyRepository(tmp_path / "data" / "mail2line.sqlite3") as repository:
        assert repository.get("maxEmailsPerRun") is None

    again = runner.invoke(app, ["config", "unset", "maxEmailsPerRun"], env=_env(tmp_path))
    assert again.exit_code == 0
    assert "Not set" in again.output


def test_config_unset_rejects_unknown_key(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "unset", "nope"], env=_env(tmp_path))

    assert result.exit_code != 0


def test_config_watermark_accepts_dates(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("M2L_HOME", str(tmp_path))
    result = runner.invoke(app, ["config", "watermark", "2026-01-01T00:00:00Z"])

    assert result.exit_code == 0, result.output
    settings = Settings.load()
    with PropertyRepository(settings.db_path) as repository:
        assert repository.get("lastProcessedTime") == "1767225600000"
