from __future__ import annotations

import logging

import pytest

from mail2line.exceptions import RunAbortedError
from mail2line.main import process_emails


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_process_emails_raises_on_missing_config(settings) -> None:  # noqa: ANN001
    with pytest.raises(RunAbortedError) as excinfo:
        process_emails(settings)

    summary = excinfo.value.summary
    assert summary.fatal_error.type == "config"
    assert settings.db_path.exists()
    assert any(path.suffix == ".jsonl" for path in settings.logs_dir.iterdir())
