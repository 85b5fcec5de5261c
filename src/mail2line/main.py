"""Scheduled entry point: call ``process_emails()`` from cron or any host scheduler."""

from __future__ import annotations

import uuid

from mail2line.config import ConfigStore, Settings
from mail2line.core.db import PropertyRepository
from mail2line.core.logging import configure_logging, get_logger
from mail2line.core.logging.setup import parse_level
from mail2line.exceptions import RunAbortedError
from mail2line.services import RunOrchestrator, RunSummary
from mail2line.sources.email_gmail import GmailAuthManager, GmailMailbox


def process_emails(settings: Settings | None = None) -> RunSummary:
    settings = settings or Settings.load()
    settings.ensure_directories()

    correlation_id = uuid.uuid4().hex
    configure_logging(settings.logs_dir, correlation_id=correlation_id, level=parse_level(settings.log_level))
    logger = get_logger("mail2line.run", correlation_id)

    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        auth_manager = GmailAuthManager(settings.gmail_client_secret_path, settings.gmail_token_path)
        orchestrator = RunOrchestrator(
            config_store=ConfigStore(repository),
            mailbox=GmailMailbox(auth_manager=auth_manager, logger=logger),
            logger=logger,
            run_budget_sec=settings.run_budget_sec,
            safety_margin_sec=settings.run_safety_margin_sec,
            gemini_model=settings.gemini_model,
            http_timeout_sec=settings.http_timeout_sec,
            correlation_id=correlation_id,
        )
        summary = orchestrator.run()

    if summary.fatal_error is not None:
        raise RunAbortedError(
            f"Run aborted ({summary.fatal_error.type}): {summary.fatal_error.message}",
            summary=summary,
        )
    return summary


if __name__ == "__main__":
    process_emails()
