from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from mail2line.config import DEFAULT_GEMINI_MODEL, AppConfig, ConfigStore
from mail2line.delivery import Dispatcher, LineClient, format_run_summary, format_todos, is_truncated
from mail2line.exceptions import ConfigError, MailboxError
from mail2line.extraction import ExtractionResult, Extractor, GeminiClient
from mail2line.parsers.patterns import PatternExtractor
from mail2line.sources import InboundMessage, Mailbox, MailboxReader

from .summary import ERROR_CONFIG, ERROR_GMAIL, ERROR_LINE, ERROR_PARSING, ERROR_UNKNOWN, RunSummary

MAX_EXECUTION_SEC = 6 * 60
SAFETY_MARGIN_SEC = 30


class TodoExtractor(Protocol):
    def extract_with_status(self, body: str, message_id: str, sender: str, subject: str) -> ExtractionResult: ...


class RunOrchestrator:
    """One end-to-end run: config, fetch, per-message extract/format/push, summary.

    ``run()`` never raises; fatal problems end up in ``RunSummary.fatal_error``.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        mailbox: Mailbox,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        *,
        extractor_factory: Callable[[AppConfig], TodoExtractor] | None = None,
        dispatcher_factory: Callable[[str], Dispatcher] | None = None,
        clock: Callable[[], float] = time.monotonic,
        run_budget_sec: float = MAX_EXECUTION_SEC,
        safety_margin_sec: float = SAFETY_MARGIN_SEC,
        gemini_model: str = DEFAULT_GEMINI_MODEL,
        http_timeout_sec: float = 30.0,
        correlation_id: str | None = None,
    ):
        self.config_store = config_store
        self.mailbox = mailbox
        self.logger = logger or logging.getLogger(__name__)
        self.extractor_factory = extractor_factory or self._default_extractor
        self.dispatcher_factory = dispatcher_factory or self._default_dispatcher
        self.clock = clock
        self.run_budget_sec = run_budget_sec
        self.safety_margin_sec = safety_margin_sec
        self.gemini_model = gemini_model
        self.http_timeout_sec = http_timeout_sec
        self.correlation_id = correlation_id

    def _default_extractor(self, config: AppConfig) -> TodoExtractor:
        if config.extraction_mode == "patterns":
            return PatternExtractor(logger=self.logger)
        client = GeminiClient(
            api_key=config.gemini_api_key,
            model=self.gemini_model,
            timeout_sec=self.http_timeout_sec,
        )
        return Extractor(client=client, logger=self.logger)

    def _default_dispatcher(self, access_token: str) -> Dispatcher:
        return Dispatcher(LineClient(access_token, timeout_sec=self.http_timeout_sec), logger=self.logger)

    def run(self) -> RunSummary:
        started = self.clock()
        deadline = started + self.run_budget_sec - self.safety_margin_sec
        summary = RunSummary(correlation_id=self.correlation_id)
        self.logger.info("=== Email processing started ===")

        destination: tuple[Dispatcher, str] | None = None
        try:
            try:
                config = self.config_store.load()
            except ConfigError as exc:
                self.logger.error("Configuration load failed: %s", exc)
                summary.fail(ERROR_CONFIG, str(exc))
                if exc.has_line_credentials:
                    dispatcher = self.dispatcher_factory(exc.line_access_token)
                    self._send_summary(dispatcher, exc.line_group_id, summary, started)
                else:
                    self._finish(summary, started)
                return summary

            self.logger.info(
                "Configuration loaded: group %s, %s whitelisted senders, watermark %s",
                config.line_group_id,
                len(config.sender_whitelist),
                config.last_processed_time,
            )
            destination = (self.dispatcher_factory(config.line_access_token), config.line_group_id)
            self._process(config, summary, destination[0], started, deadline)
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("Email processing failed: %s", exc)
            summary.fail(ERROR_UNKNOWN, f"{exc.__class__.__name__}: {exc}")
            if destination is not None:
                self._send_summary(destination[0], destination[1], summary, started)
            else:
                self._finish(summary, started)
        return summary

    def _process(
        self,
        config: AppConfig,
        summary: RunSummary,
        dispatcher: Dispatcher,
        started: float,
        deadline: float,
    ) -> None:
        reader = MailboxReader(self.mailbox, max_emails_per_run=config.max_emails_per_run, logger=self.logger)
        try:
            messages = reader.fetch_new_messages(config.last_processed_time, config.sender_whitelist)
        except Exception as exc:  # noqa: BLE001
            reason = str(exc) if isinstance(exc, MailboxError) else f"{exc.__class__.__name__}: {exc}"
            self.logger.error("Mailbox fetch failed: %s", reason)
            summary.fail(ERROR_GMAIL, reason)
            self._send_summary(dispatcher, config.line_group_id, summary, started)
            return

        summary.emails_fetched = len(messages)
        if not messages:
            self.logger.info("No new emails from whitelisted senders")
            self._send_summary(dispatcher, config.line_group_id, summary, started)
            return

        extractor = self.extractor_factory(config)
        for message in messages:
            if self.clock() > deadline:
                remaining = summary.emails_fetched - summary.emails_processed
                self.logger.warning(
                    "Approaching execution time limit, leaving %s emails for the next run",
                    remaining,
                )
                summary.stopped_early = True
                break

            try:
                self._process_message(message, extractor, dispatcher, config, summary)
            except Exception as exc:  # noqa: BLE001
                summary.add_error(ERROR_UNKNOWN, f"{exc.__class__.__name__}: {exc}", message.id)
                self.logger.error("Message processing failed for %s: %s", message.id, exc)

            # Advances even when extraction or delivery failed: a visited message is never retried.
            self.config_store.update_last_processed_time(message.received_at_ms)
            summary.emails_processed += 1

        self._send_summary(dispatcher, config.line_group_id, summary, started)

    def _process_message(
        self,
        message: InboundMessage,
        extractor: TodoExtractor,
        dispatcher: Dispatcher,
        config: AppConfig,
        summary: RunSummary,
    ) -> None:
        self.logger.info("Processing email %s from %s: %s", message.id, message.sender, message.subject)

        result = extractor.extract_with_status(message.body_text, message.id, message.sender, message.subject)
        if result.failed:
            summary.add_error(ERROR_PARSING, result.error, message.id)
        if not result.items:
            self.logger.info("No todos found in email %s", message.id)
            return
        summary.todos_extracted += len(result.items)

        text = format_todos(result.items, message.sender, message.subject)
        if is_truncated(text):
            self.logger.warning("Todo message for %s exceeded the LINE limit and was truncated", message.id)
            summary.add_error(ERROR_PARSING, f"Message truncated to {len(text)} characters", message.id)

        outcome = dispatcher.push(config.line_group_id, text)
        if outcome.succeeded:
            summary.messages_sent += 1
            self.logger.info("Sent %s todos from %s to LINE", len(result.items), message.id)
        else:
            summary.add_error(ERROR_LINE, outcome.describe(), message.id)
            self.logger.error("Failed to send todos from %s to LINE: %s", message.id, outcome.describe())

    def _finish(self, summary: RunSummary, started: float) -> None:
        summary.execution_time_ms = int((self.clock() - started) * 1000)
        self.logger.info("=== Email processing finished === %s", summary.as_dict())

    def _send_summary(self, dispatcher: Dispatcher, group_id: str, summary: RunSummary, started: float) -> None:
        self._finish(summary, started)
        try:
            outcome = dispatcher.push(group_id, format_run_summary(summary))
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Run summary dispatch failed: %s", exc)
            return
        if not outcome.succeeded:
            self.logger.error("Run summary was not delivered: %s", outcome.describe())
