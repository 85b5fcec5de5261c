from __future__ import annotations

import pytest

from fakes import LINE_GROUP, FakeClock, FakeMailbox, FakeResponse, FakeSession, build_message, single_message_threads
from mail2line.config import ConfigStore
from mail2line.delivery import Dispatcher, LineClient
from mail2line.exceptions import MailboxError
from mail2line.extraction import ExtractedItem, ExtractionResult, Priority
from mail2line.services import RunOrchestrator


class FakeExtractor:
    def __init__(self, todos: dict[str, list[str]] | None = None, errors: dict[str, str] | None = None, clock=None, cost_sec=0.0):  # noqa: ANN001
        self.todos = todos or {}
        self.errors = errors or {}
        self.clock = clock
        self.cost_sec = cost_sec
        self.calls: list[str] = []
        self.bodies: dict[str, str] = {}

    def extract_with_status(self, body: str, message_id: str, sender: str, subject: str) -> ExtractionResult:
        self.calls.append(message_id)
        self.bodies[message_id] = body
        if self.clock is not None:
            self.clock.advance(self.cost_sec)
        if message_id in self.errors:
            return ExtractionResult(error=self.errors[message_id])
        items = [
            ExtractedItem(
                description=description,
                priority=Priority.HIGH,
                source_message_id=message_id,
                source_sender=sender,
                source_subject=subject,
            )
            for description in self.todos.get(message_id, ["Default task"])
        ]
        return ExtractionResult(items=items)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession(FakeResponse(200, {}))


@pytest.fixture
def sleeps() -> list[float]:
    return []


def _orchestrator(config_store, mailbox, extractor, session, sleeps, test_logger, clock=None):  # noqa: ANN001, ANN202
    def dispatcher_factory(token: str) -> Dispatcher:
        return Dispatcher(LineClient(token, session=session), logger=test_logger, sleep=sleeps.append)

    return RunOrchestrator(
        config_store=config_store,
        mailbox=mailbox,
        logger=test_logger,
        extractor_factory=lambda config: extractor,
        dispatcher_factory=dispatcher_factory,
        clock=clock or FakeClock(),
    )


def _pushed_texts(session: FakeSession) -> list[str]:
    return [call["json"]["messages"][0]["text"] for call in session.calls]


def test_only_whitelisted_messages_are_processed(config_store: ConfigStore, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox(
        single_message_threads(
            build_message("m3000", "a@x.com", 3000),
            build_message("m2500", "b@x.com", 2500),
            build_message("m2000", "a@x.com", 2000),
        )
    )
    extractor = FakeExtractor()

    summary = _orchestrator(config_store, mailbox, extractor, session, sleeps, test_logger).run()

    assert extractor.calls == ["m2000", "m3000"]
    assert summary.emails_fetched == 2
    assert summary.emails_processed == 2
    assert summary.todos_extracted == 2
    assert summary.messages_sent == 2
    assert summary.success
    assert config_store.last_processed_time() == 3000

    texts = _pushed_texts(session)
    assert len(texts) == 3
    assert texts[0].startswith("📧 New Todos from Email")
    assert texts[-1].startswith("📊 Email processing summary")
    assert all(call["json"]["to"] == LINE_GROUP for call in session.calls)


def test_html_message_is_extracted_as_text(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    message = build_message("m2000", "a@x.com", 2000, body="Pay invoice", body_html="<p><b>Pay invoice</b></p>")
    extractor = FakeExtractor()

    _orchestrator(config_store, FakeMailbox(single_message_threads(message)), extractor, session, sleeps, test_logger).run()

    assert extractor.bodies["m2000"] == "Pay invoice"


def test_empty_extraction_skips_dispatch_but_advances_watermark(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox(single_message_threads(build_message("m2000", "a@x.com", 2000)))
    extractor = FakeExtractor(todos={"m2000": []})

    summary = _orchestrator(config_store, mailbox, extractor, session, sleeps, test_logger).run()

    assert summary.emails_processed == 1
    assert summary.messages_sent == 0
    assert len(session.calls) == 1  # run summary only
    assert config_store.last_processed_time() == 2000


def test_second_run_without_new_mail_is_idle(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox(single_message_threads(build_message("m2000", "a@x.com", 2000)))
    orchestrator = _orchestrator(config_store, mailbox, FakeExtractor(), session, sleeps, test_logger)

    first = orchestrator.run()
    second = orchestrator.run()

    assert first.emails_fetched == 1
    assert second.emails_fetched == 0
    assert second.success
    assert config_store.last_processed_time() == 2000
    assert _pushed_texts(session)[-1].startswith("📊 Email processing summary")


def test_delivery_failure_is_recorded_and_run_continues(config_store, sleeps, test_logger) -> None:  # noqa: ANN001
    server_error = FakeResponse(500, {"message": "Internal error"})
    session = FakeSession(server_error, server_error, server_error, server_error, FakeResponse(200, {}))
    mailbox = FakeMailbox(
        single_message_threads(build_message("m2000", "a@x.com", 2000), build_message("m3000", "a@x.com", 3000))
    )

    summary = _orchestrator(config_store, mailbox, FakeExtractor(), session, sleeps, test_logger).run()

    assert summary.emails_processed == 2
    assert summary.messages_sent == 1
    assert not summary.success
    assert summary.fatal_error is None
    assert [(error.type, error.email_id) for error in summary.errors] == [("line", "m2000")]
    assert config_store.last_processed_time() == 3000
    assert sleeps == [1.0, 2.0, 4.0]
    assert len(session.calls) == 4 + 1 + 1


def test_extraction_failure_is_recorded(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox(single_message_threads(build_message("m2000", "a@x.com", 2000)))
    extractor = FakeExtractor(errors={"m2000": "Gemini API error: 503"})

    summary = _orchestrator(config_store, mailbox, extractor, session, sleeps, test_logger).run()

    assert [(error.type, error.email_id) for error in summary.errors] == [("parsing", "m2000")]
    assert config_store.last_processed_time() == 2000


def test_deadline_stops_new_work(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    clock = FakeClock()
    mailbox = FakeMailbox(
        single_message_threads(*[build_message(f"m{t}", "a@x.com", t) for t in (2000, 3000, 4000, 5000)])
    )
    extractor = FakeExtractor(clock=clock, cost_sec=200)

    summary = _orchestrator(config_store, mailbox, extractor, session, sleeps, test_logger, clock=clock).run()

    # budget 360s minus 30s margin: work starts at t=0 and t=200, not at t=400
    assert extractor.calls == ["m2000", "m3000"]
    assert summary.stopped_early
    assert summary.emails_fetched == 4
    assert summary.emails_processed == 2
    assert config_store.last_processed_time() == 3000


def test_missing_config_aborts_without_dispatch(repository, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox()

    summary = _orchestrator(ConfigStore(repository), mailbox, FakeExtractor(), session, sleeps, test_logger).run()

    assert summary.fatal_error is not None
    assert summary.fatal_error.type == "config"
    assert session.calls == []
    assert mailbox.queries == []


def test_invalid_config_with_line_credentials_sends_failure_summary(
    config_store, repository, session, sleeps, test_logger  # noqa: ANN001
) -> None:
    repository.set("maxEmailsPerRun", "0")
    mailbox = FakeMailbox()

    summary = _orchestrator(config_store, mailbox, FakeExtractor(), session, sleeps, test_logger).run()

    assert summary.fatal_error.type == "config"
    assert mailbox.queries == []
    texts = _pushed_texts(session)
    assert len(texts) == 1
    assert "Status: Failed" in texts[0]


def test_mailbox_failure_is_fatal_but_reported(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    mailbox = FakeMailbox(error=MailboxError("token expired"))

    summary = _orchestrator(config_store, mailbox, FakeExtractor(), session, sleeps, test_logger).run()

    assert summary.fatal_error.type == "gmail"
    assert config_store.last_processed_time() == 1000
    texts = _pushed_texts(session)
    assert len(texts) == 1
    assert "token expired" in texts[0]


def test_watermark_never_decreases(config_store, session, sleeps, test_logger) -> None:  # noqa: ANN001
    config_store.update_last_processed_time(10_000)
    mailbox = FakeMailbox(single_message_threads(build_message("m2000", "a@x.com", 2000)))

    summary = _orchestrator(config_store, mailbox, FakeExtractor(), session, sleeps, test_logger).run()

    assert summary.emails_fetched == 0
    assert config_store.last_processed_time() == 10_000
