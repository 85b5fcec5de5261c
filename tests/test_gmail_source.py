from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest

from mail2line.sources.email_gmail import GmailMailbox
from mail2line.sources.email_gmail.source import collect_bodies, parse_message


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


RAW_MESSAGE = {
    "id": "msg-1",
    "threadId": "thr-1",
    "internalDate": "1767225600000",
    "labelIds": ["INBOX", "UNREAD"],
    "payload": {
        "mimeType": "multipart/mixed",
        "headers": [
            {"name": "From", "value": "Alice <alice@x.com>"},
            {"name": "Subject", "value": "Plan"},
        ],
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": _b64("1. Ship it")}},
                    {"mimeType": "text/html", "body": {"data": _b64("<ol><li>Ship it</li></ol>")}},
                ],
            },
            {"mimeType": "text/plain", "filename": "notes.txt", "body": {"attachmentId": "att-1"}},
        ],
    },
}


def test_parse_message() -> None:
    message = parse_message(RAW_MESSAGE)

    assert message.id == "msg-1"
    assert message.thread_id == "thr-1"
    assert message.sender_address == "alice@x.com"
    assert message.subject == "Plan"
    assert message.body_plain == "1. Ship it"
    assert message.body_html == "<ol><li>Ship it</li></ol>"
    assert message.received_at_ms == 1_767_225_600_000
    assert message.labels == ("INBOX", "UNREAD")


def test_collect_bodies_skips_attachments() -> None:
    payload = {"mimeType": "text/plain", "filename": "a.txt", "body": {"data": _b64("attached")}}

    assert collect_bodies(payload) == ("", "")


@pytest.fixture
def gmail_service():
    service = MagicMock()
    threads = service.users().threads()
    threads.list().execute.return_value = {"threads": [{"id": "thr-1"}, {"id": "thr-2"}]}
    threads.list_next.return_value = None
    threads.get().execute.return_value = {"id": "thr-1", "messages": [RAW_MESSAGE]}
    return service


def test_search_returns_threads(gmail_service, test_logger) -> None:  # noqa: ANN001
    mailbox = GmailMailbox(service=gmail_service, logger=test_logger)

    threads = mailbox.search("from:alice@x.com", 0, 10)

    assert [thread.thread_id for thread in threads] == ["thr-1", "thr-2"]
    assert threads[0].messages[0].id == "msg-1"
    assert threads[0].labels == ["INBOX", "UNREAD"]


def test_search_applies_offset(gmail_service, test_logger) -> None:  # noqa: ANN001
    mailbox = GmailMailbox(service=gmail_service, logger=test_logger)

    threads = mailbox.search("from:alice@x.com", 1, 10)

    assert [thread.thread_id for thread in threads] == ["thr-2"]


def test_consecutive_searches_continue_listing(gmail_service, test_logger) -> None:  # noqa: ANN001
    threads_api = gmail_service.users().threads()
    second_page = MagicMock()
    second_page.execute.return_value = {"threads": [{"id": "thr-3"}]}
    threads_api.list_next.side_effect = [second_page, None, None]
    mailbox = GmailMailbox(service=gmail_service, logger=test_logger)

    first = mailbox.search("from:alice@x.com", 0, 2)
    second = mailbox.search("from:alice@x.com", 2, 2)

    assert [thread.thread_id for thread in first] == ["thr-1", "thr-2"]
    assert [thread.thread_id for thread in second] == ["thr-3"]
    assert threads_api.list.return_value.execute.call_count == 1
    assert second_page.execute.call_count == 1

    mailbox.search("from:alice@x.com", 0, 1)

    assert threads_api.list.return_value.execute.call_count == 2


def test_mailbox_needs_auth_or_service() -> None:
    with pytest.raises(ValueError):
        GmailMailbox()
