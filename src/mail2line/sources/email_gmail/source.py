from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mail2line.exceptions import MailboxError
from mail2line.sources.models import InboundMessage, MailThread

from .auth import GmailAuthManager

LIST_PAGE_MAX = 500


def decode_b64(value: str | None) -> str:
    if not value:
        return ""
    padded = value + "=" * (-len(value) % 4)
    data = base64.urlsafe_b64decode(padded.encode("utf-8"))
    return data.decode("utf-8", errors="replace")


def extract_headers(payload: dict[str, Any]) -> dict[str, str]:
    result: dict[str, str] = {}
    for item in payload.get("headers", []):
        name = item.get("name")
        if name:
            result[name.lower()] = item.get("value", "")
    return result


def collect_bodies(payload: dict[str, Any]) -> tuple[str, str]:
    """Concatenate text/plain and text/html parts; attachments are ignored."""
    text_body = ""
    html_body = ""

    def walk(part: dict[str, Any]) -> None:
        nonlocal text_body, html_body
        mime_type = part.get("mimeType", "")
        data = part.get("body", {}).get("data")
        if not part.get("filename"):
            if mime_type == "text/plain" and data:
                text_body += decode_b64(data)
            elif mime_type == "text/html" and data:
                html_body += decode_b64(data)
        for nested in part.get("parts", []):
            walk(nested)

    walk(payload)
    return text_body, html_body


def parse_message(raw: dict[str, Any], thread_id: str | None = None) -> InboundMessage:
    payload = raw.get("payload", {})
    headers = extract_headers(payload)
    text_body, html_body = collect_bodies(payload)
    if not text_body and not html_body and raw.get("snippet"):
        text_body = raw["snippet"]

    internal_date = raw.get("internalDate")
    if internal_date:
        received_at = datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    else:
        received_at = datetime.fromtimestamp(0, tz=timezone.utc)

    return InboundMessage(
        id=raw["id"],
        thread_id=raw.get("threadId") or thread_id,
        sender=headers.get("from", ""),
        subject=headers.get("subject", ""),
        body_plain=text_body,
        body_html=html_body,
        received_at=received_at,
        labels=tuple(raw.get("labelIds", [])),
    )


class GmailMailbox:
    """Gmail API implementation of the mailbox ``search`` collaborator.

    Thread ids are listed once per query: a search at offset 0 starts a new
    listing and later offsets continue from the saved page token.
    """

    def __init__(
        self,
        auth_manager: GmailAuthManager | None = None,
        service=None,  # noqa: ANN001
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        if auth_manager is None and service is None:
            raise ValueError("GmailMailbox needs an auth manager or a prebuilt service")
        self.auth_manager = auth_manager
        self._service = service
        # query -> (thread ids listed so far, request for the next page or None)
        self._listings: dict[str, tuple[list[str], Any]] = {}
        self.logger = logger or logging.getLogger(__name__)

    @property
    def service(self):  # noqa: ANN201
        if self._service is None:
            creds = self.auth_manager.ensure_credentials(interactive=False)
            self._service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        return self._service

    def _list_thread_ids(self, query: str, wanted: int, restart: bool) -> list[str]:
        """List at least ``wanted`` thread ids, resuming from the saved page token."""
        threads = self.service.users().threads()
        if restart or query not in self._listings:
            first = threads.list(userId="me", q=query, maxResults=min(wanted, LIST_PAGE_MAX))
            self._listings[query] = ([], first)
        thread_ids, request = self._listings[query]
        while request is not None and len(thread_ids) < wanted:
            response = request.execute()
            thread_ids.extend(item["id"] for item in response.get("threads", []))
            request = threads.list_next(request, response)
        self._listings[query] = (thread_ids, request)
        return thread_ids

    def search(self, query: str, offset: int, limit: int) -> list[MailThread]:
        if limit <= 0:
            return []
        try:
            thread_ids = self._list_thread_ids(query, offset + limit, restart=offset == 0)[offset : offset + limit]
            result: list[MailThread] = []
            for thread_id in thread_ids:
                raw_thread = (
                    self.service.users().threads().get(userId="me", id=thread_id, format="full").execute()
                )
                messages = [parse_message(raw, thread_id) for raw in raw_thread.get("messages", [])]
                labels = sorted({label for message in messages for label in message.labels})
                result.append(MailThread(thread_id=thread_id, messages=messages, labels=labels))
        except HttpError as exc:
            raise MailboxError(f"Gmail search failed: {exc}") from exc

        self.logger.debug("Gmail search returned %s threads (offset %s)", len(result), offset)
        return result
