from __future__ import annotations

import logging
from typing import Iterable, Protocol

from mail2line.config import DEFAULT_MAX_EMAILS_PER_RUN

from .models import InboundMessage, MailThread

SEARCH_PAGE_SIZE = 50
MAX_SEARCH_PAGES = 20


class Mailbox(Protocol):
    def search(self, query: str, offset: int, limit: int) -> list[MailThread]: ...


def build_query(sender_whitelist: Iterable[str], since_ms: int) -> str:
    senders = " OR ".join(f"from:{sender}" for sender in sender_whitelist)
    # Epoch seconds: a bare date would be read in the mailbox owner's timezone.
    return f"({senders}) after:{since_ms // 1000} in:inbox"


def filter_by_sender(messages: Iterable[InboundMessage], sender_whitelist: Iterable[str]) -> list[InboundMessage]:
    allowed = {sender.strip().lower() for sender in sender_whitelist if sender.strip()}
    return [message for message in messages if message.sender_address in allowed]


class MailboxReader:
    def __init__(
        self,
        mailbox: Mailbox,
        max_emails_per_run: int = DEFAULT_MAX_EMAILS_PER_RUN,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        page_size: int = SEARCH_PAGE_SIZE,
    ):
        self.mailbox = mailbox
        self.max_emails_per_run = max_emails_per_run
        self.logger = logger or logging.getLogger(__name__)
        self.page_size = page_size

    def _search_all(self, query: str) -> list[MailThread]:
        threads: list[MailThread] = []
        for page in range(MAX_SEARCH_PAGES):
            batch = self.mailbox.search(query, page * self.page_size, self.page_size)
            threads.extend(batch)
            if len(batch) < self.page_size:
                break
        else:
            self.logger.warning("Mailbox search stopped after %s pages", MAX_SEARCH_PAGES)
        return threads

    def fetch_new_messages(self, since_ms: int, sender_whitelist: Iterable[str]) -> list[InboundMessage]:
        """Messages newer than ``since_ms`` from whitelisted senders, oldest first.

        The cap keeps the oldest messages so the watermark can advance without
        skipping anything; the rest are picked up by later runs.
        """
        whitelist = list(sender_whitelist)
        query = build_query(whitelist, since_ms)
        self.logger.info("Fetching new emails since %s from %s senders", since_ms, len(whitelist))
        self.logger.debug("Gmail query: %s", query)

        seen: set[str] = set()
        candidates: list[InboundMessage] = []
        for thread in self._search_all(query):
            for message in thread.messages:
                if message.id in seen or message.received_at_ms <= since_ms:
                    continue
                seen.add(message.id)
                candidates.append(message)

        messages = filter_by_sender(candidates, whitelist)
        skipped = len(candidates) - len(messages)
        if skipped:
            self.logger.info("Skipped %s emails from non-whitelisted senders", skipped)

        messages.sort(key=lambda message: (message.received_at_ms, message.id))
        if len(messages) > self.max_emails_per_run:
            self.logger.info(
                "Capping %s new emails to %s for this run",
                len(messages),
                self.max_emails_per_run,
            )
            messages = messages[: self.max_emails_per_run]

        self.logger.info("Fetched emails from whitelisted senders: %s", len(messages))
        return messages
