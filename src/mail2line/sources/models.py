from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parseaddr

from mail2line.parsers.utils import html_to_text


@dataclass(frozen=True, slots=True)
class InboundMessage:
    id: str
    thread_id: str | None
    sender: str
    subject: str
    body_plain: str
    body_html: str
    received_at: datetime
    labels: tuple[str, ...] = ()

    @property
    def received_at_ms(self) -> int:
        received_at = self.received_at
        if received_at.tzinfo is None:
            received_at = received_at.replace(tzinfo=timezone.utc)
        return int(received_at.timestamp() * 1000)

    @property
    def sender_address(self) -> str:
        _, address = parseaddr(self.sender or "")
        return (address or self.sender or "").strip().lower()

    @property
    def body_text(self) -> str:
        """Body as plain text; HTML is converted only when the message carries an HTML part."""
        if self.body_html:
            return html_to_text(self.body_html)
        return (self.body_plain or "").strip()


@dataclass(slots=True)
class MailThread:
    thread_id: str
    messages: list[InboundMessage] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
