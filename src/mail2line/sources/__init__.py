from .models import InboundMessage, MailThread
from .reader import Mailbox, MailboxReader, build_query, filter_by_sender

__all__ = [
    "InboundMessage",
    "MailThread",
    "Mailbox",
    "MailboxReader",
    "build_query",
    "filter_by_sender",
]
