"""Exception hierarchy for mail2line."""

from __future__ import annotations


class Mail2LineError(Exception):
    """Base exception for all mail2line errors."""


class ConfigError(Mail2LineError):
    """Configuration is missing or invalid.

    When the LINE credentials themselves were readable and valid they are kept
    on the exception so a failure notice can still be delivered.
    """

    def __init__(
        self,
        message: str,
        *,
        line_access_token: str | None = None,
        line_group_id: str | None = None,
    ):
        super().__init__(message)
        self.line_access_token = line_access_token
        self.line_group_id = line_group_id

    @property
    def has_line_credentials(self) -> bool:
        return bool(self.line_access_token and self.line_group_id)


class MailboxError(Mail2LineError):
    """Failed to authenticate against or search the mailbox."""


class ExtractionError(Mail2LineError):
    """The extraction endpoint failed or returned an unusable payload."""


class RunAbortedError(Mail2LineError):
    """A run stopped on a fatal error (config, mailbox or unexpected)."""

    def __init__(self, message: str, summary=None):  # noqa: ANN001
        super().__init__(message)
        self.summary = summary
