from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

ERROR_CONFIG = "config"
ERROR_GMAIL = "gmail"
ERROR_PARSING = "parsing"
ERROR_LINE = "line"
ERROR_UNKNOWN = "unknown"


@dataclass(slots=True)
class ProcessingError:
    type: str
    message: str
    email_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class RunSummary:
    correlation_id: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    emails_fetched: int = 0
    emails_processed: int = 0
    todos_extracted: int = 0
    messages_sent: int = 0
    errors: list[ProcessingError] = field(default_factory=list)
    execution_time_ms: int = 0
    fatal_error: ProcessingError | None = None
    stopped_early: bool = False

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, error_type: str, message: str, email_id: str | None = None) -> ProcessingError:
        error = ProcessingError(type=error_type, message=message, email_id=email_id)
        self.errors.append(error)
        return error

    def fail(self, error_type: str, message: str) -> None:
        self.fatal_error = self.add_error(error_type, message)

    def as_dict(self) -> dict:
        return {
            "emails_fetched": self.emails_fetched,
            "emails_processed": self.emails_processed,
            "todos_extracted": self.todos_extracted,
            "messages_sent": self.messages_sent,
            "errors": len(self.errors),
            "execution_time_sec": round(self.execution_time_ms / 1000, 2),
            "stopped_early": self.stopped_early,
            "success": self.success,
        }
