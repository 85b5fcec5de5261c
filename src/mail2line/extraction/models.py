from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> Priority | None:
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ExtractedItem:
    description: str
    source_message_id: str
    source_sender: str
    source_subject: str
    priority: Priority | None = None
    # Name of the TODO_PATTERNS entry that matched; None for model output.
    matched_pattern: str | None = None
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        description = (self.description or "").strip()
        if not description:
            raise ValueError("ExtractedItem description must not be empty")
        object.__setattr__(self, "description", description)


@dataclass(slots=True)
class ExtractionResult:
    items: list[ExtractedItem] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of validating an untrusted upstream payload."""

    value: Any = None
    reason: str | None = None

    @classmethod
    def ok(cls, value: Any) -> ParseResult:
        return cls(value=value)

    @classmethod
    def malformed(cls, reason: str) -> ParseResult:
        return cls(reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.reason is None
