from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    NONE = "none"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    MALFORMED = "malformed"
    NETWORK = "network"


@dataclass(slots=True)
class DeliveryOutcome:
    succeeded: bool
    http_status: int | None = None
    error_kind: ErrorKind = ErrorKind.NONE
    error_message: str | None = None
    attempts: int = 0
    error_details: list[dict] = field(default_factory=list)

    def describe(self) -> str:
        if self.succeeded:
            return f"delivered after {self.attempts} attempt(s)"
        status = self.http_status if self.http_status is not None else "n/a"
        return (
            f"{self.error_kind.value} error (status {status}) after {self.attempts} attempt(s): "
            f"{self.error_message or 'Unknown error'}"
        )
