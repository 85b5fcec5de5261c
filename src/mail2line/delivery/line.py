from __future__ import annotations

import json
import logging
import time
from typing import Callable

import requests

from .models import DeliveryOutcome, ErrorKind

LINE_API_BASE = "https://api.line.me/v2/bot"
PUSH_MESSAGE_PATH = "/message/push"
DEFAULT_MAX_RETRIES = 3


class LineClient:
    def __init__(
        self,
        access_token: str,
        timeout_sec: float = 30.0,
        session: requests.Session | None = None,
        base_url: str = LINE_API_BASE,
    ):
        self.access_token = access_token
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def push_text(self, to: str, text: str) -> requests.Response:
        """Send one text message; transport errors propagate as ``requests.RequestException``."""
        payload = {"to": to, "messages": [{"type": "text", "text": text}]}
        return self.session.post(
            f"{self.base_url}{PUSH_MESSAGE_PATH}",
            json=payload,
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=self.timeout_sec,
        )


def classify_status(status_code: int) -> ErrorKind:
    if 200 <= status_code < 300:
        return ErrorKind.NONE
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.MALFORMED


def parse_error_body(body: str) -> tuple[str, list[dict]]:
    """Best-effort read of LINE's ``{message, details[]}`` error body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body or "Unknown error", []
    if not isinstance(data, dict):
        return body or "Unknown error", []
    message = data.get("message") or "Unknown error"
    details = data.get("details")
    if not isinstance(details, list):
        details = []
    return str(message), [item for item in details if isinstance(item, dict)]


def backoff_delay(retry_index: int) -> float:
    return float(2**retry_index)


class Dispatcher:
    """Push text to a LINE destination with bounded exponential backoff.

    Every failure class is retried, including auth and malformed requests that
    cannot succeed on a retry.
    """

    def __init__(
        self,
        client: LineClient,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)
        self.max_retries = max_retries
        self.sleep = sleep

    def _attempt(self, destination: str, text: str, attempt: int) -> DeliveryOutcome:
        try:
            response = self.client.push_text(destination, text)
        except requests.RequestException as exc:
            return DeliveryOutcome(
                succeeded=False,
                error_kind=ErrorKind.NETWORK,
                error_message=f"{exc.__class__.__name__}: {exc}",
                attempts=attempt,
            )

        kind = classify_status(response.status_code)
        if kind is ErrorKind.NONE:
            return DeliveryOutcome(succeeded=True, http_status=response.status_code, attempts=attempt)

        message, details = parse_error_body(response.text)
        return DeliveryOutcome(
            succeeded=False,
            http_status=response.status_code,
            error_kind=kind,
            error_message=message,
            attempts=attempt,
            error_details=details,
        )

    def push(self, destination: str, text: str) -> DeliveryOutcome:
        self.logger.info("Pushing message to LINE %s (%s chars)", destination, len(text))
        outcome = DeliveryOutcome(succeeded=False, error_message="No attempt made")

        for retry_index in range(self.max_retries + 1):
            outcome = self._attempt(destination, text, attempt=retry_index + 1)
            if outcome.succeeded:
                self.logger.info("Message sent to LINE after %s attempt(s)", outcome.attempts)
                return outcome

            if retry_index < self.max_retries:
                delay = backoff_delay(retry_index)
                self.logger.warning(
                    "LINE push attempt %s failed (%s), retrying in %.0fs",
                    outcome.attempts,
                    outcome.describe(),
                    delay,
                )
                self.sleep(delay)

        self.logger.error("All LINE push attempts exhausted: %s", outcome.describe())
        return outcome
