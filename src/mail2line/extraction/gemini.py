from __future__ import annotations

import json
import logging
from typing import Any

import requests

from mail2line.config import DEFAULT_GEMINI_MODEL
from mail2line.exceptions import ExtractionError
from mail2line.parsers.utils import strip_code_fences

from .models import ExtractedItem, ExtractionResult, ParseResult, Priority

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

GENERATION_CONFIG = {
    "temperature": 0.2,
    "topP": 0.95,
    "topK": 40,
    "responseMimeType": "text/plain",
}

EXTRACTION_PROMPT = """You are a todo extraction assistant. Extract actionable todo items from the following email.

Email Subject: {subject}

Email Content:
{body}

Instructions:
1. Extract ONLY actionable todo items (tasks that need to be done)
2. Ignore greetings, signatures, and non-actionable content
3. Return todos in JSON format as an array of objects
4. Each todo should have: description (string), priority (optional: "high", "medium", "low")
5. If no todos found, return an empty array

Format:
[
  {{"description": "Review pull request", "priority": "high"}},
  {{"description": "Update documentation"}}
]

Return ONLY the JSON array, no additional text."""


def build_extraction_prompt(body: str, subject: str) -> str:
    return EXTRACTION_PROMPT.format(subject=subject, body=body)


class GeminiClient:
    """Thin wrapper around the ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout_sec: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    def generate(self, prompt: str) -> dict[str, Any]:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": GENERATION_CONFIG,
        }
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            raise ExtractionError(f"Gemini request failed: {exc}") from exc

        if response.status_code != 200:
            raise ExtractionError(f"Gemini API error: {response.status_code} - {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ExtractionError("Gemini response is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ExtractionError("Gemini response is not a JSON object")
        return data


def parse_candidate_text(data: dict[str, Any]) -> ParseResult:
    """Pull ``candidates[0].content.parts[0].text`` out of a generateContent response."""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ParseResult.malformed("response has no candidates")
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ParseResult.malformed("candidate has no content parts")
    text = parts[0].get("text")
    if not isinstance(text, str):
        return ParseResult.malformed("candidate part has no text")
    return ParseResult.ok(text)


def parse_todo_payload(raw_text: str) -> ParseResult:
    """Validate model output as a JSON array of ``{description, priority?}`` objects.

    Entries without a usable description are dropped; the surviving entries are
    returned as ``(description, priority)`` tuples.
    """
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        return ParseResult.malformed("empty response text")
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        return ParseResult.malformed(f"invalid JSON: {exc.msg}")
    if not isinstance(decoded, list):
        return ParseResult.malformed(f"expected a JSON array, got {type(decoded).__name__}")

    entries: list[tuple[str, Priority | None]] = []
    for entry in decoded:
        if not isinstance(entry, dict):
            continue
        description = entry.get("description")
        if not isinstance(description, str) or not description.strip():
            continue
        entries.append((description.strip(), Priority.parse(entry.get("priority"))))
    return ParseResult.ok(entries)


class Extractor:
    def __init__(
        self,
        client: GeminiClient,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def extract_with_status(
        self,
        body: str,
        message_id: str,
        sender: str,
        subject: str,
    ) -> ExtractionResult:
        """Extract todos, reporting failures in the result instead of raising."""
        prompt = build_extraction_prompt((body or "").strip(), subject)

        try:
            data = self.client.generate(prompt)
        except ExtractionError as exc:
            self.logger.error("Todo extraction failed for %s: %s", message_id, exc)
            return ExtractionResult(error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Unexpected extraction failure for %s: %s", message_id, exc)
            return ExtractionResult(error=f"{exc.__class__.__name__}: {exc}")

        envelope = parse_candidate_text(data)
        if not envelope.is_ok:
            self.logger.warning("No content in Gemini response for %s: %s", message_id, envelope.reason)
            return ExtractionResult()

        parsed = parse_todo_payload(envelope.value)
        if not parsed.is_ok:
            self.logger.error("Failed to parse Gemini response for %s: %s", message_id, parsed.reason)
            return ExtractionResult(error=f"Unparseable extraction response: {parsed.reason}")

        items = [
            ExtractedItem(
                description=description,
                priority=priority,
                source_message_id=message_id,
                source_sender=sender,
                source_subject=subject,
            )
            for description, priority in parsed.value
        ]
        self.logger.info("Todos extracted by Gemini for %s: %s", message_id, len(items))
        return ExtractionResult(items=items)

    def extract(self, body: str, message_id: str, sender: str, subject: str) -> list[ExtractedItem]:
        return self.extract_with_status(body, message_id, sender, subject).items
