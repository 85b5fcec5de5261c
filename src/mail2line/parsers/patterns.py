from __future__ import annotations

import logging
import re

from mail2line.extraction.models import ExtractedItem, ExtractionResult

# Ordered: the first pattern that yields a description wins for duplicate lines.
TODO_PATTERNS = [
    ("numbered", re.compile(r"^\s*\d+[.)]\s+(.+)$", re.MULTILINE)),
    ("bullet", re.compile(r"^\s*[-*•]\s+(.+)$", re.MULTILINE)),
    (
        "action",
        re.compile(r"^\s*(?:TODO|TASK|Action|Follow[ -]up):\s*(.+)$", re.MULTILINE | re.IGNORECASE),
    ),
    ("checkbox", re.compile(r"^\s*\[[ xX]\]\s+(.+)$", re.MULTILINE)),
]


class PatternExtractor:
    """Offline extractor that picks list-like lines out of a message body."""

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter | None = None):
        self.logger = logger or logging.getLogger(__name__)

    def find_descriptions(self, text: str) -> list[tuple[str, str]]:
        found: list[tuple[str, str]] = []
        seen: set[str] = set()
        for pattern_name, pattern in TODO_PATTERNS:
            for match in pattern.finditer(text):
                description = match.group(1).strip()
                if description and description not in seen:
                    seen.add(description)
                    found.append((pattern_name, description))
        return found

    def extract_with_status(
        self,
        body: str,
        message_id: str,
        sender: str,
        subject: str,
    ) -> ExtractionResult:
        items = [
            ExtractedItem(
                description=description,
                source_message_id=message_id,
                source_sender=sender,
                source_subject=subject,
                matched_pattern=pattern_name,
            )
            for pattern_name, description in self.find_descriptions(body or "")
        ]
        self.logger.info("Pattern extraction for %s found %s todos", message_id, len(items))
        return ExtractionResult(items=items)

    def extract(self, body: str, message_id: str, sender: str, subject: str) -> list[ExtractedItem]:
        return self.extract_with_status(body, message_id, sender, subject).items
