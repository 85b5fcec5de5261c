"""Plain-text rendering of todo lists and run reports for LINE."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mail2line.extraction.models import ExtractedItem, Priority

if TYPE_CHECKING:
    from mail2line.services.summary import RunSummary

MAX_MESSAGE_LENGTH = 5000
TRUNCATION_SUFFIX = "\n\n...(truncated)"
DIVIDER = "─────────────────"
MAX_SUMMARY_ERRORS = 10

PRIORITY_MARKERS = {
    Priority.HIGH: "🔴 ",
    Priority.MEDIUM: "🟡 ",
    Priority.LOW: "🟢 ",
}


def priority_marker(priority: Priority | None) -> str:
    if priority is None:
        return ""
    return PRIORITY_MARKERS.get(priority, "")


def truncate(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def is_truncated(text: str) -> bool:
    return text.endswith(TRUNCATION_SUFFIX)


def format_todos(
    items: list[ExtractedItem],
    sender: str,
    subject: str,
    limit: int = MAX_MESSAGE_LENGTH,
) -> str:
    if not items:
        raise ValueError("format_todos needs at least one item")

    lines = [
        "📧 New Todos from Email",
        "",
        f"From: {sender}",
        f"Subject: {subject}",
        "",
        DIVIDER,
        "",
    ]
    for number, item in enumerate(items, start=1):
        lines.append(f"{number}. {priority_marker(item.priority)}{item.description}")

    plural = "s" if len(items) > 1 else ""
    lines.extend(["", DIVIDER, f"Total: {len(items)} todo{plural}"])
    return truncate("\n".join(lines), limit)


def format_run_summary(summary: RunSummary, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if summary.fatal_error:
        status = "Failed"
    elif summary.success:
        status = "Success"
    else:
        status = "Completed with errors"

    lines = [
        "📊 Email processing summary",
        "",
        f"Status: {status}",
        f"Emails fetched: {summary.emails_fetched}",
        f"Emails processed: {summary.emails_processed}",
        f"Todos extracted: {summary.todos_extracted}",
        f"Messages sent: {summary.messages_sent}",
        f"Errors: {len(summary.errors)}",
    ]
    for error in summary.errors[:MAX_SUMMARY_ERRORS]:
        where = f" ({error.email_id})" if error.email_id else ""
        lines.append(f"- [{error.type}]{where} {error.message}")
    hidden = len(summary.errors) - MAX_SUMMARY_ERRORS
    if hidden > 0:
        lines.append(f"- ... and {hidden} more")

    lines.extend(["", f"Execution time: {summary.execution_time_ms / 1000:.2f}s"])
    return truncate("\n".join(lines), limit)
