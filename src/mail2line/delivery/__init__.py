from .formatter import MAX_MESSAGE_LENGTH, TRUNCATION_SUFFIX, format_run_summary, format_todos, is_truncated
from .line import Dispatcher, LineClient, classify_status
from .models import DeliveryOutcome, ErrorKind

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "TRUNCATION_SUFFIX",
    "DeliveryOutcome",
    "Dispatcher",
    "ErrorKind",
    "LineClient",
    "classify_status",
    "format_run_summary",
    "format_todos",
    "is_truncated",
]
