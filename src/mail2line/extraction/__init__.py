from .gemini import Extractor, GeminiClient, build_extraction_prompt, parse_todo_payload
from .models import ExtractedItem, ExtractionResult, ParseResult, Priority

__all__ = [
    "ExtractedItem",
    "ExtractionResult",
    "Extractor",
    "GeminiClient",
    "ParseResult",
    "Priority",
    "build_extraction_prompt",
    "parse_todo_payload",
]
