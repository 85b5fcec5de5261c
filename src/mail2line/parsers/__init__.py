from .patterns import PatternExtractor
from .utils import html_to_text, strip_code_fences

__all__ = ["PatternExtractor", "html_to_text", "strip_code_fences"]
