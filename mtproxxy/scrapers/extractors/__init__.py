from .base import BaseExtractor, ExtractContext, ExtractResult, PATTERNS
from .text import TextExtractor
from .html import HtmlExtractor

__all__ = [
    "BaseExtractor",
    "ExtractContext",
    "ExtractResult",
    "PATTERNS",
    "TextExtractor",
    "HtmlExtractor",
]
