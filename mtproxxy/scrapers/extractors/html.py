from __future__ import annotations

import html as html_lib
import logging
from typing import List, Optional, Sequence

from parsel import Selector

from .base import ExtractContext, ExtractResult
from .text import TextExtractor

logger = logging.getLogger("mtproXXy.extract.html")

DEFAULT_SELECTORS = ("a::attr(href)", "//body//text()")


class HtmlExtractor:
    """
    HTML pages (e.g. t.me/s/<channel> previews) carry deep links as
    entity-escaped hrefs. The page is flattened into link targets plus visible
    text, appended to the raw buffer, and handed to the text engine.
    """
    def __init__(self, *, selectors: Optional[Sequence[str]] = None, text: Optional[TextExtractor] = None) -> None:
        self._selectors = list(selectors or DEFAULT_SELECTORS)
        self._text = text or TextExtractor()

    def flatten(self, content: bytes) -> bytes:
        try:
            sel = Selector(text=content.decode("utf-8", errors="replace"))
        except Exception as e:
            logger.debug("html: parse failed, using raw buffer only: %s", e)
            return b""
        parts: List[str] = []
        for s in self._selectors:
            expr = s.strip()
            nodes = sel.xpath(expr) if expr.startswith(("/", "./")) else sel.css(expr)
            parts.extend(html_lib.unescape(v) for v in nodes.getall())
        return "\n".join(p.strip() for p in parts if p and p.strip()).encode("utf-8", errors="replace")

    def extract(self, content: bytes, *, context: Optional[ExtractContext] = None) -> ExtractResult:
        flat = self.flatten(content) if content else b""
        buf = content + b"\n" + flat if flat else content
        return self._text.extract(buf, context=context)
