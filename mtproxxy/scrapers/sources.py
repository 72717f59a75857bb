from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..records import FetchTask
from .extractors.base import BaseExtractor
from .extractors.text import TextExtractor
from .extractors.html import HtmlExtractor

SUPPORTED_TYPES = {"text", "html"}


@dataclass(frozen=True)
class SourceSpec:
    url: str
    type: str = "text"
    selectors: Optional[List[str]] = None

    def create_extractor(self) -> BaseExtractor:
        t = (self.type or "text").lower()
        if t == "html" or (self.selectors and len(self.selectors) > 0):
            return HtmlExtractor(selectors=self.selectors)
        return TextExtractor()

    def to_task(self) -> FetchTask:
        return FetchTask(url=self.url, source_type=self.type)


def _infer_type(url: str, item: Any) -> str:
    if isinstance(item, dict):
        t = str(item.get("type", "")).lower()
        if t in SUPPORTED_TYPES:
            return t
        if item.get("selectors"):
            return "html"
    lower = url.lower()
    if "t.me/s/" in lower:
        return "html"
    if lower.endswith((".txt", ".json")):
        return "text"
    return "html" if any(ext in lower for ext in (".html", ".htm")) else "text"


def normalize_sources(items: Sequence[Any]) -> List[SourceSpec]:
    """
    Accept catalog entries as plain URL strings or {"url", "type", "selectors"} objects.
    Blank, non-absolute and repeated URLs are skipped; catalog order is kept.
    """
    specs: List[SourceSpec] = []
    seen = set()
    for it in items or []:
        if isinstance(it, str):
            url = it.strip()
            sels = None
        elif isinstance(it, dict):
            url = str(it.get("url", "")).strip()
            sels = it.get("selectors")
            sels = [str(s) for s in sels] if isinstance(sels, (list, tuple)) else None
        else:
            continue
        if not url or "://" not in url or url in seen:
            continue
        seen.add(url)
        specs.append(SourceSpec(url=url, type=_infer_type(url, it), selectors=sels))
    return specs
