from .sources import SourceSpec, normalize_sources
from .static_url import StaticUrlScraper

__all__ = [
    "SourceSpec",
    "StaticUrlScraper",
    "normalize_sources",
]
