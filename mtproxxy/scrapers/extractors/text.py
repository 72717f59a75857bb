from __future__ import annotations

import logging
import re
import time
from typing import Optional, Sequence, Set

from ...records import ProxyRecord
from .base import PATTERNS, ExtractContext, ExtractResult
from .normalize import normalize_triple, raw_lengths_ok, validate_triple

logger = logging.getLogger("mtproXXy.extract")


class TextExtractor:
    """
    Runs the ordered pattern table over a raw buffer.

    Each pattern scans left to right; after a match the scan resumes one byte
    past its end. Candidates are normalized, validated, hashed and deduplicated
    within this document. The stop event is polled once per pattern and once
    per match.
    """
    def __init__(self, patterns: Optional[Sequence["re.Pattern[bytes]"]] = None) -> None:
        self.patterns = tuple(patterns) if patterns is not None else PATTERNS

    def extract(self, content: bytes, *, context: Optional[ExtractContext] = None) -> ExtractResult:
        ctx = context or ExtractContext()
        result = ExtractResult()
        if not content or ctx.cancelled():
            result.cancelled = ctx.cancelled()
            return result

        seen: Set[int] = set()
        length = len(content)
        cap = max(1, int(ctx.batch_cap))

        for idx, pattern in enumerate(self.patterns):
            if ctx.cancelled():
                result.cancelled = True
                break
            if len(result.proxies) >= cap:
                result.truncated = True
                break
            found = 0
            pos = 0
            while pos < length:
                if ctx.cancelled():
                    result.cancelled = True
                    break
                if len(result.proxies) >= cap:
                    result.truncated = True
                    break
                m = pattern.search(content, pos)
                if m is None:
                    break
                pos = m.end() + 1
                rec = self._candidate(m, ctx.source_url, result)
                if rec is None:
                    continue
                if rec.hash_value in seen:
                    result.duplicates += 1
                    continue
                seen.add(rec.hash_value)
                result.proxies.append(rec)
                found += 1
                logger.debug(
                    "found proxy %s:%s (secret: %.32s...) pattern=%d", rec.server, rec.port, rec.secret, idx
                )
            if found:
                logger.debug("pattern %d: %d proxies from %s", idx, found, ctx.source_url or "-")
            if result.cancelled:
                break

        if result.truncated:
            logger.warning(
                "extract: per-fetch cap %d reached for %s, remaining matches skipped", cap, ctx.source_url or "-"
            )
        return result

    @staticmethod
    def _candidate(m: "re.Match[bytes]", source: str, result: ExtractResult) -> Optional[ProxyRecord]:
        result.candidates += 1
        raw_server, raw_port, raw_secret = m.group("server"), m.group("port"), m.group("secret")
        if raw_server is None or raw_port is None or raw_secret is None:
            result.rejected += 1
            return None
        if not raw_lengths_ok(raw_server, raw_port, raw_secret):
            result.rejected += 1
            return None
        server, port, secret = normalize_triple(raw_server, raw_port, raw_secret)
        if validate_triple(server, port, secret) is not None:
            result.rejected += 1
            return None
        return ProxyRecord.build(server, port, secret, source, now=time.time())
