from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional

from .records import ProxyRecord
from .status import Statistics
from .store import RecordStore

logger = logging.getLogger("mtproXXy.checkpoint")

SCHEMA_VERSION = "2.0"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_ts(ts: float) -> str:
    return time.strftime(TIME_FORMAT, time.localtime(ts))


def record_to_json(rec: ProxyRecord) -> Dict[str, Any]:
    return {
        "server": rec.server,
        "port": rec.port,
        "secret": rec.secret,
        "url": rec.connection_url,
        "source": rec.source,
        "type": rec.type,
        "country": rec.country,
        "speed_score": rec.speed_score,
        "discovered": format_ts(rec.discovered),
        "last_verified": format_ts(rec.last_verified),
        "hash": rec.hash_hex,
    }


class CheckpointWriter:
    """
    Rewrites proxies.json and proxies.txt from a store snapshot.

    - The record count is sampled once; records merged afterwards are left for
      the next checkpoint.
    - The store lock is not held while serializing (records are immutable).
    - A writer-local lock serializes the file writes.
    - Each file is written to a temp file then os.replace()d into place.
    """
    def __init__(self, json_path: str, text_path: str) -> None:
        self.json_path = os.path.abspath(json_path)
        self.text_path = os.path.abspath(text_path)
        self._lock = threading.Lock()
        for p in (self.json_path, self.text_path):
            d = os.path.dirname(p)
            if d:
                os.makedirs(d, exist_ok=True)

    def write(self, store: RecordStore, stats: Statistics, *, now: Optional[float] = None) -> bool:
        with self._lock:
            count = store.size()
            records = store.records(count)
            stamp = format_ts(time.time() if now is None else now)
            unique = stats.unique_proxies.get()
            sources = stats.processed_urls.get()
            active = [r for r in records if r.active]

            ok = True
            doc = {
                "version": SCHEMA_VERSION,
                "updated": stamp,
                "total_proxies": count,
                "unique_proxies": unique,
                "sources_processed": sources,
                "proxies": [record_to_json(r) for r in active],
            }
            try:
                self._replace(self.json_path, json.dumps(doc, indent=2, ensure_ascii=False) + "\n")
                logger.info("checkpoint: saved %d proxies to %s", len(active), self.json_path)
            except OSError as e:
                ok = False
                logger.warning("checkpoint: json write failed path=%s err=%s", self.json_path, e)

            lines: List[str] = [
                "# MTPROTO PROXY LIST",
                f"# Updated: {stamp}",
                f"# Total proxies: {count}",
                f"# Sources: {sources} URLs processed",
                f"# Unique proxies: {unique}",
                "",
            ]
            lines.extend(r.connection_url for r in active)
            try:
                self._replace(self.text_path, "\n".join(lines) + "\n")
                logger.info("checkpoint: saved %d proxies to %s", len(active), self.text_path)
            except OSError as e:
                ok = False
                logger.warning("checkpoint: text write failed path=%s err=%s", self.text_path, e)
            return ok

    @staticmethod
    def _replace(path: str, text: str) -> None:
        tmp_path = path + ".tmp"
        data = text.encode("utf-8", errors="replace")
        with open(tmp_path, "wb") as f:
            f.write(data)
            try:
                f.flush()
                os.fsync(f.fileno())
            except OSError:
                # fsync may not be available or necessary on some platforms
                pass
        os.replace(tmp_path, path)
