from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .checkpoint import CheckpointWriter
from .config import HarvesterConfig
from .fetch import Fetcher
from .status import Statistics
from .store import RecordStore


@dataclass
class HarvestContext:
    """
    Everything a cycle needs, passed explicitly to every task.

    `stop` is the cooperative cancellation token: set it once and every loop
    (cycle, batch, pattern, match) unwinds at its next check.
    """
    config: HarvesterConfig
    store: RecordStore
    stats: Statistics
    fetcher: Fetcher
    checkpoint: CheckpointWriter
    stop: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def from_config(
        cls,
        cfg: HarvesterConfig,
        *,
        user_agents: Optional[Sequence[str]] = None,
        fetcher: Optional[Fetcher] = None,
        stop: Optional[threading.Event] = None,
    ) -> "HarvestContext":
        return cls(
            config=cfg,
            store=RecordStore(cfg.store_capacity),
            stats=Statistics(),
            fetcher=fetcher or Fetcher(
                user_agents=user_agents,
                timeout=cfg.fetch_timeout,
                connect_timeout=cfg.connect_timeout,
                verify_ssl=cfg.verify_ssl,
                max_body_bytes=cfg.max_body_bytes,
                max_redirects=cfg.max_redirects,
            ),
            checkpoint=CheckpointWriter(cfg.json_path, cfg.text_path),
            stop=stop or threading.Event(),
        )

    def cancelled(self) -> bool:
        return self.stop.is_set()
