"""Shared fixtures: isolated config, fake fetch collaborator, ready-made contexts."""

from __future__ import annotations

import dataclasses
import os
import threading
from typing import Callable, Dict, List, Optional, Union

import pytest

from mtproxxy.config import HarvesterConfig, load_config_from_env
from mtproxxy.context import HarvestContext
from mtproxxy.fetch import FetchError, FetchResult


class FakeFetcher:
    """Serves canned bodies per URL; anything else raises FetchError."""

    def __init__(self, pages: Dict[str, Union[bytes, Exception]]) -> None:
        self.pages = dict(pages)
        self.calls: List[str] = []
        self._lock = threading.Lock()
        self.verify_ssl = False

    def fetch(self, url: str, *, user_agent: Optional[str] = None) -> FetchResult:
        with self._lock:
            self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "http_status_404", status=404)
        if isinstance(page, Exception):
            raise page
        return FetchResult(url=url, status=200, body=page, elapsed=0.0, user_agent=user_agent or "test-agent")


@pytest.fixture
def make_config(tmp_path, monkeypatch) -> Callable[..., HarvesterConfig]:
    for key in list(os.environ):
        if key.startswith("MTPROXXY_"):
            monkeypatch.delenv(key, raising=False)

    def _make(**overrides) -> HarvesterConfig:
        base = load_config_from_env()
        defaults = dict(
            output_dir=str(tmp_path / "out"),
            request_delay_ms=0,
            launch_stagger_ms=0,
            cycle_pause_seconds=0.0,
            status_interval_seconds=0.0,
            drain_timeout_seconds=2.0,
        )
        defaults.update(overrides)
        return dataclasses.replace(base, **defaults)

    return _make


@pytest.fixture
def make_context(make_config) -> Callable[..., HarvestContext]:
    def _make(pages: Optional[Dict[str, Union[bytes, Exception]]] = None, **overrides) -> HarvestContext:
        cfg = make_config(**overrides)
        return HarvestContext.from_config(cfg, fetcher=FakeFetcher(pages or {}))

    return _make
