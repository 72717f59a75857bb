from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class HarvesterConfig:
    # Output
    output_dir: str
    json_file: str
    text_file: str
    # Source catalog (URLs + user-agent pool)
    sources_file: str | None
    # Store / extraction bounds
    store_capacity: int
    fetch_batch_cap: int
    # Scheduler
    concurrent_downloads: int
    max_threads: int
    cycle_pause_seconds: float
    save_interval_seconds: float
    status_interval_seconds: float
    max_cycles: int
    request_delay_ms: int
    launch_stagger_ms: int
    # Fetch
    fetch_timeout: float
    connect_timeout: float
    verify_ssl: bool
    max_body_bytes: int
    max_redirects: int
    # Shutdown
    drain_timeout_seconds: float
    log_level: str

    @property
    def batch_size(self) -> int:
        # Batch size can never exceed the thread ceiling
        return max(1, min(self.concurrent_downloads, self.max_threads))

    @property
    def json_path(self) -> str:
        return os.path.join(self.output_dir, self.json_file)

    @property
    def text_path(self) -> str:
        return os.path.join(self.output_dir, self.text_file)


def _flag(name: str, default: str) -> bool:
    # Set-but-empty counts as unset
    raw = os.environ.get(name, "").strip() or default
    return raw.lower() not in ("0", "false", "no", "off")


def load_config_from_env() -> HarvesterConfig:
    """Build the config from MTPROXXY_* variables. Malformed numbers raise ValueError."""
    output_dir = os.environ.get("MTPROXXY_OUTPUT_DIR", "output")
    json_file = os.environ.get("MTPROXXY_JSON_FILE", "proxies.json")
    text_file = os.environ.get("MTPROXXY_TEXT_FILE", "proxies.txt")
    sources_file = os.environ.get("MTPROXXY_SOURCES_FILE") or None

    store_capacity = int(os.environ.get("MTPROXXY_STORE_CAPACITY", "1000000"))
    fetch_batch_cap = int(os.environ.get("MTPROXXY_FETCH_BATCH_CAP", "5000"))

    concurrent_downloads = int(os.environ.get("MTPROXXY_CONCURRENT_DOWNLOADS", "20"))
    max_threads = int(os.environ.get("MTPROXXY_MAX_THREADS", "50"))
    cycle_pause_seconds = float(os.environ.get("MTPROXXY_CYCLE_PAUSE_SECONDS", "8"))
    save_interval_seconds = float(os.environ.get("MTPROXXY_SAVE_INTERVAL_SECONDS", "10"))
    status_interval_seconds = float(os.environ.get("MTPROXXY_STATUS_INTERVAL_SECONDS", "30"))
    max_cycles = int(os.environ.get("MTPROXXY_MAX_CYCLES", "0"))
    request_delay_ms = int(os.environ.get("MTPROXXY_REQUEST_DELAY_MS", "100"))
    launch_stagger_ms = int(os.environ.get("MTPROXXY_LAUNCH_STAGGER_MS", "10"))

    fetch_timeout = float(os.environ.get("MTPROXXY_FETCH_TIMEOUT", "25"))
    connect_timeout = float(os.environ.get("MTPROXXY_CONNECT_TIMEOUT", "10"))
    # Off by default; opt in with MTPROXXY_VERIFY_SSL=1 or --verify-ssl
    verify_ssl = _flag("MTPROXXY_VERIFY_SSL", "0")
    max_body_bytes = int(os.environ.get("MTPROXXY_MAX_BODY_BYTES", str(100 * 1024 * 1024)))
    max_redirects = int(os.environ.get("MTPROXXY_MAX_REDIRECTS", "5"))

    drain_timeout_seconds = float(os.environ.get("MTPROXXY_DRAIN_TIMEOUT_SECONDS", "30"))
    log_level = os.environ.get("MTPROXXY_LOG_LEVEL", "INFO").upper()

    if store_capacity < 1 or fetch_batch_cap < 1:
        raise ValueError("store capacity and fetch batch cap must be positive")
    if concurrent_downloads < 1 or max_threads < 1:
        raise ValueError("concurrency settings must be positive")
    if fetch_timeout <= 0 or connect_timeout <= 0:
        raise ValueError("timeouts must be positive")

    return HarvesterConfig(
        output_dir=output_dir,
        json_file=json_file,
        text_file=text_file,
        sources_file=sources_file,
        store_capacity=store_capacity,
        fetch_batch_cap=fetch_batch_cap,
        concurrent_downloads=concurrent_downloads,
        max_threads=max_threads,
        cycle_pause_seconds=max(0.0, cycle_pause_seconds),
        save_interval_seconds=max(0.0, save_interval_seconds),
        status_interval_seconds=max(0.0, status_interval_seconds),
        max_cycles=max(0, max_cycles),
        request_delay_ms=max(0, request_delay_ms),
        launch_stagger_ms=max(0, launch_stagger_ms),
        fetch_timeout=fetch_timeout,
        connect_timeout=connect_timeout,
        verify_ssl=verify_ssl,
        max_body_bytes=max_body_bytes,
        max_redirects=max(0, max_redirects),
        drain_timeout_seconds=max(0.0, drain_timeout_seconds),
        log_level=log_level,
    )
