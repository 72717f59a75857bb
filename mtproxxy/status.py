from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from colorama import Fore, Style, init as colorama_init

colorama_init(autoreset=True)
logger = logging.getLogger("mtproXXy.status")

__all__ = [
    "AtomicCounter",
    "Statistics",
    "display_statistics",
    "humanize_bytes",
    "humanize_duration",
]


def humanize_bytes(n: int) -> str:
    try:
        n = int(n)
    except Exception:
        return "0B"
    units = ["B", "KB", "MB", "GB", "TB"]
    f = float(n)
    u = 0
    while f >= 1024.0 and u < len(units) - 1:
        f /= 1024.0
        u += 1
    if u == 0:
        return f"{int(f)}{units[u]}"
    return f"{f:.1f}{units[u]}"


def humanize_duration(seconds: float) -> str:
    try:
        s = float(seconds)
    except Exception:
        s = 0.0
    s = max(0.0, s)
    m, s = divmod(int(round(s)), 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


class AtomicCounter:
    """Integer counter with its own lock; no ordering relative to other counters."""
    __slots__ = ("_lock", "_value")

    def __init__(self, value: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = int(value)

    def add(self, n: int = 1) -> int:
        with self._lock:
            self._value += n
            return self._value

    def inc(self) -> int:
        return self.add(1)

    def dec(self) -> int:
        return self.add(-1)

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    def set_max(self, value: int) -> int:
        """Raise the value to `value` if it is larger; never lowers it."""
        with self._lock:
            if value > self._value:
                self._value = int(value)
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def __int__(self) -> int:
        return self.get()

    def __repr__(self) -> str:
        return f"AtomicCounter({self.get()})"


def _counter() -> AtomicCounter:
    return AtomicCounter()


@dataclass
class Statistics:
    """
    Process counters shared by every component.

    All counters are lifetime-monotonic except `last_cycle_proxies` (reset at the
    start of each cycle) and `active_workers` (gauge). Readers sample each one
    independently; no snapshot is consistent across counters.
    `parse_errors` is reserved and currently never incremented.
    """
    total_proxies: AtomicCounter = field(default_factory=_counter)
    processed_urls: AtomicCounter = field(default_factory=_counter)
    completed_cycles: AtomicCounter = field(default_factory=_counter)
    network_errors: AtomicCounter = field(default_factory=_counter)
    parse_errors: AtomicCounter = field(default_factory=_counter)
    rejected_candidates: AtomicCounter = field(default_factory=_counter)
    unique_proxies: AtomicCounter = field(default_factory=_counter)
    active_workers: AtomicCounter = field(default_factory=_counter)
    total_requests: AtomicCounter = field(default_factory=_counter)
    successful_proxies: AtomicCounter = field(default_factory=_counter)
    total_bytes: AtomicCounter = field(default_factory=_counter)
    last_cycle_proxies: AtomicCounter = field(default_factory=_counter)
    started_at: float = field(default_factory=time.time)

    def as_dict(self) -> dict:
        out = {}
        for name, value in self.__dict__.items():
            out[name] = value.get() if isinstance(value, AtomicCounter) else value
        return out


def display_statistics(stats: Statistics) -> None:
    uptime = humanize_duration(time.time() - stats.started_at)
    mb_processed = stats.total_bytes.get() / (1024.0 * 1024.0)
    lines = [
        f"{Fore.CYAN}=== SYSTEM STATISTICS ==={Style.RESET_ALL}",
        f"Uptime: {uptime}",
        f"Total proxies: {stats.total_proxies.get()}",
        f"Unique proxies: {Fore.GREEN}{stats.unique_proxies.get()}{Style.RESET_ALL}",
        f"Successful proxies: {stats.successful_proxies.get()}",
        f"URLs processed: {stats.processed_urls.get()}/{stats.total_requests.get()}",
        f"Data processed: {mb_processed:.2f} MB",
        f"Completed cycles: {stats.completed_cycles.get()}",
        f"Network errors: {Fore.RED}{stats.network_errors.get()}{Style.RESET_ALL}",
        f"Rejected candidates: {stats.rejected_candidates.get()}",
        f"Active workers: {stats.active_workers.get()}",
        f"Last cycle: {Fore.YELLOW}+{stats.last_cycle_proxies.get()}{Style.RESET_ALL} proxies",
        f"{Fore.CYAN}========================={Style.RESET_ALL}",
    ]
    for ln in lines:
        logger.info(ln)
