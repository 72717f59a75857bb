from __future__ import annotations

import time
from dataclasses import dataclass, field

__all__ = [
    "ProxyRecord",
    "FetchTask",
    "compute_hash",
    "format_hash",
    "classify_server",
    "build_connection_url",
    "SERVER_MAX_LEN",
    "PORT_MAX_LEN",
    "SECRET_MIN_LEN",
    "SECRET_MAX_LEN",
]

# Field ceilings (raw capture and stored value)
SERVER_MAX_LEN = 255
PORT_MAX_LEN = 15
SECRET_MIN_LEN = 16
SECRET_MAX_LEN = 511

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF
_HASHED_SECRET_BYTES = 64


def _fnv_update(h: int, data: bytes) -> int:
    for b in data:
        h = ((h ^ b) * FNV_PRIME) & _MASK64
    return h


def compute_hash(server: str, port: str, secret: str) -> int:
    """
    64-bit FNV-1a over "server:port:secret[:64]".

    Inputs must already be normalized; the secret is hashed as found (no case folding).
    """
    h = FNV_OFFSET_BASIS
    h = _fnv_update(h, server.encode("latin-1", errors="replace"))
    h = _fnv_update(h, b":")
    h = _fnv_update(h, port.encode("latin-1", errors="replace"))
    h = _fnv_update(h, b":")
    h = _fnv_update(h, secret.encode("latin-1", errors="replace")[:_HASHED_SECRET_BYTES])
    return h


def format_hash(value: int) -> str:
    return f"{value & _MASK64:016x}"


def classify_server(server: str) -> str:
    if server and all(c in "0123456789." for c in server):
        return "IPv4"
    return "Domain"


def build_connection_url(server: str, port: str, secret: str) -> str:
    # Values are not percent-encoded
    return f"tg://proxy?server={server}&port={port}&secret={secret}"


@dataclass(frozen=True)
class ProxyRecord:
    """
    One validated MTProto proxy endpoint.

    Immutable once built. `active` is a soft-delete flag; `verified` and
    `speed_score` are reserved for a future liveness prober and keep their
    defaults. `last_verified` is stamped once at discovery.
    """
    server: str
    port: str
    secret: str
    source: str
    hash_value: int
    connection_url: str
    type: str
    country: str = "UN"
    discovered: float = field(default_factory=time.time)
    last_verified: float = 0.0
    active: bool = True
    verified: bool = False
    speed_score: int = 50

    def __post_init__(self) -> None:
        if not (0 < len(self.server) <= SERVER_MAX_LEN):
            raise ValueError(f"server length out of range: {len(self.server)}")
        if not (0 < len(self.port) <= PORT_MAX_LEN):
            raise ValueError(f"port length out of range: {len(self.port)}")
        if not (SECRET_MIN_LEN <= len(self.secret) <= SECRET_MAX_LEN):
            raise ValueError(f"secret length out of range: {len(self.secret)}")
        if not self.last_verified:
            object.__setattr__(self, "last_verified", self.discovered)

    @classmethod
    def build(cls, server: str, port: str, secret: str, source: str, *, now: float | None = None) -> "ProxyRecord":
        ts = time.time() if now is None else float(now)
        return cls(
            server=server,
            port=port,
            secret=secret,
            source=source[:SERVER_MAX_LEN],
            hash_value=compute_hash(server, port, secret),
            connection_url=build_connection_url(server, port, secret),
            type=classify_server(server),
            discovered=ts,
            last_verified=ts,
        )

    @property
    def hash_hex(self) -> str:
        return format_hash(self.hash_value)


@dataclass(frozen=True)
class FetchTask:
    """
    A single catalog URL scheduled for one cycle.

    retry_count, priority and use_proxy are extension points; nothing consumes
    them yet and they always carry their defaults.
    """
    url: str
    source_type: str = "text"
    retry_count: int = 0
    priority: int = 1
    use_proxy: bool = False
