from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple
import re
import threading

from ...records import ProxyRecord

# Every pattern yields exactly three named groups. Names (not positions) carry the
# meaning, so secret-first layouts such as "<secret>@host:port" are read correctly.
FIELDS = ("server", "port", "secret")
FLAGS = re.IGNORECASE | re.MULTILINE | re.DOTALL

_HEX = rb"[0-9a-f=]"
_SECRET_Q = rb"(?P<secret>[^\"]+?)"
_LINK_SECRET = rb"(?P<secret>[^&\s\"'<>]+)"

# A leading unbounded run is anchored with a lookbehind on its own class: matches
# start only where the run starts, so long blobs scan in linear time.
_RAW_PATTERNS: Tuple[bytes, ...] = (
    # Labelled text: "Server: ... Port: ... Secret: ..."
    rb"Server:[\s]*(?P<server>[^\r\n]+?)[\s]*Port:[\s]*(?P<port>[0-9]{1,5})[\s]*Secret:[\s]*(?P<secret>" + _HEX + rb"{16,512})",
    rb"server[\s]*:[\s]*(?P<server>[^\r\n]+?)[\s,;|]*port[\s]*:[\s]*(?P<port>[0-9]{1,5})[\s,;|]*secret[\s]*:[\s]*(?P<secret>" + _HEX + rb"{16,512})",
    rb"Host:[\s]*(?P<server>[^\r\n]+?)[\s]*Port:[\s]*(?P<port>[0-9]{1,5})[\s]*Key:[\s]*(?P<secret>" + _HEX + rb"{16,512})",
    rb"\bIP[\s]*[:=][\s]*(?P<server>[0-9]{1,3}(?:\.[0-9]{1,3}){3})[\s,;|]*Port[\s]*[:=][\s]*(?P<port>[0-9]{1,5})[\s,;|]*Secret[\s]*[:=][\s]*(?P<secret>" + _HEX + rb"{16,512})",
    rb"address[\s]*=[\s]*(?P<server>[^\r\n]+?)[\s]*port[\s]*=[\s]*(?P<port>[0-9]+)[\s]*secret[\s]*=[\s]*(?P<secret>" + _HEX + rb"+)",
    rb"Server[\s]*=[\s]*(?P<server>[^\r\n]+?)[\s]*Port[\s]*=[\s]*(?P<port>[0-9]+)[\s]*Secret[\s]*=[\s]*(?P<secret>" + _HEX + rb"+)",
    rb"Server\s*[=:]\s*(?P<server>[^\r\n]+)[\r\n]+Port\s*[=:]\s*(?P<port>[0-9]+)[\r\n]+Secret\s*[=:]\s*(?P<secret>" + _HEX + rb"+)",
    rb"Host\s*[=:]\s*(?P<server>[^\r\n]+)[\r\n]+Port\s*[=:]\s*(?P<port>[0-9]+)[\r\n]+Key\s*[=:]\s*(?P<secret>" + _HEX + rb"+)",
    rb"proxy_server[:=]\s*(?P<server>[^\s,]+)\s*proxy_port[:=]\s*(?P<port>[0-9]+)\s*proxy_secret[:=]\s*(?P<secret>[^\s,]+)",
    rb"proxy[\s]*:[\s]*(?P<server>[^:\s]+):(?P<port>[0-9]+)[\s]*key[\s]*:[\s]*(?P<secret>[0-9a-f]+)",
    rb"mtproto[\s]*:[\s]*(?P<server>[^:\s]+):(?P<port>[0-9]+)[\s]*secret[\s]*:[\s]*(?P<secret>[0-9a-f]+)",
    # JSON fragments
    rb"\"server\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"",
    rb"\"host\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"",
    rb"\"ip\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"",
    rb"\"address\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"",
    rb"\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"[\s]*,[\s]*\"(?:server|host)\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?",
    rb"\"(?:server|host)\"[\s]*:[\s]*\"(?P<server>[^\"]+?)\"[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"" + _SECRET_Q + rb"\"[\s]*,[\s]*\"port\"[\s]*:[\s]*\"?(?P<port>[0-9]+)\"?",
    rb"\"endpoint\"[\s]*:[\s]*\"(?P<server>[^:\"]+):(?P<port>[0-9]+)\"[\s]*,[\s]*\"secret\"[\s]*:[\s]*\"(?P<secret>[^\"]+)\"",
    rb"\{\s*\"s\"\s*:\s*\"(?P<server>[^\"]+)\"\s*,\s*\"p\"\s*:\s*(?P<port>[0-9]+)\s*,\s*\"k\"\s*:\s*\"(?P<secret>[^\"]+)\"\s*\}",
    rb"\[\s*\"(?P<server>[^\"]+)\"\s*,\s*(?P<port>[0-9]+)\s*,\s*\"(?P<secret>[^\"]+)\"\s*\]",
    # Deep links
    rb"tg://proxy\?server=(?P<server>[^&\s]+)&port=(?P<port>[0-9]+)&secret=" + _LINK_SECRET,
    rb"tg://socks\?server=(?P<server>[^&\s]+)&port=(?P<port>[0-9]+)&secret=" + _LINK_SECRET,
    rb"t\.me/proxy\?server=(?P<server>[^&\s]+)&port=(?P<port>[0-9]+)&secret=" + _LINK_SECRET,
    rb"server=(?P<server>[^&\s]+)&(?:amp;)?port=(?P<port>[0-9]+)&(?:amp;)?secret=(?P<secret>[^&\s\"'<>]+)",
    rb"host=(?P<server>[^&\s]+)&(?:amp;)?port=(?P<port>[0-9]+)&(?:amp;)?key=(?P<secret>[^&\s\"'<>]+)",
    rb"port=(?P<port>[0-9]+)&(?:amp;)?server=(?P<server>[^&\s]+)&(?:amp;)?secret=(?P<secret>[^&\s\"'<>]+)",
    rb"secret=(?P<secret>[^&\s\"'<>]+)&(?:amp;)?server=(?P<server>[^&\s]+)&(?:amp;)?port=(?P<port>[0-9]+)",
    rb"mtproxy://(?P<server>[^:/\s]+):(?P<port>[0-9]+)\?secret=(?P<secret>[0-9a-f]+)",
    rb"socks5://(?P<server>[^:/\s]+):(?P<port>[0-9]+)\?secret=(?P<secret>[0-9a-f]+)",
    # Delimited triples
    rb"(?<![0-9a-z.-])(?P<server>[0-9a-z.-]+)[\s\-:]+(?P<port>[0-9]{1,5})[\s\-:]+(?P<secret>[0-9a-f\s\-=]{16,512})",
    rb"(?<![0-9a-z._-])(?P<server>[0-9a-z._-]+):(?P<port>[0-9]{1,5}):(?P<secret>" + _HEX + rb"{16,512})",
    rb"(?<![a-z0-9.-])(?P<server>[a-z0-9.-]+\.[a-z]{2,}):(?P<port>[0-9]+):(?P<secret>[0-9a-f]{32,})",
    rb"(?<![0-9a-z.-])(?P<server>[0-9a-z.-]+)\s*[,;]\s*(?P<port>[0-9]{1,5})\s*[,;]\s*(?P<secret>" + _HEX + rb"{16,512})",
    rb"\|\s*(?P<server>[^|]+)\s*\|\s*(?P<port>[0-9]+)\s*\|\s*(?P<secret>[^|]+)\s*\|",
    # Bare IPv4 forms
    rb"(?P<server>[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}):(?P<port>[0-9]{1,5}):(?P<secret>" + _HEX + rb"{16,512})",
    rb"(?P<server>[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3})[^0-9]*(?P<port>[0-9]{1,5})[^0-9a-f]*(?P<secret>[0-9a-f\s\-=]{16,512})",
    rb"(?<![0-9])(?P<server>[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+)[\s|\-]+(?P<port>[0-9]+)[\s|\-]+(?P<secret>[0-9a-f]+)",
    rb"(?P<server>[0-9]{1,3}(?:\.[0-9]{1,3}){3})\s+(?P<port>[0-9]{1,5})\s+(?P<secret>" + _HEX + rb"{16,512})",
    # Secret first
    rb"(?<![0-9a-f])(?P<secret>[0-9a-f]{32,})@(?P<server>[0-9a-z.-]+):(?P<port>[0-9]{1,5})",
    rb"(?<![0-9a-f])(?P<secret>[0-9a-f]{32,512})[\s@]+(?P<server>[^:\s]+):(?P<port>[0-9]{1,5})",
    rb"(?<![0-9a-f=])(?P<secret>" + _HEX + rb"+)[\s@]+(?P<server>[^:\s]+):(?P<port>[0-9]{1,5})",
    rb"\b(?P<secret>[0-9a-f]{64})\b[^0-9a-f]*(?P<server>[0-9a-z.-]+):(?P<port>[0-9]+)",
    rb"(?<![A-Za-z0-9+/=])(?P<secret>[A-Za-z0-9+/=]{20,})[\s@]+(?P<server>[^:\s]+):(?P<port>[0-9]{1,5})",
    rb"(?<![A-Za-z0-9_-])(?P<secret>[A-Za-z0-9_-]{20,})[\s@]+(?P<server>[^:\s]+):(?P<port>[0-9]{1,5})",
    rb"(?<![0-9a-z.-])(?P<server>[0-9a-z.-]+):(?P<port>[0-9]{1,5})[\s@|]+(?P<secret>[0-9a-f]{32,512})",
)


def _compile(raw: bytes) -> "re.Pattern[bytes]":
    pat = re.compile(raw, FLAGS)
    if pat.groups != 3 or set(pat.groupindex) != set(FIELDS):
        raise ValueError(f"pattern must define exactly the groups {FIELDS}: {raw!r}")
    return pat


# Order matters only for which pattern claims a span first; duplicates collapse on hash.
PATTERNS: Tuple["re.Pattern[bytes]", ...] = tuple(_compile(p) for p in _RAW_PATTERNS)


@dataclass(frozen=True)
class ExtractContext:
    source_url: str = ""
    stop: Optional[threading.Event] = None
    batch_cap: int = 5000

    def cancelled(self) -> bool:
        return self.stop is not None and self.stop.is_set()


@dataclass
class ExtractResult:
    proxies: List[ProxyRecord] = field(default_factory=list)
    candidates: int = 0
    rejected: int = 0
    duplicates: int = 0
    truncated: bool = False
    cancelled: bool = False


class BaseExtractor(Protocol):
    def extract(self, content: bytes, *, context: Optional[ExtractContext] = None) -> ExtractResult:
        ...
