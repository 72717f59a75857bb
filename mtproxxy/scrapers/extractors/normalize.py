from __future__ import annotations

from typing import Optional, Tuple

from ...records import PORT_MAX_LEN, SECRET_MAX_LEN, SECRET_MIN_LEN, SERVER_MAX_LEN

__all__ = [
    "sanitize",
    "strip_label",
    "normalize_triple",
    "raw_lengths_ok",
    "validate_triple",
    "SERVER_LABELS",
    "PORT_LABELS",
    "SECRET_LABELS",
]

SERVER_LABELS = ("server:", "host:")
PORT_LABELS = ("port:",)
SECRET_LABELS = ("secret:", "key:")

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_SECRET_BLANKS = frozenset(" \t\r\n")


def sanitize(value: str) -> str:
    """
    Keep printable ASCII only, collapse runs of spaces into one, drop leading
    and trailing spaces.
    """
    out = []
    pending_space = False
    for ch in value:
        if not (" " <= ch <= "~"):
            continue
        if ch == " ":
            pending_space = bool(out)
            continue
        if pending_space:
            out.append(" ")
            pending_space = False
        out.append(ch)
    return "".join(out)


def strip_label(value: str, labels: Tuple[str, ...]) -> str:
    """Strip leading labels case-insensitively until none is left ("Server: Server: x" -> "x")."""
    stripped = True
    while stripped:
        stripped = False
        for label in labels:
            while value[: len(label)].lower() == label:
                value = sanitize(value[len(label):])
                stripped = True
    return value


def raw_lengths_ok(server: bytes, port: bytes, secret: bytes) -> bool:
    return (
        0 < len(server) <= SERVER_MAX_LEN
        and 0 < len(port) <= PORT_MAX_LEN
        and SECRET_MIN_LEN <= len(secret) <= SECRET_MAX_LEN
    )


def normalize_triple(server: bytes, port: bytes, secret: bytes) -> Tuple[str, str, str]:
    s = strip_label(sanitize(server.decode("latin-1")), SERVER_LABELS)
    p = strip_label(sanitize(port.decode("latin-1")), PORT_LABELS)
    k = strip_label(sanitize(secret.decode("latin-1")), SECRET_LABELS)
    return s, p, k


def _port_ok(port: str) -> bool:
    if not (0 < len(port) <= PORT_MAX_LEN) or not port.isascii() or not port.isdigit():
        return False
    return 1 <= int(port) <= 65535


def _secret_ok(secret: str) -> bool:
    if not (SECRET_MIN_LEN <= len(secret) <= SECRET_MAX_LEN):
        return False
    valid = 0
    hex_count = 0
    for ch in secret:
        if ch in _HEX_DIGITS:
            valid += 1
            hex_count += 1
        elif ch == "=":
            valid += 1
        elif ch not in _SECRET_BLANKS:
            return False
    return valid >= 16 and hex_count >= 8


def validate_triple(server: str, port: str, secret: str) -> Optional[str]:
    """Return None when the triple is acceptable, else the name of the failing field."""
    if not (4 <= len(server) <= 253):
        return "server"
    if not _port_ok(port):
        return "port"
    if not _secret_ok(secret):
        return "secret"
    return None
