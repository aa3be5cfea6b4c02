from __future__ import annotations
import base64
import enum
import re
from typing import Optional

from mergesub.services.diagnostics import DiagnosticKind, Observer, emit

_LINE_B64_RE = re.compile(r"[A-Za-z0-9+/=]+")
_B64_BODY_RE = re.compile(r"[A-Za-z0-9+/]*")
_WS_RE = re.compile(r"[\t\n\f\r ]+")
_QUOTES_RE = re.compile(r"\A[\"'`]+|[\"'`]+\Z")
_TRAILING_COMMAS_RE = re.compile(r",+\Z")
_ANY_WS_RE = re.compile(r"\s+")


class Scheme(str, enum.Enum):
    vmess = "vmess://"
    vless = "vless://"
    trojan = "trojan://"
    ss = "ss://"
    ssr = "ssr://"
    snell = "snell://"
    juicity = "juicity://"
    hysteria = "hysteria://"
    hysteria2 = "hysteria2://"
    tuic = "tuic://"
    anytls = "anytls://"
    wireguard = "wireguard://"
    socks5 = "socks5://"
    http = "http://"
    https = "https://"


# longest first so "hysteria2://" never lands on "hysteria://"
_BY_PREFIX = sorted(Scheme, key=lambda s: len(s.value), reverse=True)


def classify(line: str) -> Optional[Scheme]:
    for scheme in _BY_PREFIX:
        if line.startswith(scheme.value):
            return scheme
    return None


def b64decode_loose(text: str) -> bytes:
    """Decode base64 the way browsers' atob() does.

    Whitespace is ignored, and missing "=" padding is accepted. Raises
    ValueError when the input is not base64.
    """
    s = _WS_RE.sub("", text)
    if len(s) % 4 == 0 and s.endswith("="):
        s = s[:-2] if s.endswith("==") else s[:-1]
    if len(s) % 4 == 1 or not _B64_BODY_RE.fullmatch(s):
        raise ValueError("not base64")
    return base64.b64decode(s + "=" * (-len(s) % 4), validate=True)


def b64encode_text(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def try_decode_base64(line: str, observer: Optional[Observer] = None) -> str:
    """Unwrap a base64-encoded proxy link; anything else comes back as given."""
    if not _LINE_B64_RE.fullmatch(line):
        return line
    try:
        decoded = b64decode_loose(line).decode("utf-8")
    except ValueError as e:
        emit(observer, DiagnosticKind.line_decode, line, e)
        return line
    if classify(decoded) is None:
        return line
    return decoded


def decode_base64_content(body: str, observer: Optional[Observer] = None) -> str:
    try:
        return b64decode_loose(body).decode("utf-8")
    except ValueError as e:
        emit(observer, DiagnosticKind.body_decode, body[:120], e)
        return body


def clean_node_string(text: str) -> str:
    # '"link",' from pasted JSON/YAML lists: commas on either side of the quotes
    s = _TRAILING_COMMAS_RE.sub("", text.strip())
    s = _QUOTES_RE.sub("", s)
    s = _TRAILING_COMMAS_RE.sub("", s)
    s = _ANY_WS_RE.sub("", s)
    return s.strip()


def split_lines(text: str) -> list[str]:
    return [ln.strip() for ln in text.split("\n") if ln.strip()]
