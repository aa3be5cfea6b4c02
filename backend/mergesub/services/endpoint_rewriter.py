from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import parse_qs, urlsplit

from mergesub.services.diagnostics import DiagnosticKind, Observer, emit
from mergesub.services.line_codec import Scheme, b64decode_loose, b64encode_text, classify

REWRITABLE_TRANSPORTS = ("ws", "xhttp")
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class RelayTarget:
    """Preferred relay endpoint (usually a CDN edge) substituted into nodes."""

    address: str
    port: str

    @classmethod
    def build(cls, address: Optional[str], port: Optional[str]) -> Optional["RelayTarget"]:
        address = (address or "").strip()
        port = (port or "").strip()
        if not address or not port:
            return None
        return cls(address=address, port=port)

    @property
    def uri_host(self) -> str:
        if ":" in self.address and not self.address.startswith("["):
            return f"[{self.address}]"
        return self.address


def parse_port(value: str) -> int:
    """Base-10 port from the leading digits of value, like JS parseInt."""
    m = _LEADING_INT_RE.match(value)
    if not m:
        raise ValueError(f"invalid port: {value!r}")
    return int(m.group(1), 10)


class RewriteStrategy(Protocol):
    def rewrite(self, line: str, target: RelayTarget, observer: Optional[Observer] = None) -> str: ...


class PassThrough:
    def rewrite(self, line: str, target: RelayTarget, observer: Optional[Observer] = None) -> str:
        return line


class VmessRewriter:
    """vmess://<base64 json>; rewritten only for ws/xhttp over TLS.

    A node whose "host" equals its "add" routes directly on purpose and is
    left alone.
    """

    def rewrite(self, line: str, target: RelayTarget, observer: Optional[Observer] = None) -> str:
        payload = line[len(Scheme.vmess.value):]
        try:
            record = json.loads(b64decode_loose(payload).decode("utf-8"))
            if not isinstance(record, dict):
                raise ValueError("vmess payload is not a JSON object")
        # deeply nested arrays blow the decoder's recursion limit
        except (ValueError, RecursionError) as e:
            emit(observer, DiagnosticKind.vmess_rewrite, line, e)
            return line

        if record.get("net") not in REWRITABLE_TRANSPORTS or record.get("tls") != "tls":
            return line
        host = record.get("host")
        if host and host == record.get("add"):
            return line

        try:
            port = parse_port(target.port)
        except ValueError as e:
            emit(observer, DiagnosticKind.vmess_rewrite, line, e)
            return line

        record["add"] = target.address
        record["port"] = port
        encoded = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
        return Scheme.vmess.value + b64encode_text(encoded)


class UriRewriter:
    """vless:// and trojan:// links; swaps only the host:port after the "@"."""

    def rewrite(self, line: str, target: RelayTarget, observer: Optional[Observer] = None) -> str:
        try:
            query = parse_qs(urlsplit(line).query, keep_blank_values=True)
        except ValueError as e:
            emit(observer, DiagnosticKind.uri_rewrite, line, e)
            return line

        transport = query.get("type", [""])[0]
        security = query.get("security", [""])[0]
        if transport not in REWRITABLE_TRANSPORTS or security != "tls":
            return line

        scheme, _, rest = line.partition("://")
        end = len(rest)
        for sep in "/?#":
            idx = rest.find(sep)
            if idx != -1:
                end = min(end, idx)
        authority, tail = rest[:end], rest[end:]

        # userinfo may itself contain "@" once percent-decoding is undone; the
        # server part always follows the last one
        userinfo, at, hostport = authority.rpartition("@")
        host, colon, port = hostport.rpartition(":")
        if not at or hostport.startswith("[") or not colon or not host or not (port.isascii() and port.isdigit()):
            emit(observer, DiagnosticKind.unsupported_authority, line, f"cannot rewrite authority {authority!r}")
            return line

        # URL hostnames compare lowercased; the host param is taken verbatim
        sni = query.get("host", [""])[0]
        if sni and sni == host.lower():
            return line

        return f"{scheme}://{userinfo}@{target.uri_host}:{target.port}{tail}"


STRATEGIES: dict[Scheme, RewriteStrategy] = {
    Scheme.vmess: VmessRewriter(),
    Scheme.vless: UriRewriter(),
    Scheme.trojan: UriRewriter(),
}
_DEFAULT = PassThrough()


def rewrite_line(line: str, target: Optional[RelayTarget], observer: Optional[Observer] = None) -> str:
    if target is None or not line:
        return line
    return STRATEGIES.get(classify(line), _DEFAULT).rewrite(line, target, observer)


def rewrite_content(content: str, target: Optional[RelayTarget], observer: Optional[Observer] = None) -> str:
    """Rewrite every line of content; blank lines stay in place as ""."""
    if target is None:
        return content
    return "\n".join(rewrite_line(ln.strip(), target, observer) for ln in content.split("\n"))
