from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DiagnosticKind(str, enum.Enum):
    source_unavailable = "source_unavailable"
    line_decode = "line_decode"
    body_decode = "body_decode"
    vmess_rewrite = "vmess_rewrite"
    uri_rewrite = "uri_rewrite"
    unsupported_authority = "unsupported_authority"


@dataclass(frozen=True)
class DiagnosticEvent:
    """A swallowed fallback: which path fired, on what input, and why."""

    kind: DiagnosticKind
    line: str
    error: str


Observer = Callable[[DiagnosticEvent], None]


def log_observer(event: DiagnosticEvent) -> None:
    if event.kind == DiagnosticKind.source_unavailable:
        logger.warning("subscription skipped url=%s err=%s", event.line, event.error[:220])
    else:
        logger.debug("fallback kind=%s line=%s err=%s", event.kind.value, event.line[:120], event.error[:220])


def emit(observer: Optional[Observer], kind: DiagnosticKind, line: str, error: object) -> None:
    (observer or log_observer)(DiagnosticEvent(kind=kind, line=line, error=str(error)))
