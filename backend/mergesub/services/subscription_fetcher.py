from __future__ import annotations
import asyncio
from typing import Optional

import httpx

from mergesub.core.config import DEFAULT_USER_AGENT
from mergesub.services.diagnostics import DiagnosticKind, Observer, emit

DEFAULT_TIMEOUT_SECONDS = 10.0


async def fetch_subscription(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    observer: Optional[Observer] = None,
) -> Optional[str]:
    """GET one subscription document.

    Returns the body on a 2xx response and None otherwise; network errors,
    timeouts and bad URLs are reported to the observer, never raised.
    timeout bounds the whole exchange, body included, not just each read.
    """
    try:
        resp = await asyncio.wait_for(
            client.get(url, headers={"User-Agent": user_agent}, timeout=timeout), timeout
        )
    except asyncio.TimeoutError:
        emit(observer, DiagnosticKind.source_unavailable, url, f"timed out after {timeout}s")
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        emit(observer, DiagnosticKind.source_unavailable, url, f"{type(e).__name__}: {e}")
        return None
    if not resp.is_success:
        emit(observer, DiagnosticKind.source_unavailable, url, f"HTTP {resp.status_code}")
        return None
    return resp.text
