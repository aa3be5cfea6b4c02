from __future__ import annotations
from typing import Optional

import httpx

from mergesub.core.config import settings


def build_async_client(timeout: Optional[float] = None, user_agent: Optional[str] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS),
        follow_redirects=True,
        headers={"User-Agent": user_agent or settings.USER_AGENT},
    )
