from __future__ import annotations
import asyncio
import logging
from typing import Iterable, Optional

import httpx

from mergesub.core.config import DEFAULT_USER_AGENT
from mergesub.services.diagnostics import Observer
from mergesub.services.endpoint_rewriter import RelayTarget, rewrite_content
from mergesub.services.http_client import build_async_client
from mergesub.services.line_codec import b64encode_text, decode_base64_content
from mergesub.services.subscription_fetcher import DEFAULT_TIMEOUT_SECONDS, fetch_subscription

CONTENT_TYPE = "text/plain; charset=utf-8"
logger = logging.getLogger(__name__)


async def _fetch_decoded(
    client: httpx.AsyncClient,
    url: str,
    target: Optional[RelayTarget],
    timeout: float,
    user_agent: str,
    observer: Optional[Observer],
) -> Optional[str]:
    body = await fetch_subscription(client, url, timeout=timeout, user_agent=user_agent, observer=observer)
    # an empty document counts as a failed source
    if not body:
        return None
    decoded = decode_base64_content(body, observer)
    return rewrite_content(decoded, target, observer)


async def merge_subscriptions(
    sources: Iterable[str],
    nodes: str,
    target: Optional[RelayTarget] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    observer: Optional[Observer] = None,
) -> str:
    """Fetch every source concurrently and append the manual nodes.

    Output order is source order, then nodes. Sources that fail leave no
    trace in the result; duplicates across sources are kept.
    """
    urls = list(sources)
    if client is None:
        async with build_async_client(timeout, user_agent) as owned:
            return await merge_subscriptions(
                urls, nodes, target, client=owned, timeout=timeout, user_agent=user_agent, observer=observer
            )

    results = await asyncio.gather(
        *(_fetch_decoded(client, url, target, timeout, user_agent, observer) for url in urls)
    )
    kept = [r for r in results if r is not None]
    logger.info("merge sources=%s ok=%s skipped=%s", len(urls), len(kept), len(urls) - len(kept))

    merged = "\n".join(kept)
    return f"{merged}\n{rewrite_content(nodes, target, observer)}"


def encode_output(text: str) -> str:
    return b64encode_text(text)


async def produce_subscription(
    sources: Iterable[str],
    nodes: str,
    relay_address: Optional[str] = None,
    relay_port: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    observer: Optional[Observer] = None,
) -> tuple[str, str]:
    target = RelayTarget.build(relay_address, relay_port)
    plain = await merge_subscriptions(
        sources, nodes, target, client=client, timeout=timeout, user_agent=user_agent, observer=observer
    )
    return encode_output(plain), CONTENT_TYPE
