from __future__ import annotations
import logging
import secrets
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import PlainTextResponse

from mergesub.api.deps import get_http_client, get_settings, get_store, require_admin
from mergesub.core.config import MergeConfig, Settings
from mergesub.services.store import Store, resolve_sub_token
from mergesub.services.subscription_merge import produce_subscription

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/get-sub-token")
async def get_sub_token(
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_settings),
    admin=Depends(require_admin),
):
    return {"token": await resolve_sub_token(cfg, store)}


@router.get("/get-apiurl")
async def get_api_url(cfg: Settings = Depends(get_settings), admin=Depends(require_admin)):
    return {"ApiUrl": cfg.API_URL}


# must stay the last route: it matches any single path segment
@router.get("/{token}")
async def subscription(
    token: str,
    cfip: Optional[str] = Query(None, alias="CFIP"),
    cfport: Optional[str] = Query(None, alias="CFPORT"),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    expected = await resolve_sub_token(cfg, store)
    if not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=404, detail="Not found")

    merge_cfg = MergeConfig.resolve(cfg, cfip, cfport)
    try:
        data = await store.get()
        body, content_type = await produce_subscription(
            data.subscriptions,
            data.nodes,
            merge_cfg.relay_address,
            merge_cfg.relay_port,
            client=client,
            timeout=merge_cfg.timeout_seconds,
            user_agent=cfg.USER_AGENT,
        )
    except Exception:
        logger.exception("subscription render failed")
        return PlainTextResponse("Internal Server Error", status_code=500)
    return Response(content=body, media_type=content_type)
