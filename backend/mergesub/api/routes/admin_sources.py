from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from mergesub.api.deps import get_store, require_admin
from mergesub.schemas.subscription import AdminDataOut, MessageOut, NodeInput, SubscriptionInput
from mergesub.services.line_codec import split_lines
from mergesub.services.source_admin import (
    ChangeResult,
    add_nodes,
    add_subscriptions,
    delete_nodes,
    delete_subscriptions,
)
from mergesub.services.store import Store

router = APIRouter()


def _message(result: ChangeResult, noun: str, verb: str, miss: str) -> str:
    if result.all_changed:
        return f"{noun.capitalize()} {verb}"
    return f"{verb.capitalize()} {len(result.changed)} {noun}(s), {len(result.unchanged)} {miss}"


@router.get("/data", response_model=AdminDataOut)
async def get_data(store: Store = Depends(get_store), admin=Depends(require_admin)):
    data = await store.get()
    return AdminDataOut(subscriptions=data.subscriptions, nodes=split_lines(data.nodes))


@router.post("/add-subscription", response_model=MessageOut)
async def add_subscription(payload: SubscriptionInput, store: Store = Depends(get_store), admin=Depends(require_admin)):
    text = (payload.subscription or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Subscription URL is required")
    result = await add_subscriptions(store, text.split("\n"))
    if not result.changed:
        raise HTTPException(status_code=400, detail="All subscriptions already exist")
    return MessageOut(message=_message(result, "subscription", "added", "already exist"))


@router.post("/delete-subscription", response_model=MessageOut)
async def delete_subscription(
    payload: SubscriptionInput, store: Store = Depends(get_store), admin=Depends(require_admin)
):
    text = (payload.subscription or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Subscription URL is required")
    result = await delete_subscriptions(store, text.split("\n"))
    if not result.changed:
        raise HTTPException(status_code=404, detail="No matching subscriptions found")
    return MessageOut(message=_message(result, "subscription", "deleted", "not found"))


@router.post("/add-node", response_model=MessageOut)
async def add_node(payload: NodeInput, store: Store = Depends(get_store), admin=Depends(require_admin)):
    text = (payload.node or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Node is required")
    result = await add_nodes(store, text.split("\n"))
    if not result.changed:
        raise HTTPException(status_code=400, detail="All nodes already exist")
    return MessageOut(message=_message(result, "node", "added", "already exist"))


@router.post("/delete-node", response_model=MessageOut)
async def delete_node(payload: NodeInput, store: Store = Depends(get_store), admin=Depends(require_admin)):
    text = (payload.node or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Node is required")
    result = await delete_nodes(store, text.split("\n"))
    if not result.changed:
        raise HTTPException(status_code=404, detail="No matching nodes found")
    return MessageOut(message=_message(result, "node", "deleted", "not found"))
