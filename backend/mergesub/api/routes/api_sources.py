from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from mergesub.api.deps import get_store, require_api_access
from mergesub.schemas.subscription import AddResult, DeleteResult, NodeBatch, SubscriptionBatch
from mergesub.services.line_codec import clean_node_string
from mergesub.services.source_admin import (
    add_nodes,
    add_subscriptions,
    delete_nodes,
    delete_subscriptions,
    split_input,
)
from mergesub.services.store import Store

router = APIRouter()


@router.post("/add-subscriptions", response_model=AddResult)
async def api_add_subscriptions(
    payload: SubscriptionBatch, store: Store = Depends(get_store), caller=Depends(require_api_access)
):
    if not payload.subscription:
        raise HTTPException(status_code=400, detail="Subscription URL is required")
    # a single string is one URL here, not a newline separated list
    items = [payload.subscription] if isinstance(payload.subscription, str) else payload.subscription
    result = await add_subscriptions(store, items)
    if not result.changed:
        raise HTTPException(status_code=400, detail="All subscriptions already exist")
    return AddResult(added=result.changed, existing=result.unchanged)


@router.post("/add-nodes", response_model=AddResult)
async def api_add_nodes(payload: NodeBatch, store: Store = Depends(get_store), caller=Depends(require_api_access)):
    if not payload.nodes:
        raise HTTPException(status_code=400, detail="Nodes are required")
    result = await add_nodes(store, split_input(payload.nodes))
    if not result.changed:
        raise HTTPException(status_code=400, detail="All nodes already exist")
    return AddResult(added=result.changed, existing=result.unchanged)


@router.delete("/delete-subscriptions", response_model=DeleteResult)
async def api_delete_subscriptions(
    payload: SubscriptionBatch, store: Store = Depends(get_store), caller=Depends(require_api_access)
):
    if not payload.subscription:
        raise HTTPException(status_code=400, detail="Subscription URL is required")
    result = await delete_subscriptions(store, split_input(payload.subscription), normalize=clean_node_string)
    if not result.changed:
        raise HTTPException(status_code=404, detail="No subscriptions found to delete")
    return DeleteResult(deleted=result.changed, not_found=result.unchanged)


@router.delete("/delete-nodes", response_model=DeleteResult)
async def api_delete_nodes(payload: NodeBatch, store: Store = Depends(get_store), caller=Depends(require_api_access)):
    if not payload.nodes:
        raise HTTPException(status_code=400, detail="Nodes are required")
    result = await delete_nodes(store, split_input(payload.nodes))
    if not result.changed:
        raise HTTPException(status_code=404, detail="No nodes found to delete")
    return DeleteResult(deleted=result.changed, not_found=result.unchanged)
