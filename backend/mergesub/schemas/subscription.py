from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StoreData(BaseModel):
    subscriptions: list[str] = Field(default_factory=list)
    nodes: str = ""

    @field_validator("subscriptions", mode="before")
    @classmethod
    def _subscriptions_or_empty(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return []
        return [s for s in v if isinstance(s, str)]

    @field_validator("nodes", mode="before")
    @classmethod
    def _nodes_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, str) else ""


class AdminDataOut(BaseModel):
    subscriptions: list[str]
    nodes: list[str]


# /admin/* bodies carry newline separated text
class SubscriptionInput(BaseModel):
    subscription: str | None = None


class NodeInput(BaseModel):
    node: str | None = None


# /api/* bodies accept a string or a list
class SubscriptionBatch(BaseModel):
    subscription: Union[list[str], str, None] = None


class NodeBatch(BaseModel):
    nodes: Union[list[str], str, None] = None


class MessageOut(BaseModel):
    message: str


class AddResult(BaseModel):
    success: bool = True
    added: list[str]
    existing: list[str]


class DeleteResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    deleted: list[str]
    not_found: list[str] = Field(alias="notFound")
