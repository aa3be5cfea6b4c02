from __future__ import annotations
import logging
from typing import Iterable, Optional, Protocol

import redis
import redis.asyncio as aioredis
from pydantic import ValidationError

from mergesub.core.config import Settings
from mergesub.core.security import generate_sub_token
from mergesub.schemas.subscription import StoreData

DEFAULT_SUB_TOKEN = "merge-sub-default-token"
TOKEN_KEY = "SUB_TOKEN"
logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Key-value backend unreachable or refused the operation."""


class Store(Protocol):
    persistent: bool

    async def get(self) -> StoreData: ...

    async def put(self, subscriptions: Iterable[str], nodes: str) -> bool: ...

    async def get_token(self) -> Optional[str]: ...

    async def set_token(self, token: str) -> bool: ...

    async def ping(self) -> bool: ...


class MemoryStore:
    """Process-local record; nothing survives a restart."""

    persistent = False

    def __init__(self, data: Optional[StoreData] = None):
        self._data = data.model_copy(deep=True) if data else StoreData()
        self._token: Optional[str] = None

    async def get(self) -> StoreData:
        return self._data.model_copy(deep=True)

    async def put(self, subscriptions: Iterable[str], nodes: str) -> bool:
        self._data = StoreData(subscriptions=list(subscriptions), nodes=nodes)
        return True

    async def get_token(self) -> Optional[str]:
        return self._token

    async def set_token(self, token: str) -> bool:
        self._token = token
        return True

    async def ping(self) -> bool:
        return True


class RedisStore:
    """Single JSON record in Redis, plus the subscription token."""

    persistent = True

    def __init__(self, client: aioredis.Redis, data_key: str = "data", token_key: str = TOKEN_KEY):
        self._client = client
        self.data_key = data_key
        self.token_key = token_key

    @classmethod
    def from_url(cls, url: str, data_key: str = "data") -> "RedisStore":
        return cls(aioredis.Redis.from_url(url, decode_responses=True), data_key=data_key)

    async def get(self) -> StoreData:
        try:
            raw = await self._client.get(self.data_key)
        except redis.RedisError as e:
            logger.error("store read failed key=%s err=%s", self.data_key, str(e)[:220])
            return StoreData()
        if not raw:
            return StoreData()
        try:
            return StoreData.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("store record malformed key=%s err=%s", self.data_key, str(e)[:220])
            return StoreData()

    async def put(self, subscriptions: Iterable[str], nodes: str) -> bool:
        payload = StoreData(subscriptions=list(subscriptions), nodes=nodes).model_dump_json()
        try:
            await self._client.set(self.data_key, payload)
        except redis.RedisError as e:
            logger.error("store write failed key=%s err=%s", self.data_key, str(e)[:220])
            return False
        return True

    async def get_token(self) -> Optional[str]:
        try:
            return await self._client.get(self.token_key)
        except redis.RedisError as e:
            raise StoreError(str(e)) from e

    async def set_token(self, token: str) -> bool:
        try:
            await self._client.set(self.token_key, token)
        except redis.RedisError as e:
            raise StoreError(str(e)) from e
        return True

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


def build_store(settings: Settings) -> Store:
    if settings.REDIS_URL:
        return RedisStore.from_url(settings.REDIS_URL, data_key=settings.REDIS_DATA_KEY)
    logger.warning("REDIS_URL not set; using in-memory store, changes will not persist")
    return MemoryStore()


async def resolve_sub_token(settings: Settings, store: Store) -> str:
    if settings.SUB_TOKEN:
        return settings.SUB_TOKEN
    if not store.persistent:
        return DEFAULT_SUB_TOKEN
    try:
        token = await store.get_token()
        if not token:
            token = generate_sub_token()
            await store.set_token(token)
            logger.info("generated new subscription token")
        return token
    except StoreError as e:
        logger.error("token lookup failed, using default err=%s", str(e)[:220])
        return DEFAULT_SUB_TOKEN
