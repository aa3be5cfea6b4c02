from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from mergesub.core.config import Settings, settings
from mergesub.core.security import verify_credentials
from mergesub.services.http_client import build_async_client
from mergesub.services.store import Store

basic_scheme = HTTPBasic(auto_error=False, realm="Node")


def get_settings() -> Settings:
    return settings


def get_store(request: Request) -> Store:
    return request.app.state.store


async def get_http_client(cfg: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with build_async_client(cfg.HTTP_TIMEOUT_SECONDS, cfg.USER_AGENT) as client:
        yield client


def _check_basic(credentials: Optional[HTTPBasicCredentials], cfg: Settings) -> Optional[str]:
    # no configured credentials means the admin surface is open
    if not cfg.auth_enabled:
        return None
    if not credentials or not verify_credentials(cfg, credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": 'Basic realm="Node"'},
        )
    return credentials.username


async def require_admin(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    cfg: Settings = Depends(get_settings),
) -> Optional[str]:
    return _check_basic(credentials, cfg)


async def require_api_access(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    cfg: Settings = Depends(get_settings),
) -> Optional[str]:
    if not cfg.API_REQUIRE_AUTH:
        return None
    return _check_basic(credentials, cfg)
