from fastapi import APIRouter
from mergesub.api.routes import (
    admin_sources,
    api_sources,
    public_sub,
)

api_router = APIRouter()
api_router.include_router(admin_sources.router, prefix="/admin", tags=["admin"])
api_router.include_router(api_sources.router, prefix="/api", tags=["api"])
# catch-all /{token}, keep last
api_router.include_router(public_sub.router, tags=["subscription"])
