from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from mergesub.api.deps import get_store
from mergesub.api.router import api_router
from mergesub.core.config import settings
from mergesub.core.logging import configure_logging
from mergesub.services.store import RedisStore, Store, StoreError, build_store

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    store = app.state.store
    if isinstance(store, RedisStore):
        await store.close()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.state.store = build_store(settings)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=500, content={"detail": "Failed to save data"})


@app.get("/health")
async def health(store: Store = Depends(get_store)):
    store_ok = await store.ping()
    return {"status": "ok" if store_ok else "degraded", "store_ok": store_ok}


app.include_router(api_router)
