"""
relay/api.py — Bearer-authenticated update API for the dynamic store.

  POST /api/save   merge a JSON object into the store
  GET  /api/get    return the whole store
  GET  /health     unauthenticated liveness probe

Authentication runs as middleware ahead of routing, so a request with a bad
token gets 401 even when its method would also be rejected.
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import LOGGER
from core.state import DurableMapping, DurableStore
from core.storage import loads_strict

log = LOGGER.getChild("api")

router = APIRouter(prefix="/api")
health_router = APIRouter()

_AUTH_EXEMPT = {"/health"}


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Require ``Authorization: Bearer <token>`` on everything but the health probe."""

    def __init__(self, app, token: str) -> None:
        super().__init__(app)
        self._expected = f"Bearer {token}"

    async def dispatch(self, request: Request, call_next):
        if request.scope["path"] in _AUTH_EXEMPT:
            return await call_next(request)

        if request.headers.get("Authorization", "") == self._expected:
            return await call_next(request)

        log.warning("Rejected %s %s from %s: bad or missing bearer token",
                    request.method, request.scope["path"], request.client.host if request.client else "-")
        return JSONResponse(
            {"error": "Unauthorized", "detail": "Provide Authorization: Bearer <BEARER_TOKEN>"},
            status_code=401,
        )


@router.post("/save")
async def save_data(request: Request):
    body = await request.body()
    try:
        data = loads_strict(body)
    except ValueError:
        raise HTTPException(400, "Invalid JSON data")
    if not isinstance(data, dict):
        raise HTTPException(400, "Invalid JSON data")

    request.app.state.store.merge(data)
    log.info("Saved %d key(s) to store: %s", len(data), ", ".join(sorted(data)))
    return {"message": "Data saved successfully"}


@router.get("/get")
async def get_data(request: Request):
    return request.app.state.store.get()


@health_router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {"status": "ok", "store_keys": len(state.store), "rules": len(state.mapping)}


def create_api_app(store: DurableStore, mapping: DurableMapping, token: str) -> FastAPI:
    """Build the API app around the shared store and mapping."""
    application = FastAPI(docs_url=None, redoc_url=None)
    application.state.store = store
    application.state.mapping = mapping
    application.add_middleware(BearerAuthMiddleware, token=token)
    application.include_router(router)
    application.include_router(health_router)
    return application
