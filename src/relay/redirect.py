"""relay/redirect.py — ASGI app served on every redirect listen port."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from core.errors import RequestError, RuleNotFoundError
from core.logger import LOGGER
from core.state import DurableMapping, DurableStore
from relay.resolver import resolve

log = LOGGER.getChild("redirect")

_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _client_addr(request: Request) -> str:
    if request.client is None:
        return "-"
    return f"{request.client.host}:{request.client.port}"


async def handle_redirect(request: Request) -> Response:
    state = request.app.state
    host = request.headers.get("host", "")
    # scope, not request.url: a malformed Host would break URL parsing
    query = request.scope.get("query_string", b"").decode("latin-1")
    url = request.scope["path"] + (f"?{query}" if query else "")
    log.info("Received request: Host=%s, URL=%s, RemoteAddr=%s", host, url, _client_addr(request))

    try:
        resolution = resolve(host, state.store, state.mapping)
    except RuleNotFoundError as exc:
        log.warning("No redirect rule found for %s", exc.key)
        return PlainTextResponse(exc.public_message, status_code=exc.status_code)
    except RequestError as exc:
        log.error("Cannot redirect Host=%s: %s", host, exc)
        return PlainTextResponse(exc.public_message, status_code=exc.status_code)

    log.info("Redirecting to: %s", resolution.location)
    return RedirectResponse(resolution.location, status_code=302)


def create_redirect_app(store: DurableStore, mapping: DurableMapping) -> FastAPI:
    """Every method on every path goes through the resolver."""
    application = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    application.state.store = store
    application.state.mapping = mapping
    application.add_api_route("/{path:path}", handle_redirect, methods=_METHODS, include_in_schema=False)
    return application
