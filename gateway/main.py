"""
Gateway (reverse proxy). Dispatches by path prefix to the identity service, the todo service or the frontend.
Original Host, client IP and scheme are forwarded so cookies scoped to the public origin stay valid.
Port 8080 by default.
"""
import logging
import os
from contextlib import asynccontextmanager
from http.cookiejar import CookieJar, DefaultCookiePolicy

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from gateway.config import TIMEOUT_SECONDS
from gateway.routing import resolve_route

logger = logging.getLogger(__name__)

HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}
# httpx hands back a decoded body; length and encoding are recomputed, date/server come from our own server
_DROP_FROM_RESPONSE = HOP_BY_HOP | {"content-length", "content-encoding", "date", "server"}
_DROP_FROM_REQUEST = HOP_BY_HOP | {"content-length"}

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def _no_cookie_jar() -> CookieJar:
    """The upstream client is shared by every caller; it must never remember a Set-Cookie."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def forwarded_headers(request: Request) -> list[tuple[str, str]]:
    """Client headers minus hop-by-hop ones, plus X-Forwarded-For/-Proto/-Host. Host is kept as sent."""
    headers = [(k, v) for k, v in request.headers.items() if k.lower() not in _DROP_FROM_REQUEST]
    names = {k.lower() for k, _ in headers}

    client_ip = request.client.host if request.client else None
    prior = request.headers.get("x-forwarded-for")
    if client_ip:
        chain = f"{prior}, {client_ip}" if prior else client_ip
        headers = [(k, v) for k, v in headers if k.lower() != "x-forwarded-for"]
        headers.append(("x-forwarded-for", chain))
    if "x-forwarded-proto" not in names:
        headers.append(("x-forwarded-proto", request.url.scheme))
    if "x-forwarded-host" not in names and request.headers.get("host"):
        headers.append(("x-forwarded-host", request.headers["host"]))
    return headers


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.http.aclose()


def create_app(
    transport: httpx.AsyncBaseTransport | None = None,
    *,
    prefixes: list[tuple[str, str]] | None = None,
    frontend: str | None = None,
) -> FastAPI:
    """`transport` replaces the network (tests); `prefixes`/`frontend` override the configured upstreams."""
    app = FastAPI(title="Gateway", version="1.0.0", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.http = httpx.AsyncClient(
        transport=transport,
        timeout=TIMEOUT_SECONDS,
        follow_redirects=False,
        cookies=_no_cookie_jar(),
    )
    app.state.prefixes = prefixes
    app.state.frontend = frontend

    @app.api_route("/{full_path:path}", methods=_METHODS)
    async def proxy(request: Request, full_path: str):
        # raw_path keeps percent-encoding intact for the upstream
        raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
        route = resolve_route(raw_path.decode("latin-1"), request.app.state.prefixes, request.app.state.frontend)
        url = route.upstream + route.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        body = await request.body()
        try:
            upstream = await request.app.state.http.request(
                request.method,
                url,
                headers=forwarded_headers(request),
                content=body or None,
            )
        except httpx.HTTPError as e:
            logger.warning("Upstream %s unreachable for %s %s: %s", route.upstream, request.method, route.path, e)
            return JSONResponse(
                status_code=502,
                content={"detail": {"error": "bad_gateway", "error_description": "Upstream unavailable"}},
            )

        response = Response(content=upstream.content, status_code=upstream.status_code)
        # multi_items keeps every Set-Cookie
        for key, value in upstream.headers.multi_items():
            if key.lower() not in _DROP_FROM_RESPONSE:
                response.headers.append(key, value)
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gateway.main:app",
        host="127.0.0.1",
        port=int(os.environ.get("PORT", "8080")),
        reload=True,
    )
