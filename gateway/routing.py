"""
Path-prefix routing table: /api/auth/* -> identity service, /api/todo/* -> todo service (prefix stripped),
anything else -> frontend unchanged.
"""
from dataclasses import dataclass

from gateway import config


@dataclass(frozen=True)
class Route:
    upstream: str
    path: str


def default_prefixes() -> list[tuple[str, str]]:
    return [
        ("/api/auth", config.IDENTITY_SERVICE_URL),
        ("/api/todo", config.TODO_SERVICE_URL),
    ]


def resolve_route(
    path: str,
    prefixes: list[tuple[str, str]] | None = None,
    frontend: str | None = None,
) -> Route:
    """
    Match `path` against the prefixes on a segment boundary and strip the prefix.
    "/api/auth/login" -> ("/login"), "/api/auth" -> ("/"), "/api/authz" goes to the frontend.
    """
    for prefix, upstream in prefixes if prefixes is not None else default_prefixes():
        if path == prefix or path.startswith(prefix + "/"):
            stripped = path[len(prefix):] or "/"
            return Route(upstream=upstream, path=stripped)
    return Route(upstream=frontend if frontend is not None else config.FRONTEND_URL, path=path or "/")
