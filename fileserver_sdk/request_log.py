"""ASGI middleware that logs every incoming request URL."""

from __future__ import annotations

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


def request_url(scope: Dict[str, Any]) -> str:
    url = scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        url += "?" + query.decode("latin-1")
    return url


class RequestLogMiddleware:
    """Starlette / FastAPI middleware that logs each request before it is dispatched."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: Dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] == "http":
            logger.info('Request for "%s"', request_url(scope))
        await self.app(scope, receive, send)
