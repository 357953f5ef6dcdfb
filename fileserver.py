"""HTTP file server for directories, single files and zip archives, with one URL prefix per root."""

from __future__ import annotations

import logging
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional
from urllib.parse import quote

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import RedirectResponse, Response

from fileserver_sdk.config import ServerConfig
from fileserver_sdk.errors import FileServerError
from fileserver_sdk.pathspec import parse_pathspec
from fileserver_sdk.request_log import RequestLogMiddleware
from fileserver_sdk.static import VFSStaticFiles
from fileserver_sdk.virtual_fs import AliasFS, VirtualFS
from fileserver_sdk.zip_fs import ZipFS

logger = logging.getLogger(__name__)


class FileServerRouter:
    def __init__(self, fs: VirtualFS, aliases: Optional[Mapping[str, str]] = None, debug: bool = False) -> None:
        """
        Build the FastAPI application that serves `fs`.

        Parameters:
            fs (VirtualFS): Backend to serve; either an AliasFS or a ZipFS, never both.
            aliases (Optional[Mapping[str, str]]): Alias map behind `fs`; empty in zip mode.
            debug (bool): Log every request URL before dispatching it.
        """
        self.fs = fs
        self.aliases = dict(aliases or {})
        self.static = VFSStaticFiles(fs)
        self.app = FastAPI(
            title="fileserver",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self.lifespan,
        )
        if debug:
            self.app.add_middleware(RequestLogMiddleware)
        self.app.add_api_route("/", self.root, methods=["GET", "HEAD"], include_in_schema=False)
        self.app.mount("/", self.static, name="files")

    async def root(self, request: Request) -> Response:
        """
        Handle a request for `/`.

        With exactly one alias and no query string the client is redirected (302) to
        `/<alias>`; otherwise the root is served like any other path.
        """
        if len(self.aliases) == 1 and not request.url.query:
            (alias,) = self.aliases
            return RedirectResponse(url="/" + quote(alias), status_code=status.HTTP_302_FOUND)
        return await self.static.get_response("/", request.scope)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        yield
        close = getattr(self.fs, "close", None)
        if close is not None:
            close()


def new(pathspec: str, zip_mode: bool = False, debug: bool = False) -> FastAPI:
    """
    Create the ASGI application serving `pathspec`.

    Parameters:
        pathspec (str): Space-separated `path` or `path:alias` entries, or the archive path when `zip_mode` is set.
        zip_mode (bool): Serve the contents of a zip archive instead of aliased paths.
        debug (bool): Log every request URL.

    Returns:
        FastAPI: The application.

    Raises:
        MalformedPathspec: If the pathspec cannot be parsed.
        PathIOError: If a path cannot be resolved.
        ArchiveOpenError: If the zip archive cannot be opened.
    """
    if zip_mode:
        fs: VirtualFS = ZipFS(pathspec)
        aliases = {}
    else:
        aliases = parse_pathspec(pathspec)
        fs = AliasFS(aliases)
        logger.info("Serving aliases: %s", ", ".join(f"{a} -> {p}" for a, p in sorted(aliases.items())))
    return FileServerRouter(fs, aliases, debug=debug).app


def serve(sock: socket.socket, pathspec: str, zip_mode: bool = False, debug: bool = False) -> None:
    """Same as `new`, but runs a uvicorn server on the already-bound socket `sock` until it stops."""
    app = new(pathspec, zip_mode=zip_mode, debug=debug)
    config = uvicorn.Config(app, log_config=None, log_level="debug" if debug else "info")
    server = uvicorn.Server(config)
    server.run(sockets=[sock])


def main() -> None:
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sock = socket.create_server((config.host, config.port))
    logger.info("Listening on http://%s:%d", config.host, config.port)
    try:
        serve(sock, config.pathspec, zip_mode=config.zip_mode, debug=config.debug)
    except FileServerError as exc:
        logger.error("Unable to start file server: %s", exc)
        raise SystemExit(1)
    finally:
        sock.close()


if __name__ == "__main__":
    main()
