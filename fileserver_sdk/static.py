"""Serve a VirtualFS over HTTP on top of Starlette's StaticFiles."""

from __future__ import annotations

import hashlib
import html
import logging
import mimetypes
import posixpath
from email.utils import formatdate
from typing import Any, Callable, Optional, Tuple, TypeVar
from urllib.parse import quote

import anyio.to_thread
from starlette.datastructures import URL, Headers
from starlette.exceptions import HTTPException
from starlette.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.staticfiles import NotModifiedResponse, StaticFiles
from starlette.types import Receive, Scope, Send

from fileserver_sdk.errors import NotFound, PathIOError, PermissionDenied
from fileserver_sdk.virtual_fs import FileInfo, VirtualFS, clean_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RangeNotSatisfiable(Exception):
    pass


def parse_byte_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single-range `Range` header.

    Parameters:
        header (str): Raw header value, e.g. "bytes=0-99", "bytes=100-" or "bytes=-50".
        size (int): Size of the selected file in bytes.

    Returns:
        Optional[Tuple[int, int]]: Half-open (start, end) byte offsets, or None when the header is
        malformed, uses another unit or asks for several ranges; the full file is served then.

    Raises:
        RangeNotSatisfiable: If the range lies entirely outside the file.
    """
    units, _, spec = header.partition("=")
    if units.strip().lower() != "bytes" or "," in spec:
        return None
    first, sep, last = spec.strip().partition("-")
    if not sep:
        return None
    first, last = first.strip(), last.strip()
    try:
        if not first:
            length = int(last)
            if length <= 0 or size == 0:
                raise RangeNotSatisfiable()
            return max(size - length, 0), size
        start = int(first)
        end = int(last) + 1 if last else size
    except ValueError:
        return None
    if start < 0:
        return None
    if start >= size:
        raise RangeNotSatisfiable()
    if end <= start:
        return None
    return start, min(end, size)


class VFSFileResponse(Response):
    chunk_size = 64 * 1024

    def __init__(self, fs: VirtualFS, path: str, info: FileInfo, status_code: int = 200) -> None:
        self.fs = fs
        self.path = path
        self.info = info
        self.status_code = status_code
        self.media_type = mimetypes.guess_type(info.name)[0] or "application/octet-stream"
        self.background = None
        self.init_headers(None)
        etag_base = f"{info.mtime}-{info.size}"
        self.headers.setdefault("accept-ranges", "bytes")
        self.headers.setdefault("content-length", str(info.size))
        self.headers.setdefault("last-modified", formatdate(info.mtime, usegmt=True))
        self.headers.setdefault("etag", f'"{hashlib.md5(etag_base.encode(), usedforsecurity=False).hexdigest()}"')

    def _use_range(self, request_headers: Headers) -> bool:
        if "range" not in request_headers:
            return False
        if_range = request_headers.get("if-range")
        return if_range is None or if_range in (self.headers["etag"], self.headers["last-modified"])

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request_headers = Headers(scope=scope)
        send_header_only = scope["method"].upper() == "HEAD"
        start, end = 0, self.info.size
        status_code = self.status_code

        if self._use_range(request_headers):
            try:
                byte_range = parse_byte_range(request_headers["range"], self.info.size)
            except RangeNotSatisfiable:
                response = PlainTextResponse(
                    status_code=416, headers={"content-range": f"bytes */{self.info.size}"}
                )
                await response(scope, receive, send)
                return
            if byte_range is not None:
                start, end = byte_range
                status_code = 206
                self.headers["content-range"] = f"bytes {start}-{end - 1}/{self.info.size}"
                self.headers["content-length"] = str(end - start)

        if send_header_only:
            await send({"type": "http.response.start", "status": status_code, "headers": self.raw_headers})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        fh = await _run_fs(self.fs.open, self.path)
        try:
            await send({"type": "http.response.start", "status": status_code, "headers": self.raw_headers})
            if start:
                await anyio.to_thread.run_sync(fh.seek, start)
            remaining = end - start
            while remaining > 0:
                chunk = await anyio.to_thread.run_sync(fh.read, min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                await send({"type": "http.response.body", "body": chunk, "more_body": True})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            await anyio.to_thread.run_sync(fh.close)


async def _run_fs(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking VirtualFS call in a worker thread, mapping its errors to HTTP errors."""
    try:
        return await anyio.to_thread.run_sync(func, *args)
    except NotFound:
        raise HTTPException(status_code=404)
    except PermissionDenied:
        raise HTTPException(status_code=403)
    except PathIOError as exc:
        logger.error("Filesystem error on %s: %s", args[0] if args else "", exc)
        raise HTTPException(status_code=500)


class VFSStaticFiles(StaticFiles):
    """
    StaticFiles that reads from a VirtualFS instead of a directory.

    Directories are redirected to their trailing-slash URL, then served as their
    index.html when one exists, or as a generated HTML listing.
    """

    def __init__(self, fs: VirtualFS) -> None:
        super().__init__(directory=None, check_dir=False)
        self.fs = fs

    def get_path(self, scope: Scope) -> str:
        return clean_path(scope["path"])

    async def get_response(self, path: str, scope: Scope) -> Response:
        if scope["method"] not in ("GET", "HEAD"):
            raise HTTPException(status_code=405)

        info = await _run_fs(self.fs.stat, path)
        if not info.is_dir:
            return self.serve_file(path, info, scope)

        if not scope["path"].endswith("/"):
            url = URL(scope=scope)
            return RedirectResponse(url=url.replace(path=url.path + "/"))

        index_path = posixpath.join(path, "index.html")
        try:
            index = await anyio.to_thread.run_sync(self.fs.stat, index_path)
        except (NotFound, PermissionDenied):
            index = None
        if index is not None and not index.is_dir:
            return self.serve_file(index_path, index, scope)
        return await self.directory_response(path)

    def serve_file(self, path: str, info: FileInfo, scope: Scope) -> Response:
        response = VFSFileResponse(self.fs, path, info)
        if self.is_not_modified(response.headers, Headers(scope=scope)):
            return NotModifiedResponse(response.headers)
        return response

    async def directory_response(self, path: str) -> Response:
        entries = await _run_fs(self.fs.list_dir, path)
        lines = ['<!doctype html>', '<meta name="viewport" content="width=device-width">', "<pre>"]
        for entry in entries:
            name = entry.name + "/" if entry.is_dir else entry.name
            lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>')
        lines.append("</pre>")
        return HTMLResponse("\n".join(lines) + "\n")
