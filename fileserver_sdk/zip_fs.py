"""Zip archive backend: serve the entries of one archive as a read-only tree."""

from __future__ import annotations

import logging
import os
import time
import zipfile
from typing import BinaryIO, Dict, List, Set

from fileserver_sdk.errors import ArchiveOpenError, NotFound, PathIOError
from fileserver_sdk.virtual_fs import FileInfo, VirtualFS, clean_path

logger = logging.getLogger(__name__)


def _entry_mtime(zi: zipfile.ZipInfo) -> float:
    try:
        return time.mktime(zi.date_time + (0, 0, -1))
    except (OverflowError, ValueError):
        return 0.0


class ZipFS(VirtualFS):
    def __init__(self, archive_path: str) -> None:
        """
        Open a zip archive and index its entries.

        Parameters:
            archive_path (str): Path of the archive on disk.

        Raises:
            ArchiveOpenError: If the archive is missing, unreadable or not a valid zip file.
        """
        try:
            self._zf = zipfile.ZipFile(archive_path, "r")
            archive_mtime = os.path.getmtime(archive_path)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
            raise ArchiveOpenError(f"Unable to open zip archive: {exc}") from exc

        self.archive_path = archive_path
        # Archives do not always record directory entries, so parents are inferred from file names.
        self._files: Dict[str, zipfile.ZipInfo] = {}
        self._dirs: Dict[str, float] = {"/": archive_mtime}
        for zi in self._zf.infolist():
            name = clean_path(zi.filename)
            if name == "/":
                continue
            if zi.is_dir():
                self._dirs[name] = _entry_mtime(zi)
            else:
                self._files[name] = zi
            parent = name.rsplit("/", 1)[0] or "/"
            while parent not in self._dirs:
                self._dirs[parent] = archive_mtime
                parent = parent.rsplit("/", 1)[0] or "/"
        logger.info(
            "Opened zip archive %s (%d files, %d directories)",
            archive_path, len(self._files), len(self._dirs),
        )

    def open(self, path: str) -> BinaryIO:
        path = clean_path(path)
        zi = self._files.get(path)
        if zi is None:
            raise NotFound(path)
        try:
            return self._zf.open(zi)
        except (RuntimeError, NotImplementedError, zipfile.BadZipFile) as exc:
            # encrypted entries and unsupported compression methods
            raise PathIOError(f"{path}: {exc}") from exc

    def stat(self, path: str) -> FileInfo:
        path = clean_path(path)
        name = path.rsplit("/", 1)[1]
        if path in self._dirs:
            return FileInfo(name=name, is_dir=True, mtime=self._dirs[path])
        zi = self._files.get(path)
        if zi is None:
            raise NotFound(path)
        return FileInfo(name=name, is_dir=False, size=zi.file_size, mtime=_entry_mtime(zi))

    def list_dir(self, path: str) -> List[FileInfo]:
        path = clean_path(path)
        if path not in self._dirs:
            raise NotFound(path)
        prefix = path if path == "/" else path + "/"
        children: Set[str] = set()
        for name in list(self._files) + list(self._dirs):
            if name != path and name.startswith(prefix) and "/" not in name[len(prefix):]:
                children.add(name)
        return [self.stat(child) for child in sorted(children)]

    def close(self) -> None:
        self._zf.close()
