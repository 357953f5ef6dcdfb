from __future__ import annotations

import errno
import logging
import os
import posixpath
import stat
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterator, List, Mapping, Tuple

from fileserver_sdk.errors import NotFound, PathIOError, PermissionDenied

logger = logging.getLogger(__name__)


def clean_path(path: str) -> str:
    """
    Normalize a virtual path to a rooted posix path with no '.', '..' or trailing slash.

    '..' segments collapse against their parent and can never climb above '/'.
    """
    return posixpath.normpath("/" + path.lstrip("/"))


@contextmanager
def translate_os_errors(path: str) -> Iterator[None]:
    """Re-raise OS errors from the real filesystem as virtual filesystem errors."""
    try:
        yield
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
        raise NotFound(path) from exc
    except PermissionError as exc:
        raise PermissionDenied(path) from exc
    except ValueError as exc:
        # embedded NUL bytes
        raise NotFound(path) from exc
    except OSError as exc:
        if exc.errno == errno.ENAMETOOLONG:
            raise NotFound(path) from exc
        raise PathIOError(f"{path}: {exc}") from exc


@dataclass(frozen=True)
class FileInfo:
    name: str
    is_dir: bool
    size: int = 0
    mtime: float = 0.0

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> FileInfo:
        return cls(
            name=name,
            is_dir=stat.S_ISDIR(st.st_mode),
            size=0 if stat.S_ISDIR(st.st_mode) else st.st_size,
            mtime=st.st_mtime,
        )


class VirtualFS(ABC):
    """
    Read-only filesystem interface served over HTTP.

    Paths are '/'-separated and rooted at '/'. The root is always a directory.
    """

    @abstractmethod
    def open(self, path: str) -> BinaryIO: ...

    @abstractmethod
    def stat(self, path: str) -> FileInfo: ...

    @abstractmethod
    def list_dir(self, path: str) -> List[FileInfo]: ...


class OSFS(VirtualFS):
    """A real directory on disk presented as a virtual tree."""

    def __init__(self, root: str) -> None:
        self.root = root

    def _real_path(self, path: str) -> str:
        rel = clean_path(path).strip("/")
        if not rel:
            return self.root
        return os.path.join(self.root, *rel.split("/"))

    def open(self, path: str) -> BinaryIO:
        real = self._real_path(path)
        with translate_os_errors(path):
            if os.path.isdir(real):
                raise IsADirectoryError(errno.EISDIR, "is a directory", real)
            return open(real, "rb")

    def stat(self, path: str) -> FileInfo:
        real = self._real_path(path)
        with translate_os_errors(path):
            return FileInfo.from_stat(os.path.basename(real), os.stat(real))

    def list_dir(self, path: str) -> List[FileInfo]:
        real = self._real_path(path)
        entries: List[FileInfo] = []
        with translate_os_errors(path):
            with os.scandir(real) as it:
                for entry in it:
                    try:
                        entries.append(FileInfo.from_stat(entry.name, entry.stat()))
                    except FileNotFoundError:
                        logger.debug("Skipping dangling entry %s", entry.path)
        return sorted(entries, key=lambda info: info.name)


class SingleFileFS(VirtualFS):
    """
    Wrap one regular file in a synthetic directory holding only that file.

    `/` lists the file under its base name and `/<name>` serves it; every
    other path is NotFound.
    """

    def __init__(self, file_path: str) -> None:
        self.name = os.path.basename(file_path)
        self._parent = OSFS(os.path.dirname(file_path))

    def _check(self, path: str) -> str:
        path = clean_path(path)
        if path != "/" + self.name:
            raise NotFound(path)
        return path

    def open(self, path: str) -> BinaryIO:
        return self._parent.open(self._check(path))

    def stat(self, path: str) -> FileInfo:
        if clean_path(path) == "/":
            info = self._parent.stat("/" + self.name)
            return FileInfo(name="", is_dir=True, mtime=info.mtime)
        return self._parent.stat(self._check(path))

    def list_dir(self, path: str) -> List[FileInfo]:
        if clean_path(path) != "/":
            raise NotFound(path)
        return [self._parent.stat("/" + self.name)]


class AliasFS(VirtualFS):
    def __init__(self, aliases: Mapping[str, str]) -> None:
        """
        Initialize the AliasFS over a fixed alias map.

        Parameters:
            aliases (Mapping[str, str]): Alias -> absolute filesystem path. The mapping is copied and never changed.
        """
        self.aliases: Dict[str, str] = dict(aliases)

    def _resolve(self, path: str) -> Tuple[VirtualFS, str]:
        """
        Split a virtual path into its alias and the remaining path, and pick the backend for that alias.

        Parameters:
            path (str): Virtual path; the first segment names the alias.

        Returns:
            Tuple[VirtualFS, str]: The alias backend and the path to look up inside it.

        Raises:
            NotFound: If the path is the root or the first segment is not a registered alias.
        """
        parts = clean_path(path).strip("/").split("/", 1)
        alias = parts[0]
        rest = "/" + parts[1] if len(parts) > 1 else "/"
        target = self.aliases.get(alias)
        if target is None:
            raise NotFound(path)
        # Decided per request so a file replacing a directory (or appearing later) is picked up.
        if os.path.isfile(target):
            return SingleFileFS(target), rest
        return OSFS(target), rest

    def open(self, path: str) -> BinaryIO:
        backend, rest = self._resolve(path)
        return backend.open(rest)

    def stat(self, path: str) -> FileInfo:
        if clean_path(path) == "/":
            return FileInfo(name="", is_dir=True)
        backend, rest = self._resolve(path)
        info = backend.stat(rest)
        if rest == "/":
            return FileInfo(name=clean_path(path).strip("/"), is_dir=info.is_dir, size=info.size, mtime=info.mtime)
        return info

    def list_dir(self, path: str) -> List[FileInfo]:
        """
        List a directory of the virtual tree.

        At the root every alias is listed as a directory, sorted by name, whether
        it points at a directory or a single file.
        """
        if clean_path(path) == "/":
            return [FileInfo(name=alias, is_dir=True) for alias in sorted(self.aliases)]
        backend, rest = self._resolve(path)
        return backend.list_dir(rest)
