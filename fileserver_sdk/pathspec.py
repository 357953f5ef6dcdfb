"""Pathspec parsing: turn "path path:alias ..." into an alias map."""

from __future__ import annotations

import logging
import os
from typing import Dict

from fileserver_sdk.errors import MalformedPathspec, PathIOError

logger = logging.getLogger(__name__)

DELIMITER = ":"


def parse_pathspec(pathspec: str) -> Dict[str, str]:
    """
    Parse a pathspec into a mapping of alias to absolute filesystem path.

    Parameters:
        pathspec (str): Space-separated entries, each either `path` or `path:alias`.
            Without an explicit alias the base name of `path` is used.

    Returns:
        Dict[str, str]: Alias -> absolute path. A later entry replaces an earlier one with the same alias.

    Raises:
        MalformedPathspec: If an entry is empty, has more than one ':' or yields an unusable alias.
        PathIOError: If a path cannot be made absolute (for example, the working directory is gone).
    """
    aliases: Dict[str, str] = {}
    for entry in pathspec.split(" "):
        if not entry:
            raise MalformedPathspec("invalid pathspec: empty path entry")
        parts = entry.split(DELIMITER)
        if len(parts) == 1:
            path, alias = parts[0], None
        elif len(parts) == 2:
            path, alias = parts
        else:
            raise MalformedPathspec("invalid pathspec: too many delimiters")

        if not path:
            raise MalformedPathspec(f"invalid pathspec: missing path in {entry!r}")
        try:
            target = os.path.abspath(path)
        except OSError as exc:
            raise PathIOError(f"cannot resolve {path!r}: {exc}") from exc

        if alias is None:
            # abspath drops trailing separators and "." so "docs/" and "." still name something
            alias = os.path.basename(target)
        if not alias or "/" in alias or alias in (".", ".."):
            raise MalformedPathspec(f"invalid pathspec: bad alias in {entry!r}")

        if alias in aliases:
            logger.debug("Alias %s remapped from %s to %s", alias, aliases[alias], target)
        aliases[alias] = target
    return aliases
