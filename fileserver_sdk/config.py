"""Environment-driven server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class ServerConfig:
    pathspec: str = "."
    zip_mode: bool = False
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            pathspec=os.getenv("FILESERVER_PATHSPEC", "."),
            zip_mode=_env_flag("FILESERVER_ZIP"),
            debug=_env_flag("FILESERVER_DEBUG"),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8000")),
        )
