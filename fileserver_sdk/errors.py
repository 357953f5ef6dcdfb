"""Error types shared by the pathspec parser and the virtual filesystems."""


class FileServerError(Exception):
    """Base error for fileserver operations."""
    pass


class MalformedPathspec(FileServerError):
    """Pathspec string could not be parsed."""
    pass


class PathIOError(FileServerError):
    """Path resolution or real filesystem access failed."""
    pass


class ArchiveOpenError(FileServerError):
    """Zip archive could not be opened."""
    pass


class NotFound(FileServerError):
    """Virtual path does not exist."""
    pass


class PermissionDenied(FileServerError):
    """Underlying entry exists but may not be read."""
    pass
