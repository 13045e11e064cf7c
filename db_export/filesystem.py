"""fsspec-backed filesystem access for export sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import IO, List, Optional

from fsspec import AbstractFileSystem
from fsspec.core import url_to_fs

from db_export.common.exceptions import ErrorContext, PathQualificationError

logger = logging.getLogger(__name__)


def _strip_trailing_slash(url: str) -> str:
    """Drop trailing slashes after the authority; "memory:///" keeps its root."""
    scheme, sep, rest = url.partition("://")
    return f"{scheme}{sep}{rest.rstrip('/') or rest[:1]}"


@dataclass
class FileStatus:
    """The parts of a filesystem entry the export stages look at."""

    path: str
    is_directory: bool
    size: int = 0

    @classmethod
    def from_info(cls, info: dict) -> "FileStatus":
        return cls(
            path=info["name"],
            is_directory=info.get("type") == "directory",
            size=info.get("size") or 0,
        )


@dataclass
class FilesystemConnection:
    """
    Filesystem client plus the base URL unqualified paths resolve against.

    base_url is only needed for remote filesystems (e.g. "hdfs://namenode:8020"),
    local paths are qualified to file:// URLs.
    """

    fs: AbstractFileSystem
    base_url: Optional[str] = None

    @classmethod
    def for_path(cls, path: str, base_url: Optional[str] = None, **storage_options) -> "FilesystemConnection":
        """Create a connection for the filesystem that serves ``path``."""
        target = path if "://" in path or base_url is None else base_url
        fs, _ = url_to_fs(target, **storage_options)
        logger.debug(f"Created fsspec client ({type(fs).__name__}) for: {target}")
        return cls(fs=fs, base_url=base_url)

    def qualify(self, path: str) -> str:
        """Resolve ``path`` to an absolute, filesystem-qualified URL.

        Raises:
            PathQualificationError: If the path is empty or cannot be resolved
        """
        if not path:
            raise PathQualificationError(
                "Cannot qualify an empty path", ErrorContext(path=path)
            )

        if "://" in path:
            return _strip_trailing_slash(path)

        if self.base_url:
            if not path.startswith("/"):
                raise PathQualificationError(
                    f"Relative path cannot be qualified against {self.base_url}",
                    ErrorContext(path=path),
                )
            scheme, sep, authority = self.base_url.partition("://")
            return _strip_trailing_slash(f"{scheme}{sep}{authority.rstrip('/')}{path}")

        try:
            return self.fs.unstrip_protocol(self.fs._strip_protocol(path))
        except (OSError, ValueError) as e:
            raise PathQualificationError(
                f"Failed to qualify path: {e}", ErrorContext(path=path)
            ) from e

    def status(self, path: str) -> Optional[FileStatus]:
        """Status of ``path``, or None if it does not exist."""
        try:
            return FileStatus.from_info(self.fs.info(path))
        except FileNotFoundError:
            return None

    def list_children(self, path: str) -> List[FileStatus]:
        """Immediate children of a directory, in listing order."""
        return [FileStatus.from_info(info) for info in self.fs.ls(path, detail=True)]

    def open(self, path: str) -> IO[bytes]:
        return self.fs.open(path, "rb")
