"""Resolve generated record classes and the packaging artifact that carries them."""

from __future__ import annotations

import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Protocol, Tuple, runtime_checkable

from db_export.common.config import ExportRequest
from db_export.common.exceptions import ClassResolutionError, ErrorContext, SetupError

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIXES = (".zip", ".whl", ".egg")


@runtime_checkable
class ExportRecord(Protocol):
    """What a generated record class must provide to be exported.

    Classes may also define ``from_writable(value)`` to build a record from a
    SequenceFile value; without it values are passed to ``parse``.
    """

    @classmethod
    def parse(cls, line: str) -> "ExportRecord": ...

    def to_dict(self) -> Dict[str, Any]: ...


def split_class_identifier(identifier: str) -> Tuple[str, str]:
    """Split ``pkg.module.Class`` or ``pkg.module:Class`` into module and class.

    A bare name refers to a class of the same name in a module of the same name,
    which is how generated per-table code is laid out.
    """
    if ":" in identifier:
        module_name, _, class_name = identifier.partition(":")
    elif "." in identifier:
        module_name, _, class_name = identifier.rpartition(".")
    else:
        module_name = class_name = identifier
    return module_name, class_name


class PackagingHandle:
    """
    Scoped access to the generated code in one packaging artifact.

    While acquired, the artifact is on sys.path. release() removes the path
    entry and forgets the modules imported from the artifact while it was
    acquired, so nothing
    leaks into the next export run. Handles change process-wide import state:
    overlapping export runs in one process must be serialised by the caller.
    """

    def __init__(self, artifact: Optional[str] = None):
        self.artifact = artifact
        self._path_entry: Optional[str] = None
        self._modules_before: FrozenSet[str] = frozenset()
        self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    def acquire(self) -> "PackagingHandle":
        if self._acquired:
            raise SetupError(f"Packaging artifact {self.artifact} is already loaded")

        if self.artifact:
            self._modules_before = frozenset(sys.modules)
            self._path_entry = self._to_path_entry(self.artifact)
            sys.path.insert(0, self._path_entry)
            importlib.invalidate_caches()
            logger.info(f"Loaded packaging artifact {self.artifact}")

        self._acquired = True
        return self

    def release(self) -> None:
        if not self._acquired:
            return

        if self._path_entry is not None:
            if self._path_entry in sys.path:
                sys.path.remove(self._path_entry)
            for name in self._modules_from_artifact():
                del sys.modules[name]
            importlib.invalidate_caches()
            logger.info(f"Unloaded packaging artifact {self.artifact}")
            self._path_entry = None
            self._modules_before = frozenset()

        self._acquired = False

    def load_class(self, identifier: str) -> type:
        """Import the record class named by ``identifier``.

        Raises:
            ClassResolutionError: If the module or class cannot be found
        """
        module_name, class_name = split_class_identifier(identifier)
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ClassResolutionError(
                f"Could not import module '{module_name}' for record class '{identifier}': {e}",
                ErrorContext(path=self.artifact),
            ) from e

        record_cls = getattr(module, class_name, None)
        if not isinstance(record_cls, type):
            raise ClassResolutionError(
                f"Module '{module_name}' has no class '{class_name}'",
                ErrorContext(path=self.artifact),
            )
        return record_cls

    def _modules_from_artifact(self):
        prefix = os.path.abspath(self._path_entry)
        names = []
        for name, module in list(sys.modules.items()):
            # Modules imported before acquire() belong to the caller, even when
            # they live next to a single-file artifact
            if name in self._modules_before:
                continue
            origin = getattr(module, "__file__", None)
            if origin is None:
                continue
            origin = os.path.abspath(origin)
            if origin == prefix or origin.startswith(prefix + os.sep):
                names.append(name)
        return names

    @staticmethod
    def _to_path_entry(artifact: str) -> str:
        path = Path(artifact).resolve()
        if path.is_file() and path.suffix == ".py":
            return str(path.parent)
        return str(path)

    def __enter__(self) -> "PackagingHandle":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class RecordRegistry:
    """Maps tables to generated record classes and their packaging."""

    def resolve_class_name(self, request: ExportRequest) -> str:
        """Identifier of the record class for the request's table.

        An explicit record_class_name wins; otherwise the table name, qualified
        by package_name when one is set.
        """
        if request.record_class_name:
            return request.record_class_name
        if request.package_name:
            return f"{request.package_name}.{request.table_name}"
        return request.table_name

    def resolve_artifact(self, request: ExportRequest) -> Optional[str]:
        """Path of the packaging artifact, or None when classes are already importable.

        Raises:
            SetupError: If an artifact is named but does not exist
        """
        artifact = request.packaging_artifact
        if not artifact:
            return None

        path = Path(artifact)
        if not path.exists():
            raise SetupError(
                f"Packaging artifact not found: {artifact}",
                ErrorContext(table_name=request.table_name, path=artifact),
            )
        if path.is_file() and path.suffix not in _ARCHIVE_SUFFIXES + (".py",):
            raise SetupError(
                f"Unsupported packaging artifact type '{path.suffix}'. "
                f"Valid options: {', '.join(_ARCHIVE_SUFFIXES + ('.py',))} or a directory",
                ErrorContext(table_name=request.table_name, path=artifact),
            )
        return str(path.resolve())

    def load(self, artifact: Optional[str]) -> PackagingHandle:
        """Handle for ``artifact``; use it as a context manager to acquire and release."""
        return PackagingHandle(artifact)
