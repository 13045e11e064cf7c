"""Per-record export mapper."""

from __future__ import annotations

import importlib
from typing import Any, Dict, Optional

from db_export.record_registry import split_class_identifier


class ExportMapper:
    """
    Turns one input record into one row for the database sink.

    The mapper is shipped to worker processes, so it carries the record class
    identifier rather than the class and imports it lazily where it runs.
    """

    def __init__(self, record_class_name: str):
        self.record_class_name = record_class_name
        self._record_cls: Optional[type] = None

    def __getstate__(self):
        return {"record_class_name": self.record_class_name}

    def __setstate__(self, state):
        self.record_class_name = state["record_class_name"]
        self._record_cls = None

    @property
    def record_cls(self) -> type:
        if self._record_cls is None:
            module_name, class_name = split_class_identifier(self.record_class_name)
            module = importlib.import_module(module_name)
            self._record_cls = getattr(module, class_name)
        return self._record_cls

    def bind(self, record_cls: type) -> "ExportMapper":
        """Use an already loaded class instead of importing on first use."""
        self._record_cls = record_cls
        return self

    def map_text(self, line: str) -> Dict[str, Any]:
        return self.record_cls.parse(line).to_dict()

    def map_sequence(self, key: Any, value: Any) -> Dict[str, Any]:
        record_cls = self.record_cls
        from_writable = getattr(record_cls, "from_writable", None)
        if from_writable is not None:
            return from_writable(value).to_dict()
        return record_cls.parse(value).to_dict()

    def __repr__(self) -> str:
        return f"ExportMapper({self.record_class_name!r})"
