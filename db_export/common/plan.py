"""The job description handed from JobConfigurator to JobRunner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from db_export.common.config import ExportRequest
from db_export.common.constants import (
    DETECTED_FORMAT_KEY,
    MAP_SPECULATIVE_KEY,
    DetectedFormat,
    InputFormat,
    OutputFormat,
)

if TYPE_CHECKING:
    from db_export.mapper import ExportMapper


@dataclass
class JobPlan:
    """
    Binds an ExportRequest to concrete engine settings.

    Owned by JobConfigurator while it is assembled and by JobRunner once
    handed over; never shared between threads. Speculative execution starts
    at the engine default (enabled) and must be switched off by configuration
    before the plan may run.
    """

    request: ExportRequest
    job_name: str
    input_path: Optional[str] = None
    input_format: Optional[InputFormat] = None
    output_format: Optional[OutputFormat] = None
    output_options: Dict[str, Any] = field(default_factory=dict)
    mapper: Optional["ExportMapper"] = None
    num_map_tasks: Optional[int] = None
    map_speculative_execution: bool = True
    packaging_artifact: Optional[str] = None
    conf: Dict[str, Any] = field(default_factory=dict)

    @property
    def table_name(self) -> str:
        return self.request.table_name

    @property
    def detected_format(self) -> DetectedFormat:
        return DetectedFormat(self.conf.get(DETECTED_FORMAT_KEY, DetectedFormat.UNREADABLE))

    def is_write_safe(self) -> bool:
        """True only if speculative map execution is off in both the flag and conf."""
        if self.map_speculative_execution:
            return False
        return str(self.conf.get(MAP_SPECULATIVE_KEY, "true")).lower() == "false"

    def resolved_input_format(self) -> InputFormat:
        """Concrete reader for the input; the export format follows the detection hint."""
        if self.input_format != InputFormat.EXPORT:
            return self.input_format
        if self.detected_format == DetectedFormat.SEQUENCE_CONTAINER:
            return InputFormat.SEQUENCE_FILE
        return InputFormat.TEXT
