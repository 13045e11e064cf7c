"""Common utilities for the export framework."""

from db_export.common.config import ExportRequest
from db_export.common.constants import (
    DetectedFormat,
    ExportFailureKind,
    ExportState,
    InputFormat,
    OutputFormat,
)
from db_export.common.exceptions import (
    ClassResolutionError,
    ConfigurationError,
    EngineError,
    ErrorContext,
    ExportError,
    JobFailedError,
    PathQualificationError,
    SetupError,
)
from db_export.common.results import (
    ExportOutcome,
    JobResult,
    RunMetrics,
)
from db_export.common.settings import ExportSettings

__all__ = [
    # Config
    "ExportRequest",
    "ExportSettings",
    # Constants
    "DetectedFormat",
    "ExportFailureKind",
    "ExportState",
    "InputFormat",
    "OutputFormat",
    # Exceptions
    "ErrorContext",
    "ExportError",
    "SetupError",
    "ClassResolutionError",
    "ConfigurationError",
    "PathQualificationError",
    "EngineError",
    "JobFailedError",
    # Results
    "ExportOutcome",
    "JobResult",
    "RunMetrics",
]
