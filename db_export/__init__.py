"""
db_export

Orchestration for bulk exports of filesystem records into database tables:
format detection, safe job assembly, execution and outcome reporting.
"""

from db_export.common.config import ExportRequest
from db_export.common.constants import (
    DetectedFormat,
    ExportFailureKind,
    ExportState,
    InputFormat,
    OutputFormat,
)
from db_export.common.results import ExportOutcome, RunMetrics
from db_export.common.settings import ExportSettings
from db_export.export_orchestrator import ExportOrchestrator
from db_export.format_detector import detect, is_sequence_formatted
from db_export.job_configurator import JobConfigurator
from db_export.job_runner import JobRunner

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
    # Results
    "ExportOutcome",
    "RunMetrics",
    # Core components
    "ExportOrchestrator",
    "JobConfigurator",
    "JobRunner",
    "detect",
    "is_sequence_formatted",
]
