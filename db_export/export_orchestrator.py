"""ExportOrchestrator for running one file-to-database export."""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError
from typing import Optional, Tuple

from db_export.common.config import ExportRequest
from db_export.common.constants import DetectedFormat, ExportState
from db_export.common.exceptions import (
    EngineError,
    ErrorContext,
    ExportError,
    JobFailedError,
    PathQualificationError,
)
from db_export.common.logging_utils import ExportLoggerAdapter
from db_export.common.results import ExportOutcome
from db_export.common.settings import ExportSettings
from db_export.engines.base_engine import BaseEngine
from db_export.filesystem import FilesystemConnection
from db_export.format_detector import detect, is_sequence_formatted
from db_export.job_configurator import JobConfigurator
from db_export.job_runner import JobRunner
from db_export.record_registry import RecordRegistry

logger = logging.getLogger(__name__)


class ExportOrchestrator:
    """
    Orchestrates an export from filesystem files into a database table.

    Handles:
    - Record class and packaging resolution
    - Format detection and job configuration
    - Running the job and collecting metrics
    - Classifying failures and always unloading packaging

    State machine per run_export call:
        IDLE -> PREPARING -> CONFIGURING -> RUNNING -> SUCCEEDED | FAILED
    Any state can move to FAILED. Packaging loaded on the way into
    CONFIGURING is released before run_export returns, whatever the outcome.
    Runs in one process must not overlap; nothing here serialises them.
    """

    def __init__(
        self,
        engine: BaseEngine,
        filesystem: Optional[FilesystemConnection] = None,
        registry: Optional[RecordRegistry] = None,
        configurator: Optional[JobConfigurator] = None,
        settings: Optional[ExportSettings] = None,
    ):
        """
        Initialize ExportOrchestrator.

        Args:
            engine: Engine the export job runs on
            filesystem: Filesystem holding export sources (resolved per path if not provided)
            registry: Record class registry
            configurator: JobConfigurator (built from engine/filesystem/settings if not provided)
            settings: Process-level settings
        """
        self.engine = engine
        self.filesystem = filesystem
        self.settings = settings or ExportSettings()
        self.registry = registry or RecordRegistry()
        self.configurator = configurator or JobConfigurator(
            engine=engine, filesystem=filesystem, settings=self.settings
        )
        self.runner = JobRunner(engine)
        self.state = ExportState.IDLE

    def is_sequence_formatted(self, path: str) -> bool:
        """True if path holds SequenceFiles (sampling one file of a directory).

        Unqualified paths resolve against the configured default filesystem,
        the same way the job input does.
        """
        located = self._locate_source(path)
        if located is None:
            return False
        filesystem, qualified_path = located
        return is_sequence_formatted(qualified_path, filesystem)

    def run_export(self, request: ExportRequest) -> ExportOutcome:
        """
        Run one export.

        Args:
            request: The export to run

        Returns:
            ExportOutcome; failed outcomes carry the failure kind and the typed
            error, which raise_for_status() re-raises.
        """
        table_name = request.table_name
        log = ExportLoggerAdapter(logger, {"table_name": table_name})
        self.state = ExportState.PREPARING
        log.info(f"Beginning export of {table_name}")

        try:
            record_class_name = self.registry.resolve_class_name(request)
            artifact = self.registry.resolve_artifact(request)
        except ExportError as e:
            return self._fail(log, request, e)

        try:
            with self.registry.load(artifact) as packaging:
                self.state = ExportState.CONFIGURING
                detected_format = self._detect_input_format(request, log)
                plan = self.configurator.configure(
                    request, record_class_name, packaging, detected_format
                )

                self.state = ExportState.RUNNING
                result = self.runner.run(plan)
        except ExportError as e:
            return self._fail(log, request, e)
        except (ImportError, InterruptedError, CancelledError) as e:
            error = EngineError(
                f"Export job could not be run: {e!r}",
                ErrorContext(table_name=table_name, stage=str(self.state)),
            )
            error.__cause__ = e
            return self._fail(log, request, error)

        if not result.success:
            message = "Export job failed!"
            if result.error is not None:
                message = f"{message} {type(result.error).__name__}: {result.error}"
            error = JobFailedError(message, ErrorContext(table_name=table_name))
            error.__cause__ = result.error
            return self._fail(log, request, error, result.metrics)

        self.state = ExportState.SUCCEEDED
        log.info(
            f"Export of {table_name} completed: {result.metrics.records_processed:,} records "
            f"in {result.metrics.elapsed_seconds:.2f}s"
        )
        return ExportOutcome.success(table_name, result.metrics)

    def _detect_input_format(
        self, request: ExportRequest, log: logging.LoggerAdapter
    ) -> Optional[DetectedFormat]:
        if request.input_format:
            return None

        located = self._locate_source(request.export_dir, log)
        if located is None:
            detected = DetectedFormat.UNREADABLE
        else:
            filesystem, qualified_path = located
            detected = detect(qualified_path, filesystem)

        if detected == DetectedFormat.UNREADABLE:
            log.warning("Could not check file format for export; assuming text")
        else:
            log.info(f"Detected input format: {detected}")
        return detected

    def _locate_source(
        self, path: str, log: logging.Logger | logging.LoggerAdapter = logger
    ) -> Optional[Tuple[FilesystemConnection, str]]:
        """Filesystem and qualified path the job will read ``path`` from, or None."""
        try:
            filesystem = self.filesystem or FilesystemConnection.for_path(
                path, base_url=self.settings.default_filesystem
            )
            return filesystem, filesystem.qualify(path)
        except (ImportError, OSError, ValueError, PathQualificationError) as e:
            log.warning(f"Could not resolve {path} for format detection: {e}")
            return None

    def _fail(self, log, request, error: ExportError, metrics=None) -> ExportOutcome:
        stage = self.state
        error.with_context(request.table_name, str(stage))
        self.state = ExportState.FAILED
        log.error(f"Export failed during {stage} ({error.kind}): {error}")
        return ExportOutcome.failure(request.table_name, stage, error, metrics)
