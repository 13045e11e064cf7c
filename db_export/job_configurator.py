"""JobConfigurator: assemble a JobPlan for one export request."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from db_export.common.config import ExportRequest
from db_export.common.constants import (
    DETECTED_FORMAT_KEY,
    EXPORT_MAP_TASKS_KEY,
    EXPORT_TABLE_CLASS_KEY,
    MAP_SPECULATIVE_KEY,
    PACKAGING_ARTIFACT_KEY,
    SPLIT_BY_KEY,
    DetectedFormat,
    InputFormat,
    OutputFormat,
)
from db_export.common.exceptions import ConfigurationError, ErrorContext, PathQualificationError
from db_export.common.plan import JobPlan
from db_export.common.settings import ExportSettings
from db_export.engines.base_engine import BaseEngine
from db_export.filesystem import FilesystemConnection
from db_export.mapper import ExportMapper
from db_export.record_registry import PackagingHandle

logger = logging.getLogger(__name__)

InputFormatPolicy = Callable[[ExportRequest, Optional[DetectedFormat]], InputFormat]
OutputFormatPolicy = Callable[[ExportRequest, Optional[BaseEngine]], OutputFormat]


def export_input_format(request: ExportRequest, detected: Optional[DetectedFormat]) -> InputFormat:
    """An explicit input format wins; otherwise the reader that handles both encodings.

    The detection result is not used to pick the reader here: it travels in the
    plan conf and the export reader consults it when the job runs.
    """
    if request.input_format:
        return InputFormat(request.input_format)
    return InputFormat.EXPORT


def database_output_format(request: ExportRequest, engine: Optional[BaseEngine]) -> OutputFormat:
    """An explicit output format wins; otherwise the engine's native database sink."""
    if request.output_format:
        return OutputFormat(request.output_format)
    if engine is not None and engine.default_output_format is not None:
        return engine.default_output_format
    return OutputFormat.JDBC


class JobConfigurator:
    """
    Builds JobPlans. Behaviour that differs between kinds of export is passed
    in as policy functions rather than overridden in subclasses.
    """

    def __init__(
        self,
        engine: Optional[BaseEngine] = None,
        filesystem: Optional[FilesystemConnection] = None,
        settings: Optional[ExportSettings] = None,
        choose_input_format: InputFormatPolicy = export_input_format,
        choose_output_format: OutputFormatPolicy = database_output_format,
    ):
        self.engine = engine
        self.filesystem = filesystem
        self.settings = settings or ExportSettings()
        self.choose_input_format = choose_input_format
        self.choose_output_format = choose_output_format

    def configure(
        self,
        request: ExportRequest,
        record_class_name: str,
        packaging: PackagingHandle,
        detected_format: Optional[DetectedFormat] = None,
    ) -> JobPlan:
        """
        Produce a JobPlan for request. Nothing is submitted.

        Args:
            request: The export request
            record_class_name: Identifier of the generated record class
            packaging: Acquired handle for the artifact carrying the class
            detected_format: Format detection hint, if detection ran

        Raises:
            ClassResolutionError: If record_class_name cannot be loaded
            PathQualificationError: If export_dir cannot be qualified
            ConfigurationError: For any other unusable setting
        """
        plan = JobPlan(request=request, job_name=f"export_{request.table_name}")

        self._configure_input(plan, detected_format)
        self._configure_output(plan)
        self._configure_mapper(plan, record_class_name, packaging)
        self._configure_num_tasks(plan)

        if packaging.artifact:
            plan.packaging_artifact = packaging.artifact
            plan.conf[PACKAGING_ARTIFACT_KEY] = packaging.artifact

        logger.debug(f"Configured plan for {request.table_name}: {plan.conf}")
        return plan

    def _configure_input(self, plan: JobPlan, detected_format: Optional[DetectedFormat]) -> None:
        request = plan.request
        try:
            filesystem = self.filesystem or FilesystemConnection.for_path(
                request.export_dir, base_url=self.settings.default_filesystem
            )
        except (ImportError, ValueError) as e:
            raise PathQualificationError(
                f"No filesystem available for export path: {e}",
                ErrorContext(table_name=request.table_name, path=request.export_dir),
            ) from e

        plan.input_path = filesystem.qualify(request.export_dir)
        plan.input_format = self.choose_input_format(request, detected_format)
        if detected_format is not None:
            plan.conf[DETECTED_FORMAT_KEY] = str(detected_format)

    def _configure_output(self, plan: JobPlan) -> None:
        request = plan.request
        output_format = self.choose_output_format(request, self.engine)

        if self.engine is not None and output_format not in self.engine.supported_output_formats:
            raise ConfigurationError(
                f"Output format '{output_format}' is not supported by the "
                f"{self.engine.engine_type} engine",
                ErrorContext(table_name=request.table_name),
            )
        if output_format == OutputFormat.JDBC and not request.connect_url:
            raise ConfigurationError(
                "connect_url is required for the jdbc output format",
                ErrorContext(table_name=request.table_name),
            )

        plan.output_format = output_format
        plan.output_options = {
            "url": request.connect_url,
            "dbtable": request.table_name,
            "properties": dict(request.connection_properties),
        }

    def _configure_mapper(
        self, plan: JobPlan, record_class_name: str, packaging: PackagingHandle
    ) -> None:
        record_cls = packaging.load_class(record_class_name)
        for method in ("parse", "to_dict"):
            if not callable(getattr(record_cls, method, None)):
                raise ConfigurationError(
                    f"Record class '{record_class_name}' cannot be exported: missing {method}()",
                    ErrorContext(table_name=plan.table_name),
                )

        plan.mapper = ExportMapper(record_class_name).bind(record_cls)
        plan.conf[EXPORT_TABLE_CLASS_KEY] = record_class_name

        # Concurrent writes of the same records would be problematic
        plan.map_speculative_execution = False
        plan.conf[MAP_SPECULATIVE_KEY] = "false"

        if plan.request.split_by:
            plan.conf[SPLIT_BY_KEY] = plan.request.split_by

    def _configure_num_tasks(self, plan: JobPlan) -> int:
        num_tasks = plan.request.num_map_tasks
        if num_tasks is None and self.engine is not None:
            num_tasks = self.engine.default_parallelism()
        if not num_tasks or num_tasks < 1:
            num_tasks = self.settings.default_num_map_tasks

        plan.num_map_tasks = num_tasks
        plan.conf[EXPORT_MAP_TASKS_KEY] = num_tasks
        return num_tasks
