"""In-process execution engine for small exports and local development."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence

from db_export.common.constants import (
    BYTES_READ_COUNTER,
    FILESYSTEM_COUNTER_GROUP,
    InputFormat,
    OutputFormat,
)
from db_export.common.exceptions import EngineError, ErrorContext
from db_export.common.plan import JobPlan
from db_export.engines.base_engine import BaseEngine, JobHandle
from db_export.filesystem import FilesystemConnection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], Any]


class LocalEngine(BaseEngine, engine_type="local"):
    """
    Runs the export in this process with one thread per map task.

    Input files are dealt round-robin to tasks. Each task opens its own DB-API
    connection, inserts its rows in batches and commits once at the end, so a
    failing task leaves rows committed by the tasks that finished. Only text
    input is supported; SequenceFiles need a Hadoop reader.
    """

    supported_output_formats = frozenset({OutputFormat.DBAPI})
    default_output_format = OutputFormat.DBAPI

    def __init__(
        self,
        connection_factory: Optional[ConnectionFactory] = None,
        filesystem: Optional[FilesystemConnection] = None,
        batch_size: int = 1000,
        parallelism: int = 4,
    ):
        self.connection_factory = connection_factory
        self.filesystem = filesystem
        self.batch_size = batch_size
        self.parallelism = parallelism
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="db_export-local")
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        connection_factory: Optional[ConnectionFactory] = None,
        filesystem: Optional[FilesystemConnection] = None,
        settings=None,
        **kwargs,
    ) -> "LocalEngine":
        """Create LocalEngine; parallelism defaults to the configured map task count."""
        if settings is not None:
            kwargs.setdefault("parallelism", settings.default_num_map_tasks)
        return cls(connection_factory=connection_factory, filesystem=filesystem, **kwargs)

    def default_parallelism(self) -> int:
        return self.parallelism

    def submit(self, plan: JobPlan) -> JobHandle:
        handle = JobHandle.new(plan)
        context = ErrorContext(table_name=plan.table_name, stage="submit", path=plan.input_path)

        if plan.resolved_input_format() != InputFormat.TEXT:
            raise EngineError(
                f"Local engine cannot read {plan.resolved_input_format()} input", context
            )

        try:
            filesystem = self.filesystem or FilesystemConnection.for_path(plan.input_path)
            files = self._list_input_files(filesystem, plan.input_path)
        except (OSError, ValueError) as e:
            raise EngineError(f"Failed to list export input: {e}", context) from e

        handle.future = self._executor.submit(self._run_job, handle, filesystem, files)
        logger.info(
            f"Submitted local export job {handle.job_id}: {len(files)} file(s), "
            f"{plan.num_map_tasks} task(s)"
        )
        return handle

    def wait(self, handle: JobHandle) -> bool:
        try:
            return handle.future.result()
        except CancelledError as e:
            raise EngineError(
                f"Export job {handle.job_id} was cancelled",
                ErrorContext(table_name=handle.plan.table_name, stage="wait"),
            ) from e

    @staticmethod
    def _list_input_files(filesystem: FilesystemConnection, path: str) -> List[str]:
        stat = filesystem.status(path)
        if stat is None:
            raise FileNotFoundError(f"Input path {path} does not exist")
        if not stat.is_directory:
            return [stat.path]
        # Hidden and marker files (_SUCCESS, .crc) are not data
        return [
            child.path
            for child in filesystem.list_children(path)
            if not child.is_directory
            and not child.path.rstrip("/").rsplit("/", 1)[-1].startswith(("_", "."))
        ]

    def _run_job(self, handle: JobHandle, filesystem: FilesystemConnection, files: List[str]) -> bool:
        plan = handle.plan
        num_tasks = max(1, min(plan.num_map_tasks, len(files) or 1))
        splits = [files[i::num_tasks] for i in range(num_tasks)]
        success = True

        with ThreadPoolExecutor(max_workers=num_tasks, thread_name_prefix=handle.job_id) as pool:
            futures = {
                pool.submit(self._run_task, handle, filesystem, split): task_id
                for task_id, split in enumerate(splits)
            }
            for future in as_completed(futures):
                task_id = futures[future]
                try:
                    future.result()
                except Exception as e:
                    logger.exception(f"Task {task_id} of export job {handle.job_id} failed: {e}")
                    handle.error = handle.error or e
                    success = False

        return success

    def _run_task(self, handle: JobHandle, filesystem: FilesystemConnection, files: Sequence[str]) -> None:
        plan = handle.plan
        if not files:
            return

        connection = self._connect(plan)
        try:
            batch: List[Dict[str, Any]] = []
            for path in files:
                num_bytes = num_records = 0
                with filesystem.open(path) as stream:
                    for raw in stream:
                        num_bytes += len(raw)
                        num_records += 1
                        batch.append(plan.mapper.map_text(raw.decode("utf-8").rstrip("\r\n")))
                        if len(batch) >= self.batch_size:
                            self._insert_rows(connection, plan.table_name, batch)
                            batch = []
                self._add_counts(handle, num_bytes, num_records)

            if batch:
                self._insert_rows(connection, plan.table_name, batch)
            connection.commit()
        finally:
            connection.close()

    def _add_counts(self, handle: JobHandle, num_bytes: int, num_records: int) -> None:
        with self._lock:
            total = handle.get_counter(FILESYSTEM_COUNTER_GROUP, BYTES_READ_COUNTER)
            handle.set_counter(FILESYSTEM_COUNTER_GROUP, BYTES_READ_COUNTER, total + num_bytes)
            handle.input_records += num_records

    def _connect(self, plan: JobPlan):
        if self.connection_factory is not None:
            return self.connection_factory()

        import pyodbc

        return pyodbc.connect(plan.output_options["url"])

    @staticmethod
    def _insert_rows(connection, table_name: str, rows: List[Dict[str, Any]]) -> None:
        columns = list(rows[0].keys())
        placeholders = ", ".join("?" for _ in columns)
        statement = f"INSERT INTO {table_name} ({', '.join(columns)}) VALUES ({placeholders})"
        cursor = connection.cursor()
        try:
            cursor.executemany(statement, [tuple(row[c] for c in columns) for row in rows])
        finally:
            cursor.close()
