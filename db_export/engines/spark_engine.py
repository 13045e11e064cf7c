"""Execution engine backed by a PySpark SparkContext."""

from __future__ import annotations

import logging
import shutil
import tempfile
from concurrent.futures import CancelledError, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Tuple

from pyspark.sql import Row, SparkSession

from db_export.common.constants import (
    BYTES_READ_COUNTER,
    FILESYSTEM_COUNTER_GROUP,
    MAP_SPECULATIVE_KEY,
    SPLIT_BY_KEY,
    InputFormat,
    OutputFormat,
)
from db_export.common.exceptions import EngineError, ErrorContext
from db_export.common.plan import JobPlan
from db_export.common.settings import ExportSettings
from db_export.engines.base_engine import BaseEngine, JobHandle

logger = logging.getLogger(__name__)


def _value_size(value) -> int:
    if value is None:
        return 0
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    return len(str(value).encode("utf-8"))


def _remove_scratch_dir(scratch_dir: Optional[str]) -> None:
    if scratch_dir is None:
        return
    try:
        shutil.rmtree(scratch_dir)
    except OSError as e:
        logger.warning(f"Could not remove scratch directory {scratch_dir}: {e}")


def _map_text_partition(mapper, bytes_acc, records_acc):
    def run(lines):
        num_bytes = num_records = 0
        for line in lines:
            num_bytes += len(line.encode("utf-8")) + 1  # newline dropped by textFile
            num_records += 1
            yield Row(**mapper.map_text(line))
        bytes_acc.add(num_bytes)
        records_acc.add(num_records)

    return run


def _map_sequence_partition(mapper, bytes_acc, records_acc):
    def run(pairs):
        num_bytes = num_records = 0
        for key, value in pairs:
            num_bytes += _value_size(key) + _value_size(value)
            num_records += 1
            yield Row(**mapper.map_sequence(key, value))
        bytes_acc.add(num_bytes)
        records_acc.add(num_records)

    return run


class SparkEngine(BaseEngine, engine_type="spark"):
    """
    Runs export jobs on Spark and writes rows through the JDBC data source.

    Jobs run on a single background thread so submit() returns immediately;
    each job gets its own job group so it can be cancelled as a unit.
    """

    supported_output_formats = frozenset({OutputFormat.JDBC})
    default_output_format = OutputFormat.JDBC

    def __init__(self, spark: SparkSession):
        self.spark = spark
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="db_export-spark")

    @classmethod
    def from_config(
        cls,
        spark: Optional[SparkSession] = None,
        settings: Optional[ExportSettings] = None,
        **kwargs,
    ) -> "SparkEngine":
        """Create SparkEngine, building a session from settings if none is given."""
        if spark is None:
            spark = cls._create_session(settings or ExportSettings.from_env())
        return cls(spark=spark)

    @staticmethod
    def _create_session(settings: ExportSettings) -> SparkSession:
        logger.info(f"Creating Spark session: {settings.spark_app_name}")
        builder = (
            SparkSession.builder.appName(settings.spark_app_name)
            .config(MAP_SPECULATIVE_KEY, "false")  # duplicate task attempts would write twice
        )
        if settings.spark_master:
            builder = builder.master(settings.spark_master)
        return builder.getOrCreate()

    def default_parallelism(self) -> int:
        return self.spark.sparkContext.defaultParallelism

    def submit(self, plan: JobPlan) -> JobHandle:
        handle = JobHandle.new(plan)
        context = ErrorContext(table_name=plan.table_name, stage="submit", path=plan.input_path)

        scratch_dir = None
        try:
            sc = self.spark.sparkContext
            # Speculation is fixed when the SparkContext starts; a plan cannot switch it off
            live_value = sc.getConf().get(MAP_SPECULATIVE_KEY, "false")
            if str(live_value).lower() == "true":
                raise EngineError(
                    f"{MAP_SPECULATIVE_KEY}=true on the active SparkContext; "
                    "refusing to run an export that could write records twice",
                    context,
                )

            if plan.packaging_artifact:
                py_file, scratch_dir = self._as_py_file(plan.packaging_artifact)
                sc.addPyFile(py_file)

            handle.future = self._executor.submit(self._run_and_clean_up, handle, scratch_dir)
        except EngineError:
            _remove_scratch_dir(scratch_dir)
            raise
        except Exception as e:
            _remove_scratch_dir(scratch_dir)
            raise EngineError(f"Failed to submit export job {handle.job_id}: {e}", context) from e

        logger.info(f"Submitted export job {handle.job_id} for table {plan.table_name}")
        return handle

    def wait(self, handle: JobHandle) -> bool:
        try:
            return handle.future.result()
        except CancelledError as e:
            raise EngineError(
                f"Export job {handle.job_id} was cancelled",
                ErrorContext(table_name=handle.plan.table_name, stage="wait"),
            ) from e
        except KeyboardInterrupt:
            logger.warning(f"Interrupted; cancelling Spark job group {handle.job_id}")
            self.spark.sparkContext.cancelJobGroup(handle.job_id)
            raise

    def _run_and_clean_up(self, handle: JobHandle, scratch_dir: Optional[str]) -> bool:
        # Executors fetch the shipped archive lazily; keep it until the job ends
        try:
            return self._run_job(handle)
        finally:
            _remove_scratch_dir(scratch_dir)

    def _run_job(self, handle: JobHandle) -> bool:
        plan = handle.plan
        sc = self.spark.sparkContext
        sc.setJobGroup(handle.job_id, f"Export {plan.input_path} to {plan.table_name}", True)

        bytes_acc = sc.accumulator(0)
        records_acc = sc.accumulator(0)
        success = False
        rows = None

        try:
            # Cached so the emptiness check and the write map each partition once
            rows = self._read_and_map(plan, bytes_acc, records_acc).cache()
            if rows.isEmpty():
                logger.info(f"No input records found under {plan.input_path}")
            else:
                df = self.spark.createDataFrame(rows)
                split_by = plan.conf.get(SPLIT_BY_KEY)
                if split_by:
                    df = df.repartition(plan.num_map_tasks, split_by)

                options = plan.output_options
                df.write.jdbc(
                    url=options["url"],
                    table=options["dbtable"],
                    mode="append",
                    properties=dict(options.get("properties") or {}),
                )
            success = True
        except Exception as e:
            logger.exception(f"Export job {handle.job_id} failed: {e}")
            handle.error = e
        finally:
            if rows is not None:
                rows.unpersist()
            handle.set_counter(FILESYSTEM_COUNTER_GROUP, BYTES_READ_COUNTER, bytes_acc.value)
            handle.input_records = records_acc.value

        return success

    def _read_and_map(self, plan: JobPlan, bytes_acc, records_acc):
        sc = self.spark.sparkContext
        num_tasks = plan.num_map_tasks
        input_format = plan.resolved_input_format()

        if input_format == InputFormat.SEQUENCE_FILE:
            source = sc.sequenceFile(plan.input_path, minSplits=num_tasks)
            map_partition = _map_sequence_partition(plan.mapper, bytes_acc, records_acc)
        else:
            source = sc.textFile(plan.input_path, minPartitions=num_tasks)
            map_partition = _map_text_partition(plan.mapper, bytes_acc, records_acc)

        # At most num_tasks concurrent writers against the database
        if source.getNumPartitions() > num_tasks:
            source = source.coalesce(num_tasks)

        return source.mapPartitions(map_partition)

    @staticmethod
    def _as_py_file(artifact: str) -> Tuple[str, Optional[str]]:
        """
        addPyFile takes .py/.zip/.egg files; directories are zipped first.

        Returns the file to ship and the scratch directory holding it, if one
        was created.
        """
        path = Path(artifact)
        if not path.is_dir():
            return str(path), None
        scratch_dir = tempfile.mkdtemp(prefix="db_export_")
        archive = shutil.make_archive(str(Path(scratch_dir) / path.name), "zip", root_dir=str(path))
        return archive, scratch_dir
