"""JobRunner: submit a JobPlan, wait for it and collect run metrics."""

from __future__ import annotations

import logging
import time

from db_export.common.constants import BYTES_READ_COUNTER, FILESYSTEM_COUNTER_GROUP
from db_export.common.exceptions import ConfigurationError, ErrorContext
from db_export.common.plan import JobPlan
from db_export.common.results import JobResult, RunMetrics
from db_export.engines.base_engine import BaseEngine

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Runs plans on an engine. run() blocks the calling thread until the job is
    done; cancellation is whatever the engine offers. A failed job is reported
    through JobResult.success, not raised.
    """

    def __init__(self, engine: BaseEngine):
        self.engine = engine

    def run(self, plan: JobPlan) -> JobResult:
        if not plan.is_write_safe():
            raise ConfigurationError(
                "Refusing to run an export with speculative map execution enabled",
                ErrorContext(table_name=plan.table_name, stage="run"),
            )

        start_time = time.monotonic()
        handle = self.engine.submit(plan)
        success = self.engine.wait(handle)
        elapsed = time.monotonic() - start_time

        bytes_read = self.engine.read_counter(handle, FILESYSTEM_COUNTER_GROUP, BYTES_READ_COUNTER)
        records = self.engine.read_input_record_count(handle) if success else 0
        error = None if success else self.engine.read_error(handle)

        metrics = RunMetrics(
            elapsed_seconds=elapsed,
            bytes_read=bytes_read,
            records_processed=records,
        )
        logger.info(f"Transferred {metrics.throughput_summary()}")
        if success:
            logger.info(f"Exported {records:,} records.")
        else:
            logger.warning(f"Export job for {plan.table_name} did not succeed: {error!r}")

        return JobResult(success=success, metrics=metrics, error=error)
