"""Tests for JobRunner."""

import logging

import pytest

from db_export.common.constants import MAP_SPECULATIVE_KEY, InputFormat, OutputFormat
from db_export.common.exceptions import ConfigurationError, EngineError
from db_export.common.plan import JobPlan
from db_export.job_runner import JobRunner


@pytest.fixture
def safe_plan(sample_request):
    return JobPlan(
        request=sample_request,
        job_name="export_employees",
        input_path=f"file://{sample_request.export_dir}",
        input_format=InputFormat.TEXT,
        output_format=OutputFormat.JDBC,
        num_map_tasks=1,
        map_speculative_execution=False,
        conf={MAP_SPECULATIVE_KEY: "false"},
    )


class TestWriteSafety:
    """Plans that could write records twice are never submitted."""

    def test_default_plan_is_refused(self, fake_engine, sample_request):
        plan = JobPlan(request=sample_request, job_name="export_employees")
        with pytest.raises(ConfigurationError, match="speculative"):
            JobRunner(fake_engine).run(plan)
        assert fake_engine.submitted == []

    def test_flag_without_conf_is_refused(self, fake_engine, safe_plan):
        """Both the flag and the engine setting must say off."""
        safe_plan.conf.pop(MAP_SPECULATIVE_KEY)
        with pytest.raises(ConfigurationError):
            JobRunner(fake_engine).run(safe_plan)
        assert fake_engine.submitted == []

    def test_conf_overridden_to_true_is_refused(self, fake_engine, safe_plan):
        safe_plan.conf[MAP_SPECULATIVE_KEY] = "true"
        with pytest.raises(ConfigurationError):
            JobRunner(fake_engine).run(safe_plan)


class TestRun:
    """Tests for metrics collection."""

    def test_success_reports_counters(self, engine_factory, safe_plan, caplog):
        engine = engine_factory(bytes_read=2048, records=25)
        with caplog.at_level(logging.INFO, logger="db_export.job_runner"):
            result = JobRunner(engine).run(safe_plan)

        assert result.success is True
        assert result.metrics.bytes_read == 2048
        assert result.metrics.records_processed == 25
        assert result.metrics.elapsed_seconds >= 0
        assert engine.submitted == [safe_plan]
        assert "Transferred 2.0000 KB in" in caplog.text
        assert "Exported 25 records." in caplog.text

    def test_failure_skips_record_count(self, engine_factory, safe_plan, caplog):
        """A failed job reports bytes read but never reads the record counter."""
        engine = engine_factory(success=False, bytes_read=100, records=7)
        with caplog.at_level(logging.INFO, logger="db_export.job_runner"):
            result = JobRunner(engine).run(safe_plan)

        assert result.success is False
        assert result.metrics.bytes_read == 100
        assert result.metrics.records_processed == 0
        assert engine.record_count_reads == 0
        assert "Transferred 100 bytes in" in caplog.text
        assert "Exported" not in caplog.text

    def test_failure_reports_engine_error(self, engine_factory, safe_plan):
        """The exception the engine captured travels back with the result."""
        cause = ValueError("invalid literal for int() with base 10: 'x'")
        result = JobRunner(engine_factory(success=False, job_error=cause)).run(safe_plan)

        assert result.success is False
        assert result.error is cause

    def test_success_has_no_error(self, fake_engine, safe_plan):
        assert JobRunner(fake_engine).run(safe_plan).error is None

    def test_engine_errors_propagate(self, engine_factory, safe_plan):
        engine = engine_factory(wait_error=EngineError("cluster unreachable"))
        with pytest.raises(EngineError, match="cluster unreachable"):
            JobRunner(engine).run(safe_plan)
