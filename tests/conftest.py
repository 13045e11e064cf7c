"""Pytest fixtures for export framework tests."""

import sqlite3
import textwrap
from pathlib import Path

import fsspec
import pytest

from db_export.common.config import ExportRequest
from db_export.common.constants import (
    BYTES_READ_COUNTER,
    FILESYSTEM_COUNTER_GROUP,
    OutputFormat,
)
from db_export.engines.base_engine import BaseEngine, JobHandle


# ============================================================================
# Test Doubles
# ============================================================================


class FakeEngine(BaseEngine):
    """Engine that records submissions and reports canned results."""

    engine_type = "fake"
    supported_output_formats = frozenset({OutputFormat.JDBC, OutputFormat.DBAPI})
    default_output_format = OutputFormat.JDBC

    def __init__(
        self, success=True, bytes_read=0, records=0, parallelism=4, wait_error=None, job_error=None
    ):
        self.success = success
        self.bytes_read = bytes_read
        self.records = records
        self.parallelism = parallelism
        self.wait_error = wait_error
        self.job_error = job_error
        self.submitted = []
        self.record_count_reads = 0

    @classmethod
    def from_config(cls, **kwargs):
        return cls(**kwargs)

    def submit(self, plan):
        self.submitted.append(plan)
        handle = JobHandle.new(plan)
        handle.set_counter(FILESYSTEM_COUNTER_GROUP, BYTES_READ_COUNTER, self.bytes_read)
        handle.input_records = self.records
        handle.error = self.job_error
        return handle

    def wait(self, handle):
        if self.wait_error is not None:
            raise self.wait_error
        return self.success

    def read_input_record_count(self, handle):
        self.record_count_reads += 1
        return super().read_input_record_count(handle)

    def default_parallelism(self):
        return self.parallelism


RECORD_MODULE = textwrap.dedent(
    '''
    class employees:
        """Generated record for the employees table."""

        def __init__(self, id, name):
            self.id = id
            self.name = name

        @classmethod
        def parse(cls, line):
            id_, name = line.split(",")
            return cls(int(id_), name)

        def to_dict(self):
            return {"id": self.id, "name": self.name}


    class not_a_record:
        pass
    '''
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def engine_factory():
    """FakeEngine class, for tests that need non-default canned results."""
    return FakeEngine


@pytest.fixture
def record_module(tmp_path) -> Path:
    """Generated record code packaged as a single .py artifact."""
    generated = tmp_path / "generated"
    generated.mkdir()
    module_path = generated / "employees.py"
    module_path.write_text(RECORD_MODULE, encoding="utf-8")
    return module_path


@pytest.fixture
def text_export_dir(tmp_path) -> Path:
    """Directory holding one plain CSV file."""
    export_dir = tmp_path / "export" / "employees"
    export_dir.mkdir(parents=True)
    (export_dir / "part-m-00000").write_text("1,alice\n2,bob\n3,carol\n", encoding="utf-8")
    return export_dir


@pytest.fixture
def sequence_export_dir(tmp_path) -> Path:
    """Directory holding one file with the SequenceFile header."""
    export_dir = tmp_path / "export" / "employees_seq"
    export_dir.mkdir(parents=True)
    (export_dir / "part-m-00000").write_bytes(b"SEQ\x06org.apache.hadoop.io.LongWritable")
    return export_dir


@pytest.fixture
def sample_request(text_export_dir, record_module) -> ExportRequest:
    return ExportRequest(
        export_dir=str(text_export_dir),
        table_name="employees",
        packaging_artifact=str(record_module),
        connect_url="jdbc:postgresql://db.example.com/hr",
    )


@pytest.fixture
def sqlite_db(tmp_path):
    """SQLite database with an empty employees table; yields its path."""
    db_path = tmp_path / "hr.db"
    with sqlite3.connect(db_path) as conn:
        conn.execute("CREATE TABLE employees (id INTEGER, name TEXT)")
    return db_path


@pytest.fixture
def memory_sequence_dir(tmp_path):
    """SequenceFile export held on the in-memory filesystem; yields its unqualified path."""
    fs = fsspec.filesystem("memory")
    root = f"/{tmp_path.name}"
    fs.pipe(f"{root}/employees_seq/part-m-00000", b"SEQ\x06org.apache.hadoop.io.LongWritable")
    yield f"{root}/employees_seq"
    fs.rm(root, recursive=True)
