"""Constants for the export framework."""

from enum import StrEnum

# Configuration carrier keys read and written by the export stages
EXPORT_TABLE_CLASS_KEY = "db_export.mapreduce.export.table.class"
EXPORT_MAP_TASKS_KEY = "db_export.mapreduce.export.map.tasks"
DETECTED_FORMAT_KEY = "db_export.export.detected.format"
PACKAGING_ARTIFACT_KEY = "db_export.export.packaging"
SPLIT_BY_KEY = "db_export.export.split.by"
MAP_SPECULATIVE_KEY = "spark.speculation"

# Engine counters
FILESYSTEM_COUNTER_GROUP = "FileSystemCounters"
BYTES_READ_COUNTER = "BYTES_READ"

SEQUENCE_FILE_MAGIC = b"SEQ"

DEFAULT_NUM_MAP_TASKS = 4


class DetectedFormat(StrEnum):
    """Result of sniffing an export source path."""

    SEQUENCE_CONTAINER = "sequence_container"
    PLAIN_TEXT = "plain_text"
    # Detection failed; callers treat this as plain text
    UNREADABLE = "unreadable"


class InputFormat(StrEnum):
    """Input formats an engine can read export sources with."""

    # Reads either container or text sources, using the detection hint
    EXPORT = "export"
    SEQUENCE_FILE = "sequencefile"
    TEXT = "text"


class OutputFormat(StrEnum):
    """Database-backed sinks."""

    JDBC = "jdbc"
    DBAPI = "dbapi"


class ExportState(StrEnum):
    """States of a single run_export call."""

    IDLE = "idle"
    PREPARING = "preparing"
    CONFIGURING = "configuring"
    RUNNING = "running"

    # Terminal
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ExportFailureKind(StrEnum):
    """Classification of a failed export."""

    SETUP_ERROR = "setup_error"
    CONFIGURATION_ERROR = "configuration_error"
    ENGINE_ERROR = "engine_error"
    JOB_FAILED = "job_failed"
