"""Result dataclasses for the export framework."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from db_export.common.constants import ExportFailureKind, ExportState
from db_export.common.exceptions import ExportError


def format_bytes(num_bytes: float) -> str:
    """Render a byte count in the largest unit below 1024."""
    if num_bytes < 1024:
        return f"{int(num_bytes)} bytes"
    for unit in ("KB", "MB", "GB"):
        num_bytes /= 1024.0
        if num_bytes < 1024 or unit == "GB":
            return f"{num_bytes:.4f} {unit}"


@dataclass(frozen=True)
class RunMetrics:
    """Metrics for one engine run. Immutable once the run completes."""

    elapsed_seconds: float = 0.0
    bytes_read: int = 0
    records_processed: int = 0

    @property
    def bytes_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.bytes_read / self.elapsed_seconds

    def throughput_summary(self) -> str:
        """e.g. ``976.5625 KB in 2.0000 seconds (488.2812 KB/sec)``"""
        return (
            f"{format_bytes(self.bytes_read)} in {self.elapsed_seconds:.4f} seconds "
            f"({format_bytes(self.bytes_per_second)}/sec)"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "elapsed_seconds": self.elapsed_seconds,
            "bytes_read": self.bytes_read,
            "records_processed": self.records_processed,
        }


@dataclass(frozen=True)
class JobResult:
    """What JobRunner hands back: the engine's success flag plus metrics."""

    success: bool
    metrics: RunMetrics
    error: Optional[BaseException] = None  # What the engine reported for a failed job


@dataclass
class ExportOutcome:
    """Terminal value of ExportOrchestrator.run_export."""

    table_name: str
    state: ExportState
    metrics: Optional[RunMetrics] = None
    failure_kind: Optional[ExportFailureKind] = None
    detail: Optional[str] = None
    stage: Optional[ExportState] = None  # State the failure happened in
    error: Optional[ExportError] = None

    @classmethod
    def success(cls, table_name: str, metrics: RunMetrics) -> "ExportOutcome":
        return cls(table_name=table_name, state=ExportState.SUCCEEDED, metrics=metrics)

    @classmethod
    def failure(
        cls,
        table_name: str,
        stage: ExportState,
        error: ExportError,
        metrics: Optional[RunMetrics] = None,
    ) -> "ExportOutcome":
        return cls(
            table_name=table_name,
            state=ExportState.FAILED,
            metrics=metrics,
            failure_kind=error.kind,
            detail=str(error),
            stage=stage,
            error=error,
        )

    @property
    def succeeded(self) -> bool:
        return self.state == ExportState.SUCCEEDED

    def raise_for_status(self) -> "ExportOutcome":
        """Raise the typed error of a failed outcome; return self otherwise."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "table_name": self.table_name,
            "state": str(self.state),
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "failure_kind": str(self.failure_kind) if self.failure_kind else None,
            "detail": self.detail,
            "stage": str(self.stage) if self.stage else None,
        }
