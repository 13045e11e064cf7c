"""Custom exceptions for the export framework."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from db_export.common.constants import ExportFailureKind


@dataclass
class ErrorContext:
    """Structured context for errors"""

    table_name: Optional[str] = None
    stage: Optional[str] = None
    path: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        result = {}
        if self.table_name:
            result["table_name"] = self.table_name
        if self.stage:
            result["stage"] = self.stage
        if self.path:
            result["path"] = self.path
        if self.additional_info:
            result.update(self.additional_info)
        return result

    def __str__(self) -> str:
        parts = []
        if self.table_name:
            parts.append(f"table={self.table_name}")
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.path:
            parts.append(f"path={self.path}")
        return ", ".join(parts) if parts else "no context"


class ExportError(Exception):
    """Base exception for export operations."""

    kind: ExportFailureKind = ExportFailureKind.ENGINE_ERROR

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.context = context or ErrorContext()
        self.error_code = error_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if str(self.context) != "no context":
            parts.append(f"[{self.context}]")
        if self.error_code:
            parts.append(f"(code: {self.error_code})")
        return " ".join(parts)

    def with_context(self, table_name: str, stage: str) -> "ExportError":
        """Fill in table and stage if the raiser did not know them."""
        if self.context.table_name is None:
            self.context.table_name = table_name
        if self.context.stage is None:
            self.context.stage = stage
        self.args = (self._format_message(),)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging"""
        result = {
            "error_type": self.__class__.__name__,
            "kind": str(self.kind),
            "message": self.message,
        }
        if self.error_code:
            result["error_code"] = self.error_code
        context = self.context.to_dict()
        if context:
            result["context"] = context
        return result


# =============================================================================
# Setup Errors
# =============================================================================


class SetupError(ExportError):
    """Record class or packaging artifact could not be resolved."""

    kind = ExportFailureKind.SETUP_ERROR


class ClassResolutionError(SetupError):
    """A record class identifier did not resolve to a loaded type."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ExportError):
    """Error in export configuration."""

    kind = ExportFailureKind.CONFIGURATION_ERROR


class PathQualificationError(ConfigurationError):
    """The export source path could not be qualified against the filesystem."""

    pass


# =============================================================================
# Execution Errors
# =============================================================================


class EngineError(ExportError):
    """The engine could not be reached, or submission/await did not complete."""

    kind = ExportFailureKind.ENGINE_ERROR


class JobFailedError(ExportError):
    """The job ran to completion but reported failure."""

    kind = ExportFailureKind.JOB_FAILED
