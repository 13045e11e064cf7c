"""Configuration dataclasses for the export framework."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from db_export.common.constants import InputFormat, OutputFormat


@dataclass(frozen=True)
class ExportRequest:
    """Immutable description of one export operation.

    Created once per invocation and never mutated. ``num_map_tasks=None``
    means the task count is derived from engine defaults.
    """

    export_dir: str  # Source location in the distributed filesystem
    table_name: str  # Target database table

    # Generated record class
    record_class_name: Optional[str] = None  # Explicit class, overrides package_name
    package_name: Optional[str] = None  # Package holding generated classes
    packaging_artifact: Optional[str] = None  # .zip/.whl/.egg/.py or directory

    split_by: Optional[str] = None
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    num_map_tasks: Optional[int] = None

    # Sink connection
    connect_url: Optional[str] = None
    connection_properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate request on construction."""
        if not self.export_dir:
            raise ValueError("export_dir is required")
        if not self.table_name:
            raise ValueError("table_name is required")

        if self.input_format is not None:
            valid_inputs = {f.value for f in InputFormat}
            if self.input_format not in valid_inputs:
                raise ValueError(
                    f"Unsupported input_format: '{self.input_format}'. "
                    f"Valid options: {', '.join(sorted(valid_inputs))}"
                )

        if self.output_format is not None:
            valid_outputs = {f.value for f in OutputFormat}
            if self.output_format not in valid_outputs:
                raise ValueError(
                    f"Unsupported output_format: '{self.output_format}'. "
                    f"Valid options: {', '.join(sorted(valid_outputs))}"
                )

        if self.num_map_tasks is not None and self.num_map_tasks < 1:
            raise ValueError(
                f"num_map_tasks must be a positive integer, got {self.num_map_tasks}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExportRequest":
        """Build a request from a mapping, e.g. a parsed YAML request file.

        Unknown keys are rejected so typos do not silently fall back to defaults.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown export request fields: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = dict(data)
        if values.get("num_map_tasks") is not None:
            values["num_map_tasks"] = int(values["num_map_tasks"])
        if values.get("connection_properties") is None:
            values.pop("connection_properties", None)
        else:
            values["connection_properties"] = {
                str(k): str(v) for k, v in values["connection_properties"].items()
            }
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, leaving out connection properties."""
        return {
            "export_dir": self.export_dir,
            "table_name": self.table_name,
            "record_class_name": self.record_class_name,
            "package_name": self.package_name,
            "packaging_artifact": self.packaging_artifact,
            "split_by": self.split_by,
            "input_format": self.input_format,
            "output_format": self.output_format,
            "num_map_tasks": self.num_map_tasks,
            "connect_url": self.connect_url,
        }
