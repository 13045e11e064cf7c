"""Process-level settings for the export framework.

Values default to what a local run needs and can be overridden with
``DB_EXPORT_*`` environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from db_export.common.constants import DEFAULT_NUM_MAP_TASKS

logger = logging.getLogger(__name__)


@dataclass
class ExportSettings:
    engine_type: str = "spark"  # Options: "spark" or "local"
    default_num_map_tasks: int = DEFAULT_NUM_MAP_TASKS
    spark_app_name: str = "db_export"
    spark_master: Optional[str] = None  # None leaves master to spark-submit
    default_filesystem: Optional[str] = None  # e.g. "hdfs://namenode:8020"

    def __post_init__(self):
        if self.default_num_map_tasks < 1:
            raise ValueError(
                f"default_num_map_tasks must be positive, got {self.default_num_map_tasks}"
            )

    @classmethod
    def from_env(cls) -> "ExportSettings":
        """Create settings from DB_EXPORT_* environment variables."""
        settings = cls(
            engine_type=os.getenv("DB_EXPORT_ENGINE", "spark").lower(),
            default_num_map_tasks=int(
                os.getenv("DB_EXPORT_DEFAULT_MAP_TASKS", str(DEFAULT_NUM_MAP_TASKS))
            ),
            spark_app_name=os.getenv("DB_EXPORT_SPARK_APP_NAME", "db_export"),
            spark_master=os.getenv("DB_EXPORT_SPARK_MASTER") or None,
            default_filesystem=os.getenv("DB_EXPORT_DEFAULT_FS") or None,
        )
        logger.debug(f"Loaded export settings: {settings}")
        return settings
