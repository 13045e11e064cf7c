"""Execution engines that run export jobs."""

from db_export.engines.base_engine import BaseEngine, JobHandle, get_registered_engines
from db_export.engines.local_engine import LocalEngine
from db_export.engines.spark_engine import SparkEngine

__all__ = [
    "BaseEngine",
    "JobHandle",
    "LocalEngine",
    "SparkEngine",
    "get_registered_engines",
]
