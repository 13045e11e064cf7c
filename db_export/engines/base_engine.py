"""Base interface for execution engines with self-registration."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Type

from db_export.common.constants import (
    DEFAULT_NUM_MAP_TASKS,
    OutputFormat,
)
from db_export.common.plan import JobPlan

# Registry for auto-registration of engine classes
_ENGINE_REGISTRY: Dict[str, Type["BaseEngine"]] = {}

logger = logging.getLogger(__name__)


@dataclass
class JobHandle:
    """A submitted job. Counters are filled in by the engine as the job runs."""

    job_id: str
    plan: JobPlan
    future: Optional[Future] = None
    counters: Dict[str, Dict[str, int]] = field(default_factory=dict)
    input_records: int = 0
    error: Optional[BaseException] = None

    @classmethod
    def new(cls, plan: JobPlan) -> "JobHandle":
        return cls(job_id=f"{plan.job_name}_{uuid.uuid4().hex[:12]}", plan=plan)

    def set_counter(self, group: str, name: str, value: int) -> None:
        self.counters.setdefault(group, {})[name] = value

    def get_counter(self, group: str, name: str) -> int:
        return self.counters.get(group, {}).get(name, 0)


class BaseEngine(ABC):
    """
    Abstract base class for execution engines with self-registration.

    Engines self-register when defined by specifying engine_type in class definition:
        class SparkEngine(BaseEngine, engine_type="spark"):
            ...

    Use BaseEngine.create() to instantiate an engine by name. Callers only
    depend on submit/wait/read_counter/read_input_record_count.
    """

    engine_type: str
    supported_output_formats: FrozenSet[OutputFormat] = frozenset()
    default_output_format: Optional[OutputFormat] = None

    def __init_subclass__(cls, engine_type: str | None = None, **kwargs):
        """Auto-register subclasses that specify an engine_type."""
        super().__init_subclass__(**kwargs)
        if engine_type is not None:
            cls.engine_type = engine_type
            _ENGINE_REGISTRY[engine_type] = cls
            logger.debug(f"Registered engine for engine_type: {engine_type}")

    @classmethod
    def create(cls, engine_type: str, **kwargs) -> "BaseEngine":
        """
        Factory method - create the engine registered under engine_type.

        Args:
            engine_type: Registered engine name ("spark", "local")
            **kwargs: Passed to the engine's from_config()

        Raises:
            ValueError: If no engine is registered for engine_type
        """
        engine_cls = _ENGINE_REGISTRY.get(engine_type)
        if not engine_cls:
            registered = ", ".join(_ENGINE_REGISTRY.keys()) or "(none)"
            raise ValueError(
                f"No engine registered for engine_type: '{engine_type}'. "
                f"Registered types: {registered}"
            )
        return engine_cls.from_config(**kwargs)

    @classmethod
    @abstractmethod
    def from_config(cls, **kwargs) -> "BaseEngine":
        """Construct the engine with its production dependencies."""
        ...

    @abstractmethod
    def submit(self, plan: JobPlan) -> JobHandle:
        """
        Start the job described by plan and return without waiting.

        Raises:
            EngineError: If the job cannot be submitted
        """
        ...

    @abstractmethod
    def wait(self, handle: JobHandle) -> bool:
        """Block until the job finishes. Returns True on success, False on job failure."""
        ...

    def read_counter(self, handle: JobHandle, group: str, name: str) -> int:
        return handle.get_counter(group, name)

    def read_input_record_count(self, handle: JobHandle) -> int:
        return handle.input_records

    def read_error(self, handle: JobHandle) -> Optional[BaseException]:
        """The exception that made the job fail, if the engine captured one."""
        return handle.error

    def default_parallelism(self) -> int:
        return DEFAULT_NUM_MAP_TASKS


def get_registered_engines() -> Dict[str, Type[BaseEngine]]:
    """Get all registered engines."""
    return dict(_ENGINE_REGISTRY)
