from .accessors import get_last_index, get_processing_output, get_processing_status, read_output_delta
from .backends import Backend, backend_for
from .cache import Cache, LocalCache, Slot
from .config import ApplicationEnvironment, SdkEnvironment, load_sdk_environments
from .context import AbortReason, ExecutionContext
from .errors import (
    InfrastructureError,
    NotFoundError,
    PipelineError,
    TypeConversionError,
    ValidationError,
)
from .execution.local_engine import LocalEngine
from .executors import Executor, ExecutorBuilder
from .lifecycle import LifeCycle
from .pipeline import process
from .service import PipelineService
from .status import Status

__all__ = [
    "AbortReason",
    "ApplicationEnvironment",
    "Backend",
    "Cache",
    "ExecutionContext",
    "Executor",
    "ExecutorBuilder",
    "InfrastructureError",
    "LifeCycle",
    "LocalCache",
    "LocalEngine",
    "NotFoundError",
    "PipelineError",
    "PipelineService",
    "SdkEnvironment",
    "Slot",
    "Status",
    "TypeConversionError",
    "ValidationError",
    "backend_for",
    "get_last_index",
    "get_processing_output",
    "get_processing_status",
    "load_sdk_environments",
    "process",
    "read_output_delta",
]
