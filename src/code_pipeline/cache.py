from __future__ import annotations

import threading
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from .errors import NotFoundError
from .status import Status

if TYPE_CHECKING:
    from .context import ExecutionContext


class Slot(Enum):
    """Named field inside one pipeline's cache record.

    Example:
        ```python
        cache.get_value(ctx, pipeline_id, Slot.RUN_OUTPUT)
        ```
    """

    STATUS = "status"
    COMPILE_OUTPUT = "compile_output"
    RUN_OUTPUT = "run_output"
    RUN_ERROR = "run_error"
    RUN_OUTPUT_INDEX = "run_output_index"
    CANCELED = "canceled"


SLOT_TYPES: dict[Slot, type] = {
    Slot.STATUS: Status,
    Slot.COMPILE_OUTPUT: str,
    Slot.RUN_OUTPUT: str,
    Slot.RUN_ERROR: str,
    Slot.RUN_OUTPUT_INDEX: int,
    Slot.CANCELED: bool,
}


class Cache(Protocol):
    def set_value(
        self,
        ctx: ExecutionContext,
        pipeline_id: uuid.UUID,
        slot: Slot,
        value: Any,
    ) -> None:
        """Store one slot value for a pipeline.

        Example:
            ```python
            cache.set_value(ctx, pipeline_id, Slot.CANCELED, True)
            ```
        """
        ...

    def get_value(self, ctx: ExecutionContext, pipeline_id: uuid.UUID, slot: Slot) -> Any:
        """Return one slot value or raise `NotFoundError`.

        Example:
            ```python
            status = cache.get_value(ctx, pipeline_id, Slot.STATUS)
            ```
        """
        ...


class LocalCache:
    """In-memory cache partitioned by pipeline id.

    Safe for concurrent use across threads; eviction is left to the owner,
    who calls `delete` when a pipeline's record is no longer needed.

    Example:
        ```python
        cache = LocalCache()
        cache.set_value(ctx, pipeline_id, Slot.RUN_OUTPUT, "Hello world!\\n")
        ```
    """

    def __init__(self) -> None:
        """Initialize an empty thread-safe store.

        Example:
            ```python
            cache = LocalCache()
            ```
        """
        self._lock = threading.Lock()
        self._records: dict[uuid.UUID, dict[Slot, Any]] = {}

    def set_value(
        self,
        ctx: ExecutionContext,
        pipeline_id: uuid.UUID,
        slot: Slot,
        value: Any,
    ) -> None:
        """Store one slot value, creating the pipeline record when needed.

        Example:
            ```python
            cache.set_value(ctx, pipeline_id, Slot.STATUS, Status.VALIDATING)
            ```
        """
        with self._lock:
            self._records.setdefault(pipeline_id, {})[slot] = value

    def get_value(self, ctx: ExecutionContext, pipeline_id: uuid.UUID, slot: Slot) -> Any:
        """Return one slot value or raise `NotFoundError` when it was never set.

        Example:
            ```python
            output = cache.get_value(ctx, pipeline_id, Slot.RUN_OUTPUT)
            ```
        """
        with self._lock:
            record = self._records.get(pipeline_id)
            if record is None:
                raise NotFoundError(f"pipeline {pipeline_id} not found in cache")
            if slot not in record:
                raise NotFoundError(f"slot '{slot.value}' not set for pipeline {pipeline_id}")
            return record[slot]

    def delete(self, ctx: ExecutionContext, pipeline_id: uuid.UUID) -> None:
        """Drop every slot stored for a pipeline.

        Example:
            ```python
            cache.delete(ctx, pipeline_id)
            ```
        """
        with self._lock:
            self._records.pop(pipeline_id, None)
