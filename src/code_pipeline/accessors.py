from __future__ import annotations

import uuid

from .cache import Cache, Slot
from .context import ExecutionContext
from .errors import TypeConversionError
from .status import Status


def get_processing_status(ctx: ExecutionContext, cache: Cache, pipeline_id: uuid.UUID) -> Status:
    """Return the last status recorded for a pipeline.

    Raises `NotFoundError` when no status was recorded and
    `TypeConversionError` when the slot holds something other than a `Status`.

    Example:
        ```python
        status = get_processing_status(ctx, cache, pipeline_id)
        ```
    """
    value = cache.get_value(ctx, pipeline_id, Slot.STATUS)
    if not isinstance(value, Status):
        raise TypeConversionError(
            f"{pipeline_id}: status slot holds {type(value).__name__}, expected Status"
        )
    return value


def get_processing_output(
    ctx: ExecutionContext,
    cache: Cache,
    pipeline_id: uuid.UUID,
    slot: Slot,
) -> str:
    """Return a text slot such as RunOutput, RunError or CompileOutput.

    Example:
        ```python
        output = get_processing_output(ctx, cache, pipeline_id, Slot.RUN_OUTPUT)
        ```
    """
    value = cache.get_value(ctx, pipeline_id, slot)
    if type(value) is not str:
        raise TypeConversionError(
            f"{pipeline_id}: slot '{slot.value}' holds {type(value).__name__}, expected str"
        )
    return value


def get_last_index(
    ctx: ExecutionContext,
    cache: Cache,
    pipeline_id: uuid.UUID,
    slot: Slot,
) -> int:
    """Return an integer index slot such as RunOutputIndex.

    Example:
        ```python
        index = get_last_index(ctx, cache, pipeline_id, Slot.RUN_OUTPUT_INDEX)
        ```
    """
    value = cache.get_value(ctx, pipeline_id, slot)
    if type(value) is not int:
        raise TypeConversionError(
            f"{pipeline_id}: slot '{slot.value}' holds {type(value).__name__}, expected int"
        )
    return value


def read_output_delta(
    ctx: ExecutionContext,
    cache: Cache,
    pipeline_id: uuid.UUID,
    slot: Slot,
    index: int,
) -> tuple[str, int]:
    """Return the part of an output slot past `index` and the index to read from next.

    The cache is not modified; the caller keeps its own read position.

    Example:
        ```python
        delta, index = read_output_delta(ctx, cache, pipeline_id, Slot.RUN_OUTPUT, 0)
        ```
    """
    if index < 0:
        raise ValueError(f"index must not be negative, got {index}")
    output = get_processing_output(ctx, cache, pipeline_id, slot)
    return output[index:], len(output)
