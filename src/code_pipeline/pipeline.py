from __future__ import annotations

import logging
import shlex
import uuid
from typing import Any, Sequence

from .backends import Backend, backend_for
from .cache import SLOT_TYPES, Cache, Slot
from .config import ApplicationEnvironment, SdkEnvironment
from .context import AbortReason, CancellationWatcher, ExecutionContext
from .execution.engine import ExecutionEngine
from .execution.local_engine import LocalEngine
from .execution.types import ExecutionRequest
from .executors import Executor, ExecutorBuilder
from .lifecycle import LifeCycle
from .status import Status
from .validators import (
    UNIT_TEST_VALIDATOR_NAME,
    ValidationResultSet,
    Validator,
    run_validators,
    validators_for,
)

logger = logging.getLogger(__name__)


def format_exit_error(returncode: int, output: str) -> str:
    """Format the diagnostic stored for a process that exited nonzero.

    Example:
        ```python
        format_exit_error(1, "boom\\n")  # "error: exit status 1, output: boom\\n"
        ```
    """
    return f"error: exit status {returncode}, output: {output}"


class PipelineRecord:
    """Typed, write-once view of one pipeline's cache record.

    Each status value is written at most once and nothing is written after a
    terminal status. Violations raise `RuntimeError`.

    Example:
        ```python
        record = PipelineRecord(cache, ctx, pipeline_id)
        record.set_status(Status.VALIDATING)
        ```
    """

    def __init__(self, cache: Cache, ctx: ExecutionContext, pipeline_id: uuid.UUID) -> None:
        """Bind the writer to one pipeline.

        Example:
            ```python
            record = PipelineRecord(cache, ctx, pipeline_id)
            ```
        """
        self._cache = cache
        self._ctx = ctx
        self._pipeline_id = pipeline_id
        self._statuses: list[Status] = []

    @property
    def statuses(self) -> tuple[Status, ...]:
        """Return every status written so far, in order.

        Example:
            ```python
            record.statuses
            ```
        """
        return tuple(self._statuses)

    @property
    def terminal_status(self) -> Status | None:
        """Return the terminal status once one was written.

        Example:
            ```python
            record.terminal_status
            ```
        """
        if self._statuses and self._statuses[-1].is_terminal:
            return self._statuses[-1]
        return None

    def set_status(self, status: Status) -> None:
        """Record the next status of the pipeline.

        Example:
            ```python
            record.set_status(Status.COMPILING)
            ```
        """
        if status in self._statuses:
            raise RuntimeError(f"{self._pipeline_id}: status {status.value} already recorded")
        self._write(Slot.STATUS, status)
        self._statuses.append(status)

    def set_compile_output(self, text: str) -> None:
        """Record the compile stage diagnostic, empty on success.

        Example:
            ```python
            record.set_compile_output("")
            ```
        """
        self._write(Slot.COMPILE_OUTPUT, text)

    def set_run_output(self, text: str) -> None:
        """Record the run stage's standard output.

        Example:
            ```python
            record.set_run_output("Hello world!\\n")
            ```
        """
        self._write(Slot.RUN_OUTPUT, text)

    def set_run_error(self, text: str) -> None:
        """Record the run stage's failure diagnostic.

        Example:
            ```python
            record.set_run_error(format_exit_error(1, "Traceback ..."))
            ```
        """
        self._write(Slot.RUN_ERROR, text)

    def set_run_output_index(self, index: int) -> None:
        """Record the read position of incremental output pollers.

        Example:
            ```python
            record.set_run_output_index(0)
            ```
        """
        self._write(Slot.RUN_OUTPUT_INDEX, index)

    def _write(self, slot: Slot, value: Any) -> None:
        """Write one slot after checking the terminal guard and the slot type.

        Example:
            ```python
            record._write(Slot.RUN_OUTPUT, "")
            ```
        """
        terminal = self.terminal_status
        if terminal is not None:
            raise RuntimeError(
                f"{self._pipeline_id}: cannot write '{slot.value}' after terminal status {terminal.value}"
            )
        expected = SLOT_TYPES[slot]
        matches = isinstance(value, Status) if expected is Status else type(value) is expected
        if not matches:
            raise TypeError(f"slot '{slot.value}' expects {expected.__name__}, got {type(value).__name__}")
        self._cache.set_value(self._ctx, self._pipeline_id, slot, value)


def _record_abort(run_ctx: ExecutionContext, record: PipelineRecord, pipeline_id: uuid.UUID) -> bool:
    """Record RUN_TIMEOUT or CANCELED when the run context stopped.

    Example:
        ```python
        if _record_abort(run_ctx, record, pipeline_id): return
        ```
    """
    reason = run_ctx.reason()
    if reason is None:
        return False
    if reason is AbortReason.DEADLINE_EXCEEDED:
        logger.warning("%s: pipeline execution timed out", pipeline_id)
        record.set_status(Status.RUN_TIMEOUT)
    else:
        logger.info("%s: pipeline execution canceled", pipeline_id)
        record.set_status(Status.CANCELED)
    return True


def _validate(
    lifecycle: LifeCycle,
    validators: Sequence[Validator],
    pipeline_options: str,
) -> tuple[ValidationResultSet, list[str]]:
    """Run validators on the source and split the pipeline options.

    Example:
        ```python
        results, options = _validate(lc, validators_for(sdk_env), "--name world")
        ```
    """
    results = run_validators(validators, lifecycle.absolute_source_file_path)
    return results, shlex.split(pipeline_options)


def _prepare_executor(
    backend: Backend,
    lifecycle: LifeCycle,
    options: Sequence[str],
    unit_test: bool,
) -> tuple[ExecutorBuilder, Executor]:
    """Build the executor and check the stage it will launch is configured.

    Raises `ValueError` for a missing run or test command, and `OSError`
    when test sources cannot be laid out.

    Example:
        ```python
        builder, executor = _prepare_executor(backend, lc, [], unit_test=False)
        ```
    """
    if unit_test:
        backend.prepare_test_sources(lifecycle)
    builder = backend.executor_builder(lifecycle, options, unit_test=unit_test)
    executor = builder.build()
    if unit_test:
        executor.test_argv()
    else:
        executor.run_argv()
    return builder, executor


def process(
    ctx: ExecutionContext,
    cache: Cache,
    lifecycle: LifeCycle,
    pipeline_id: uuid.UUID,
    app_env: ApplicationEnvironment,
    backend: Backend | SdkEnvironment,
    pipeline_options: str = "",
    *,
    engine: ExecutionEngine | None = None,
    validators: Sequence[Validator] | None = None,
) -> None:
    """Validate, compile and run (or test) one pipeline, publishing progress to `cache`.

    Every result is written to the cache; nothing is returned. The run
    deadline from `app_env` bounds all stages and is checked before each
    stage result is recorded, so an elapsed deadline always ends in
    RUN_TIMEOUT. Cache write failures propagate to the caller.

    Example:
        ```python
        process(ExecutionContext.background(), cache, lc, lc.pipeline_id, app_env, backend)
        status = get_processing_status(ctx, cache, lc.pipeline_id)
        ```
    """
    if isinstance(backend, SdkEnvironment):
        backend = backend_for(backend)
    if engine is None:
        engine = LocalEngine()
    if validators is None:
        validators = validators_for(backend.sdk_env)

    record = PipelineRecord(cache, ctx, pipeline_id)
    record.set_status(Status.VALIDATING)
    run_ctx = ctx.with_timeout(app_env.pipeline_execute_timeout)

    logger.info("%s: validate() ...", pipeline_id)
    validation_error: ValueError | None = None
    results: ValidationResultSet = {}
    options: list[str] = []
    try:
        results, options = _validate(lifecycle, validators, pipeline_options)
    except ValueError as exc:
        validation_error = exc
    if _record_abort(run_ctx, record, pipeline_id):
        return
    if validation_error is not None:
        logger.warning("%s: validation failed: %s", pipeline_id, validation_error)
        record.set_status(Status.VALIDATION_ERROR)
        return
    logger.info("%s: validate() finish", pipeline_id)

    unit_test = results.get(UNIT_TEST_VALIDATOR_NAME, False) and backend.supports_tests
    try:
        builder, executor = _prepare_executor(backend, lifecycle, options, unit_test)
    except (OSError, ValueError) as exc:
        logger.error("%s: cannot prepare executor: %s", pipeline_id, exc)
        record.set_status(Status.VALIDATION_ERROR)
        return

    if executor.has_compile:
        record.set_status(Status.COMPILING)
        logger.info("%s: compile() ...", pipeline_id)
        outcome = engine.execute(
            run_ctx,
            ExecutionRequest(executor.compile_argv(), executor.working_dir, merge_stderr=True),
        )
        if _record_abort(run_ctx, record, pipeline_id):
            return
        if outcome.returncode != 0:
            logger.warning("%s: compile failed with exit status %s", pipeline_id, outcome.returncode)
            record.set_compile_output(format_exit_error(outcome.returncode, outcome.stdout + outcome.stderr))
            record.set_status(Status.COMPILE_ERROR)
            return
        try:
            artifact_name = backend.resolve_artifact_name(lifecycle)
        except (OSError, ValueError) as exc:
            logger.warning("%s: cannot resolve compiled artifact: %s", pipeline_id, exc)
            record.set_compile_output(f"error: {exc}")
            record.set_status(Status.COMPILE_ERROR)
            return
        if artifact_name:
            executor = builder.with_executable_name(artifact_name).build()
        record.set_compile_output("")
        logger.info("%s: compile() finish", pipeline_id)

    if unit_test:
        logger.info("%s: unit tests detected, using test command", pipeline_id)
        argv = executor.test_argv()
    else:
        argv = executor.run_argv()

    record.set_run_output_index(0)
    record.set_status(Status.EXECUTING)
    logger.info("%s: run() ...", pipeline_id)
    with CancellationWatcher(
        run_ctx,
        cache,
        pipeline_id,
        interval=app_env.cancel_check_interval,
        cache_ctx=ctx,
    ):
        outcome = engine.execute(run_ctx, ExecutionRequest(argv, executor.working_dir))

    if _record_abort(run_ctx, record, pipeline_id):
        return
    if outcome.returncode != 0:
        logger.warning("%s: run failed with exit status %s", pipeline_id, outcome.returncode)
        record.set_run_output("")
        record.set_run_error(format_exit_error(outcome.returncode, outcome.stderr))
        record.set_status(Status.RUN_ERROR)
        return
    record.set_run_output(outcome.stdout)
    record.set_status(Status.FINISHED)
    logger.info("%s: run() finish", pipeline_id)
