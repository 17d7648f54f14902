from __future__ import annotations

import logging
import threading
import uuid
from typing import Mapping

from .accessors import get_processing_output, get_processing_status, read_output_delta
from .backends import Backend, backend_for
from .cache import Cache, LocalCache, Slot
from .config import ApplicationEnvironment, SdkEnvironment, load_sdk_environments
from .context import ExecutionContext
from .errors import InfrastructureError, NotFoundError
from .execution.engine import ExecutionEngine
from .execution.local_engine import LocalEngine
from .lifecycle import LifeCycle
from .pipeline import process
from .status import Status

logger = logging.getLogger(__name__)


class PipelineService:
    """Submit snippets for processing and poll their progress.

    Each submission runs in its own worker thread; callers observe it only
    through the cache, exactly as a remote poller would.

    Example:
        ```python
        service = PipelineService(ApplicationEnvironment.from_env())
        pipeline_id = service.submit("print('Hello world!')", sdk="python")
        service.wait(pipeline_id)
        ```
    """

    def __init__(
        self,
        app_env: ApplicationEnvironment,
        *,
        sdk_envs: Mapping[str, SdkEnvironment] | None = None,
        cache: Cache | None = None,
        engine: ExecutionEngine | None = None,
    ) -> None:
        """Initialize the service with its configuration and collaborators.

        Example:
            ```python
            service = PipelineService(app_env, sdk_envs=load_sdk_environments(), cache=LocalCache())
            ```
        """
        self._app_env = app_env
        self._sdk_envs = dict(sdk_envs) if sdk_envs is not None else load_sdk_environments()
        self._cache = cache if cache is not None else LocalCache()
        self._engine = engine if engine is not None else LocalEngine()
        self._ctx = ExecutionContext.background()
        self._lock = threading.Lock()
        self._workers: dict[uuid.UUID, threading.Thread] = {}
        self._read_positions: dict[uuid.UUID, int] = {}

    @property
    def cache(self) -> Cache:
        """Return the cache pipelines publish to.

        Example:
            ```python
            service.cache
            ```
        """
        return self._cache

    def submit(self, code: str, sdk: str, pipeline_options: str = "") -> uuid.UUID:
        """Prepare the source of a new pipeline and start processing it.

        Raises `ValueError` for an unknown backend and `InfrastructureError`
        when the pipeline folders or source file cannot be created.

        Example:
            ```python
            pipeline_id = service.submit(code, sdk="java", pipeline_options="--name world")
            ```
        """
        sdk_env = self._sdk_envs.get(sdk)
        if sdk_env is None:
            raise ValueError(f"Unknown backend '{sdk}'. Known: {sorted(self._sdk_envs)}")
        backend = backend_for(sdk_env)
        pipeline_id = uuid.uuid4()
        lifecycle = LifeCycle(sdk_env, pipeline_id, self._app_env.working_dir)
        try:
            lifecycle.create_folders()
            lifecycle.create_source_code_file(code)
        except OSError as exc:
            raise InfrastructureError(f"{pipeline_id}: cannot prepare pipeline files: {exc}") from exc

        worker = threading.Thread(
            target=self._run,
            args=(lifecycle, backend, pipeline_options),
            name=f"pipeline-{pipeline_id}",
            daemon=True,
        )
        with self._lock:
            self._workers[pipeline_id] = worker
        worker.start()
        logger.info("%s: submitted for backend %s", pipeline_id, sdk)
        return pipeline_id

    def cancel(self, pipeline_id: uuid.UUID) -> None:
        """Ask a running pipeline to stop.

        Example:
            ```python
            service.cancel(pipeline_id)
            ```
        """
        self._cache.set_value(self._ctx, pipeline_id, Slot.CANCELED, True)

    def status(self, pipeline_id: uuid.UUID) -> Status:
        """Return the current status of a pipeline.

        Example:
            ```python
            service.status(pipeline_id)
            ```
        """
        return get_processing_status(self._ctx, self._cache, pipeline_id)

    def output(self, pipeline_id: uuid.UUID, slot: Slot) -> str:
        """Return a text slot of a pipeline.

        Example:
            ```python
            service.output(pipeline_id, Slot.RUN_ERROR)
            ```
        """
        return get_processing_output(self._ctx, self._cache, pipeline_id, slot)

    def poll_run_output(self, pipeline_id: uuid.UUID) -> str:
        """Return run output not yet returned by earlier polls of this service.

        The read position is kept by the service; the pipeline record is left
        untouched. Returns an empty string while the run output is not available yet.

        Example:
            ```python
            chunk = service.poll_run_output(pipeline_id)
            ```
        """
        with self._lock:
            position = self._read_positions.get(pipeline_id, 0)
            try:
                delta, position = read_output_delta(
                    self._ctx, self._cache, pipeline_id, Slot.RUN_OUTPUT, position
                )
            except NotFoundError:
                return ""
            self._read_positions[pipeline_id] = position
        return delta

    def wait(self, pipeline_id: uuid.UUID, timeout: float | None = None) -> Status:
        """Block until a submitted pipeline's worker finishes, then return its status.

        Example:
            ```python
            status = service.wait(pipeline_id, timeout=30)
            ```
        """
        with self._lock:
            worker = self._workers.get(pipeline_id)
        if worker is None:
            raise NotFoundError(f"pipeline {pipeline_id} was not submitted to this service")
        worker.join(timeout)
        return self.status(pipeline_id)

    def _run(self, lifecycle: LifeCycle, backend: Backend, pipeline_options: str) -> None:
        """Process one pipeline and remove its files afterwards.

        Example:
            ```python
            service._run(lifecycle, backend, "")
            ```
        """
        pipeline_id = lifecycle.pipeline_id
        try:
            process(
                self._ctx,
                self._cache,
                lifecycle,
                pipeline_id,
                self._app_env,
                backend,
                pipeline_options,
                engine=self._engine,
            )
        except Exception:
            logger.exception("%s: processing aborted", pipeline_id)
        finally:
            try:
                lifecycle.delete_folders()
            except OSError as exc:
                logger.error("%s: cannot remove pipeline files: %s", pipeline_id, exc)
