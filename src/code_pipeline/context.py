from __future__ import annotations

import logging
import threading
import time
import uuid
from enum import Enum
from types import TracebackType

from .cache import Cache, Slot
from .errors import NotFoundError

logger = logging.getLogger(__name__)

_WAIT_SLICE_SECONDS = 0.01


class AbortReason(str, Enum):
    """Why an execution context stopped.

    Example:
        ```python
        if ctx.reason() is AbortReason.DEADLINE_EXCEEDED: ...
        ```
    """

    DEADLINE_EXCEEDED = "deadline_exceeded"
    CANCELED = "canceled"


class ExecutionContext:
    """Abort signal shared by the stages of one pipeline.

    A context is done once its deadline passes, once `cancel()` is called or
    once its parent is done. The first reason observed is recorded and never
    changes afterwards, so callers can tell a timeout from a cancellation
    without comparing clocks.

    Example:
        ```python
        ctx = ExecutionContext.background().with_timeout(5)
        ```
    """

    def __init__(
        self,
        *,
        deadline: float | None = None,
        parent: ExecutionContext | None = None,
    ) -> None:
        """Create a context with an optional monotonic deadline and parent.

        Example:
            ```python
            ctx = ExecutionContext(deadline=time.monotonic() + 1)
            ```
        """
        if parent is not None and parent._deadline is not None:
            deadline = parent._deadline if deadline is None else min(deadline, parent._deadline)
        self._deadline = deadline
        self._parent = parent
        self._lock = threading.Lock()
        self._reason: AbortReason | None = None
        self._done = threading.Event()

    @classmethod
    def background(cls) -> ExecutionContext:
        """Return a root context that is never done on its own.

        Example:
            ```python
            ctx = ExecutionContext.background()
            ```
        """
        return cls()

    def with_timeout(self, seconds: float) -> ExecutionContext:
        """Derive a child context that expires `seconds` from now.

        Example:
            ```python
            run_ctx = ctx.with_timeout(app_env.pipeline_execute_timeout)
            ```
        """
        return ExecutionContext(deadline=time.monotonic() + max(0.0, seconds), parent=self)

    def with_cancel(self) -> ExecutionContext:
        """Derive a child context that can be canceled independently.

        Example:
            ```python
            child = ctx.with_cancel()
            child.cancel()
            ```
        """
        return ExecutionContext(parent=self)

    def cancel(self) -> None:
        """Cancel the context unless it already stopped for another reason.

        Example:
            ```python
            ctx.cancel()
            ```
        """
        if self.reason() is None:
            self._record(AbortReason.CANCELED)

    def reason(self) -> AbortReason | None:
        """Return why the context stopped, or None while it is still live.

        Example:
            ```python
            reason = ctx.reason()
            ```
        """
        if self._reason is not None:
            return self._reason
        if self._parent is not None:
            inherited = self._parent.reason()
            if inherited is not None:
                return self._record(inherited)
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return self._record(AbortReason.DEADLINE_EXCEEDED)
        return None

    def done(self) -> bool:
        """Return whether the context stopped.

        Example:
            ```python
            if ctx.done(): return
            ```
        """
        return self.reason() is not None

    def remaining(self) -> float | None:
        """Return seconds until the deadline, or None without a deadline.

        Example:
            ```python
            left = ctx.remaining()
            ```
        """
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or `timeout` elapses.

        Example:
            ```python
            stopped = ctx.wait(0.5)
            ```
        """
        limit = None if timeout is None else time.monotonic() + timeout
        while not self.done():
            step = _WAIT_SLICE_SECONDS
            if limit is not None:
                left = limit - time.monotonic()
                if left <= 0:
                    return False
                step = min(step, left)
            self._done.wait(step)
        return True

    def _record(self, reason: AbortReason) -> AbortReason:
        """Store `reason` if none was stored yet and return the stored one.

        Example:
            ```python
            ctx._record(AbortReason.CANCELED)
            ```
        """
        with self._lock:
            if self._reason is None:
                self._reason = reason
                self._done.set()
            return self._reason


class CancellationWatcher:
    """Poll the cache's Canceled flag while one stage runs.

    The watcher never writes the cache; it only cancels `ctx`. Leaving the
    `with` block stops polling and joins the thread.

    Example:
        ```python
        with CancellationWatcher(run_ctx, cache, pipeline_id, interval=0.5, cache_ctx=ctx):
            outcome = engine.execute(run_ctx, request)
        ```
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        cache: Cache,
        pipeline_id: uuid.UUID,
        *,
        interval: float,
        cache_ctx: ExecutionContext,
    ) -> None:
        """Prepare a watcher for one pipeline stage.

        Example:
            ```python
            watcher = CancellationWatcher(ctx, cache, pipeline_id, interval=0.5, cache_ctx=ctx)
            ```
        """
        self._ctx = ctx
        self._cache = cache
        self._pipeline_id = pipeline_id
        self._interval = interval
        self._cache_ctx = cache_ctx
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._poll,
            name=f"cancel-watcher-{pipeline_id}",
            daemon=True,
        )

    def __enter__(self) -> CancellationWatcher:
        """Start polling in a background thread.

        Example:
            ```python
            with watcher: ...
            ```
        """
        self._thread.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Stop polling and wait for the thread to finish.

        Example:
            ```python
            watcher.__exit__(None, None, None)
            ```
        """
        self._stop.set()
        self._thread.join()

    def _poll(self) -> None:
        """Cancel the context the first time the Canceled flag reads true.

        Example:
            ```python
            watcher._poll()
            ```
        """
        while not self._stop.wait(self._interval):
            if self._ctx.done():
                return
            try:
                canceled = self._cache.get_value(self._cache_ctx, self._pipeline_id, Slot.CANCELED)
            except NotFoundError:
                continue
            except Exception:
                logger.exception("%s: error while checking cancel flag", self._pipeline_id)
                continue
            if canceled is True:
                logger.info("%s: cancel requested", self._pipeline_id)
                self._ctx.cancel()
                return
