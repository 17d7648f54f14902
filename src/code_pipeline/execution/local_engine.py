from __future__ import annotations

import logging
import os
import signal
import subprocess

from ..context import ExecutionContext
from .types import ExecutionOutcome, ExecutionRequest

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05
_COMMAND_NOT_FOUND = 127
_COMMAND_NOT_EXECUTABLE = 126
_DRAIN_SECONDS = 1.0


def _as_text(value: str | bytes | None) -> str:
    """Normalize partial output captured by `TimeoutExpired` to text.

    Example:
        ```python
        _as_text(b"partial")  # "partial"
        ```
    """
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _kill_process_tree(proc: subprocess.Popen[str]) -> None:
    """Force-kill a child and everything in its session.

    Example:
        ```python
        _kill_process_tree(proc)
        ```
    """
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return
    proc.kill()


class LocalEngine:
    """Run stage commands as local child processes bound to a context.

    Example:
        ```python
        engine = LocalEngine()
        outcome = engine.execute(ctx, ExecutionRequest(argv=("javac", "Main.java")))
        ```
    """

    def __init__(
        self,
        *,
        poll_seconds: float = _POLL_SECONDS,
        drain_seconds: float = _DRAIN_SECONDS,
    ) -> None:
        """Initialize the engine with its context wait slice and post-kill drain grace.

        Example:
            ```python
            engine = LocalEngine(poll_seconds=0.1, drain_seconds=0.5)
            ```
        """
        if poll_seconds <= 0:
            raise ValueError("poll_seconds must be positive")
        if drain_seconds <= 0:
            raise ValueError("drain_seconds must be positive")
        self._poll_seconds = poll_seconds
        self._drain_seconds = drain_seconds

    def execute(self, ctx: ExecutionContext, request: ExecutionRequest) -> ExecutionOutcome:
        """Run one request until it exits or the context stops it.

        When the context is done the whole process group is killed and
        reaped before returning, so no child outlives the stage.

        Example:
            ```python
            outcome = engine.execute(ctx, ExecutionRequest(argv=("python3", "main.py")))
            ```
        """
        reason = ctx.reason()
        if reason is not None:
            return ExecutionOutcome("", "", -1, aborted=reason)

        try:
            proc = subprocess.Popen(
                list(request.argv),
                cwd=request.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if request.merge_stderr else subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=os.name == "posix",
            )
        except FileNotFoundError as exc:
            return ExecutionOutcome("", str(exc), _COMMAND_NOT_FOUND)
        except PermissionError as exc:
            return ExecutionOutcome("", str(exc), _COMMAND_NOT_EXECUTABLE)

        logger.debug("started pid %s: %s", proc.pid, " ".join(request.argv))
        try:
            while True:
                try:
                    stdout, stderr = proc.communicate(timeout=self._wait_slice(ctx))
                    break
                except subprocess.TimeoutExpired:
                    reason = ctx.reason()
                    if reason is None:
                        continue
                    logger.debug("killing pid %s: %s", proc.pid, reason.value)
                    _kill_process_tree(proc)
                    proc.wait()
                    stdout, stderr = self._drain(proc)
                    return ExecutionOutcome(stdout, stderr, proc.returncode, aborted=reason)
        except BaseException:
            _kill_process_tree(proc)
            proc.wait()
            raise

        return ExecutionOutcome(stdout or "", stderr or "", proc.returncode)

    def _drain(self, proc: subprocess.Popen[str]) -> tuple[str, str]:
        """Collect what a killed child left in its pipes, waiting at most the drain grace.

        A descendant that left the process group can keep the pipes open; the
        pipes are then closed and whatever was read so far is returned.

        Example:
            ```python
            stdout, stderr = engine._drain(proc)
            ```
        """
        try:
            stdout, stderr = proc.communicate(timeout=self._drain_seconds)
        except subprocess.TimeoutExpired as exc:
            logger.warning("pid %s: output pipes still open after kill, closing them", proc.pid)
            for pipe in (proc.stdout, proc.stderr):
                if pipe is not None:
                    pipe.close()
            return _as_text(exc.stdout), _as_text(exc.stderr)
        return stdout or "", stderr or ""

    def _wait_slice(self, ctx: ExecutionContext) -> float:
        """Return how long to wait on the child before checking the context.

        Example:
            ```python
            seconds = engine._wait_slice(ctx)
            ```
        """
        remaining = ctx.remaining()
        if remaining is None:
            return self._poll_seconds
        return max(0.001, min(self._poll_seconds, remaining))
