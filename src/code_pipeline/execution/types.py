from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..context import AbortReason


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One child-process invocation for a pipeline stage.

    Example:
        ```python
        req = ExecutionRequest(argv=("python3", "main.py"), cwd=Path("/tmp/run"))
        ```
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    merge_stderr: bool = False


@dataclass(slots=True)
class ExecutionOutcome:
    """Captured result of one child process.

    `aborted` is set when the context stopped the process before it exited
    on its own; the captured text is then partial.

    Example:
        ```python
        out = ExecutionOutcome(stdout="Hello world!\\n", stderr="", returncode=0)
        ```
    """

    stdout: str
    stderr: str
    returncode: int
    aborted: AbortReason | None = None

    @property
    def ok(self) -> bool:
        """Return whether the process ran to completion with exit code zero.

        Example:
            ```python
            if outcome.ok: ...
            ```
        """
        return self.aborted is None and self.returncode == 0
