from __future__ import annotations

from enum import Enum


class Status(str, Enum):
    """Processing status published for one pipeline.

    Example:
        ```python
        Status.FINISHED.is_terminal
        ```
    """

    UNSPECIFIED = "unspecified"
    VALIDATING = "validating"
    VALIDATION_ERROR = "validation_error"
    COMPILING = "compiling"
    COMPILE_ERROR = "compile_error"
    EXECUTING = "executing"
    RUN_TIMEOUT = "run_timeout"
    CANCELED = "canceled"
    RUN_ERROR = "run_error"
    FINISHED = "finished"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further stage runs after this status.

        Example:
            ```python
            assert Status.COMPILE_ERROR.is_terminal
            ```
        """
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        Status.VALIDATION_ERROR,
        Status.COMPILE_ERROR,
        Status.RUN_TIMEOUT,
        Status.CANCELED,
        Status.RUN_ERROR,
        Status.FINISHED,
    }
)
