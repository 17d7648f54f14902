from __future__ import annotations

from typing import Protocol

from ..context import ExecutionContext
from .types import ExecutionOutcome, ExecutionRequest


class ExecutionEngine(Protocol):
    def execute(self, ctx: ExecutionContext, request: ExecutionRequest) -> ExecutionOutcome:
        """Run one request bound to `ctx` and return its normalized outcome.

        Example:
            ```python
            outcome = engine.execute(ctx, ExecutionRequest(argv=("python3", "main.py")))
            ```
        """
        ...
