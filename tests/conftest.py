from __future__ import annotations

import sys
import threading
import uuid
from pathlib import Path
from typing import Any

import pytest

from code_pipeline import ApplicationEnvironment, ExecutionContext, LifeCycle, LocalCache, SdkEnvironment, Slot

PYTHON_ENV = SdkEnvironment(
    sdk="python",
    kind="script",
    source_extension=".py",
    compile_cmd=sys.executable,
    compile_args=("-m", "py_compile"),
    run_cmd=sys.executable,
    test_cmd=sys.executable,
    test_args=("-c", "print('TEST MODE')"),
    unit_test_markers=("import unittest",),
)


class RecordingCache(LocalCache):
    """LocalCache that remembers every write in order."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[uuid.UUID, Slot, Any]] = []

    def set_value(self, ctx: ExecutionContext, pipeline_id: uuid.UUID, slot: Slot, value: Any) -> None:
        self.writes.append((pipeline_id, slot, value))
        super().set_value(ctx, pipeline_id, slot, value)

    def statuses(self, pipeline_id: uuid.UUID) -> list[Any]:
        return [value for pid, slot, value in self.writes if pid == pipeline_id and slot is Slot.STATUS]


def watcher_threads() -> list[threading.Thread]:
    return [t for t in threading.enumerate() if t.name.startswith("cancel-watcher-") and t.is_alive()]


@pytest.fixture
def ctx() -> ExecutionContext:
    return ExecutionContext.background()


@pytest.fixture
def cache() -> RecordingCache:
    return RecordingCache()


@pytest.fixture
def app_env(tmp_path: Path) -> ApplicationEnvironment:
    return ApplicationEnvironment(
        working_dir=tmp_path,
        pipeline_execute_timeout=30,
        cancel_check_interval=0.05,
    )


@pytest.fixture
def python_lifecycle(tmp_path: Path) -> LifeCycle:
    lc = LifeCycle(PYTHON_ENV, uuid.uuid4(), tmp_path)
    lc.create_folders()
    return lc
