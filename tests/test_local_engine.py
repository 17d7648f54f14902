import sys
import time
from pathlib import Path

import pytest

from code_pipeline import AbortReason, ExecutionContext, LocalEngine
from code_pipeline.execution import ExecutionRequest


def _python(code: str, *, merge_stderr: bool = False) -> ExecutionRequest:
    return ExecutionRequest(argv=(sys.executable, "-c", code), merge_stderr=merge_stderr)


def test_captures_stdout_and_stderr_separately() -> None:
    engine = LocalEngine()
    outcome = engine.execute(
        ExecutionContext.background(),
        _python("import sys; print('out'); print('err', file=sys.stderr)"),
    )

    assert outcome.ok is True
    assert outcome.stdout == "out\n"
    assert outcome.stderr == "err\n"


def test_merged_stderr_lands_in_stdout() -> None:
    outcome = LocalEngine().execute(
        ExecutionContext.background(),
        _python("import sys; print('err', file=sys.stderr); sys.exit(3)", merge_stderr=True),
    )

    assert outcome.returncode == 3
    assert outcome.ok is False
    assert "err" in outcome.stdout
    assert outcome.stderr == ""


def test_runs_in_requested_directory(tmp_path) -> None:
    outcome = LocalEngine().execute(
        ExecutionContext.background(),
        ExecutionRequest(argv=(sys.executable, "-c", "import os; print(os.getcwd())"), cwd=tmp_path),
    )

    assert Path(outcome.stdout.strip()).resolve() == tmp_path.resolve()


def test_missing_command_reports_exit_127() -> None:
    outcome = LocalEngine().execute(
        ExecutionContext.background(),
        ExecutionRequest(argv=("definitely-not-a-real-command-xyz",)),
    )

    assert outcome.returncode == 127
    assert outcome.aborted is None


def test_done_context_skips_the_process() -> None:
    ctx = ExecutionContext.background().with_timeout(0)

    outcome = LocalEngine().execute(ctx, _python("print('never')"))

    assert outcome.aborted is AbortReason.DEADLINE_EXCEEDED
    assert outcome.stdout == ""


def test_deadline_kills_the_child() -> None:
    ctx = ExecutionContext.background().with_timeout(0.3)
    started = time.monotonic()

    outcome = LocalEngine().execute(ctx, _python("import time; time.sleep(30)"))

    assert outcome.aborted is AbortReason.DEADLINE_EXCEEDED
    assert outcome.ok is False
    assert time.monotonic() - started < 10


def test_poll_seconds_must_be_positive() -> None:
    with pytest.raises(ValueError, match="poll_seconds"):
        LocalEngine(poll_seconds=0)


@pytest.mark.skipif(sys.platform == "win32", reason="sessions are POSIX only")
def test_detached_grandchild_holding_the_pipe_does_not_block_the_abort() -> None:
    ctx = ExecutionContext.background().with_timeout(0.5)
    code = (
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(8)'], start_new_session=True)\n"
        "print('started', flush=True)\n"
        "time.sleep(30)\n"
    )
    started = time.monotonic()

    outcome = LocalEngine(drain_seconds=0.3).execute(ctx, _python(code))

    assert outcome.aborted is AbortReason.DEADLINE_EXCEEDED
    assert "started" in outcome.stdout
    assert time.monotonic() - started < 5


def test_drain_seconds_must_be_positive() -> None:
    with pytest.raises(ValueError, match="drain_seconds"):
        LocalEngine(drain_seconds=0)
