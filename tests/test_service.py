import time
import uuid
from pathlib import Path

import pytest
from conftest import PYTHON_ENV, RecordingCache

from code_pipeline import (
    ApplicationEnvironment,
    InfrastructureError,
    LocalCache,
    NotFoundError,
    PipelineService,
    Slot,
    Status,
)


@pytest.fixture
def service(app_env) -> PipelineService:
    return PipelineService(app_env, sdk_envs={"python": PYTHON_ENV}, cache=LocalCache())


def test_submit_runs_to_completion(service: PipelineService) -> None:
    pipeline_id = service.submit('print("Hello world!")\n', sdk="python")

    assert service.wait(pipeline_id, timeout=30) is Status.FINISHED
    assert service.output(pipeline_id, Slot.RUN_OUTPUT) == "Hello world!\n"
    assert service.wait(pipeline_id) is Status.FINISHED


def test_pipeline_files_are_removed_afterwards(service: PipelineService, app_env) -> None:
    pipeline_id = service.submit("print(1)\n", sdk="python")
    service.wait(pipeline_id, timeout=30)

    assert not (app_env.working_dir / "executable_files" / str(pipeline_id)).exists()


def test_unknown_backend_is_rejected(service: PipelineService) -> None:
    with pytest.raises(ValueError, match="Unknown backend 'cobol'"):
        service.submit("DISPLAY 'HI'.", sdk="cobol")


def test_unwritable_working_dir_is_an_infrastructure_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")

    service = PipelineService(ApplicationEnvironment(working_dir=blocker), sdk_envs={"python": PYTHON_ENV})

    with pytest.raises(InfrastructureError, match="cannot prepare pipeline files"):
        service.submit("print(1)\n", sdk="python")


def test_cancel_stops_a_running_pipeline(service: PipelineService) -> None:
    pipeline_id = service.submit("import time\ntime.sleep(30)\n", sdk="python")
    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        try:
            if service.status(pipeline_id) is Status.EXECUTING:
                break
        except NotFoundError:
            pass
        time.sleep(0.02)

    service.cancel(pipeline_id)

    assert service.wait(pipeline_id, timeout=30) is Status.CANCELED


def test_poll_run_output_returns_each_chunk_once(service: PipelineService, ctx) -> None:
    pipeline_id = service.submit("print('abc')\n", sdk="python")
    service.wait(pipeline_id, timeout=30)

    assert service.poll_run_output(pipeline_id) == "abc\n"
    assert service.poll_run_output(pipeline_id) == ""
    assert service.cache.get_value(ctx, pipeline_id, Slot.RUN_OUTPUT_INDEX) == 0


def test_poll_run_output_writes_nothing_after_the_terminal_status(app_env) -> None:
    cache = RecordingCache()
    service = PipelineService(app_env, sdk_envs={"python": PYTHON_ENV}, cache=cache)
    pipeline_id = service.submit("print('abc')\n", sdk="python")
    service.wait(pipeline_id, timeout=30)
    writes_before = list(cache.writes)

    assert service.poll_run_output(pipeline_id) == "abc\n"
    assert cache.writes == writes_before
    assert cache.statuses(pipeline_id)[-1] is Status.FINISHED


def test_poll_run_output_before_output_exists(service: PipelineService) -> None:
    assert service.poll_run_output(uuid.uuid4()) == ""


def test_wait_on_unknown_pipeline(service: PipelineService) -> None:
    with pytest.raises(NotFoundError, match="was not submitted"):
        service.wait(uuid.uuid4())
