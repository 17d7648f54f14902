import shutil
import uuid
from pathlib import Path

import pytest

from code_pipeline import (
    ApplicationEnvironment,
    ExecutionContext,
    LifeCycle,
    LocalCache,
    Slot,
    Status,
    get_processing_output,
    get_processing_status,
    load_sdk_environments,
    process,
)


def _jdk_ready() -> bool:
    return shutil.which("javac") is not None and shutil.which("java") is not None


pytestmark = pytest.mark.skipif(not _jdk_ready(), reason="JDK not installed")

HELLO_WORLD = """
class Helper {
    static String greeting() {
        return "Hello world!";
    }
}

class HelloWorld {
    public static void main(String[] args) {
        System.out.println(Helper.greeting());
    }
}
"""


def _process(tmp_path: Path, code: str) -> tuple[ExecutionContext, LocalCache, uuid.UUID]:
    sdk_env = load_sdk_environments()["java"]
    pipeline_id = uuid.uuid4()
    lc = LifeCycle(sdk_env, pipeline_id, tmp_path)
    lc.create_folders()
    lc.create_source_code_file(code)
    ctx = ExecutionContext.background()
    cache = LocalCache()
    app_env = ApplicationEnvironment(working_dir=tmp_path, pipeline_execute_timeout=120, cancel_check_interval=0.1)
    process(ctx, cache, lc, pipeline_id, app_env, sdk_env)
    return ctx, cache, pipeline_id


def test_java_hello_world(tmp_path: Path) -> None:
    ctx, cache, pipeline_id = _process(tmp_path, HELLO_WORLD)

    assert get_processing_status(ctx, cache, pipeline_id) is Status.FINISHED
    assert get_processing_output(ctx, cache, pipeline_id, Slot.RUN_OUTPUT) == "Hello world!\n"


def test_java_compile_error(tmp_path: Path) -> None:
    ctx, cache, pipeline_id = _process(tmp_path, "class Broken { void x( }\n")

    assert get_processing_status(ctx, cache, pipeline_id) is Status.COMPILE_ERROR
    compile_output = get_processing_output(ctx, cache, pipeline_id, Slot.COMPILE_OUTPUT)
    assert compile_output.startswith("error: exit status 1, output: ")
    assert "error:" in compile_output[len("error: exit status 1, output: ") :]
