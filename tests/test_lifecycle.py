import uuid
from pathlib import Path

import pytest
from conftest import PYTHON_ENV

from code_pipeline import LifeCycle, load_sdk_environments
from code_pipeline.lifecycle import find_main_class, pipeline_id_name

_MAIN_DESCRIPTOR = b"\x00\x04main\x00\x16([Ljava/lang/String;)V"


def test_layout_is_derived_from_pipeline_id(tmp_path: Path) -> None:
    pipeline_id = uuid.uuid4()
    lc = LifeCycle(PYTHON_ENV, pipeline_id, tmp_path)

    assert lc.base_folder == tmp_path / "executable_files" / str(pipeline_id)
    assert lc.source_file_path == Path("src") / f"{pipeline_id}.py"
    assert lc.absolute_source_file_path == lc.base_folder / "src" / f"{pipeline_id}.py"
    assert lc.executable_file_path == lc.base_folder / "bin" / str(pipeline_id)
    assert lc.test_source_file_path == Path("src") / f"{pipeline_id}_test.py"
    assert lc.absolute_test_source_file_path == lc.base_folder / "src" / f"{pipeline_id}_test.py"
    assert not lc.base_folder.exists()


def test_create_and_delete_folders(tmp_path: Path) -> None:
    lc = LifeCycle(PYTHON_ENV, uuid.uuid4(), tmp_path)
    lc.create_folders()

    path = lc.create_source_code_file("print(1)\n")

    assert path.read_text(encoding="utf-8") == "print(1)\n"
    assert lc.compiled_dir.is_dir()
    lc.delete_folders()
    assert not lc.base_folder.exists()
    lc.delete_folders()


def test_default_resolvers(tmp_path: Path) -> None:
    backends = load_sdk_environments()

    assert LifeCycle(backends["java"], uuid.uuid4(), tmp_path).executable_name is find_main_class
    assert LifeCycle(backends["go"], uuid.uuid4(), tmp_path).executable_name is pipeline_id_name


def test_single_class_is_the_main_class(tmp_path: Path) -> None:
    (tmp_path / "HelloWorld.class").write_bytes(b"\xca\xfe\xba\xbe")

    assert find_main_class(uuid.uuid4(), tmp_path) == "HelloWorld"


def test_main_class_is_found_among_several(tmp_path: Path) -> None:
    (tmp_path / "Helper.class").write_bytes(b"\xca\xfe\xba\xbe helper")
    (tmp_path / "App$Inner.class").write_bytes(b"\xca\xfe\xba\xbe" + _MAIN_DESCRIPTOR)
    (tmp_path / "App.class").write_bytes(b"\xca\xfe\xba\xbe" + _MAIN_DESCRIPTOR)

    assert find_main_class(uuid.uuid4(), tmp_path) == "App"


def test_no_classes(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="no compiled classes"):
        find_main_class(uuid.uuid4(), tmp_path)


def test_no_main_method(tmp_path: Path) -> None:
    (tmp_path / "A.class").write_bytes(b"\xca\xfe\xba\xbe")
    (tmp_path / "B.class").write_bytes(b"\xca\xfe\xba\xbe")

    with pytest.raises(ValueError, match="no class with a main method"):
        find_main_class(uuid.uuid4(), tmp_path)
