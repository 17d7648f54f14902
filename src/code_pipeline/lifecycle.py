from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import Callable

from .config import SdkEnvironment

logger = logging.getLogger(__name__)

BASE_FOLDER = "executable_files"
SOURCE_FOLDER = "src"
COMPILED_FOLDER = "bin"

_JVM_MAIN_NAME = b"main"
_JVM_MAIN_DESCRIPTOR = b"([Ljava/lang/String;)V"

ExecutableNameResolver = Callable[[uuid.UUID, Path], str]


def pipeline_id_name(pipeline_id: uuid.UUID, directory: Path) -> str:
    """Name compiled artifacts after the pipeline id.

    Example:
        ```python
        name = pipeline_id_name(pipeline_id, Path("bin"))
        ```
    """
    return str(pipeline_id)


def find_main_class(pipeline_id: uuid.UUID, directory: Path) -> str:
    """Return the name of the compiled JVM class that declares `main(String[])`.

    Example:
        ```python
        name = find_main_class(pipeline_id, lifecycle.compiled_dir)
        ```
    """
    classes = sorted(directory.glob("*.class"))
    if not classes:
        raise FileNotFoundError(f"no compiled classes found in {directory}")
    if len(classes) == 1:
        return classes[0].stem
    for path in classes:
        if "$" in path.stem:
            continue
        content = path.read_bytes()
        if _JVM_MAIN_NAME in content and _JVM_MAIN_DESCRIPTOR in content:
            return path.stem
    raise ValueError(f"no class with a main method found in {directory}")


class LifeCycle:
    """Own the source and artifact files of one pipeline.

    Files live under `<working_dir>/executable_files/<pipeline id>/` with
    sources in `src/` and compiled output in `bin/`.

    Example:
        ```python
        lc = LifeCycle(sdk_env, pipeline_id, Path("/tmp/work"))
        lc.create_folders()
        lc.create_source_code_file("print('Hello world!')")
        ```
    """

    def __init__(
        self,
        sdk_env: SdkEnvironment,
        pipeline_id: uuid.UUID,
        working_dir: str | Path,
        *,
        executable_name: ExecutableNameResolver | None = None,
    ) -> None:
        """Describe the folders of one pipeline without touching the disk.

        Example:
            ```python
            lc = LifeCycle(sdk_env, uuid.uuid4(), "/tmp/work")
            ```
        """
        self.sdk_env = sdk_env
        self.pipeline_id = pipeline_id
        self.base_folder = Path(working_dir).expanduser() / BASE_FOLDER / str(pipeline_id)
        if executable_name is None:
            executable_name = find_main_class if sdk_env.kind == "jvm" else pipeline_id_name
        self.executable_name: ExecutableNameResolver = executable_name

    @property
    def source_dir(self) -> Path:
        """Return the folder holding the submitted source.

        Example:
            ```python
            lc.source_dir
            ```
        """
        return self.base_folder / SOURCE_FOLDER

    @property
    def compiled_dir(self) -> Path:
        """Return the folder compiled artifacts are written to.

        Example:
            ```python
            lc.compiled_dir
            ```
        """
        return self.base_folder / COMPILED_FOLDER

    @property
    def source_file_name(self) -> str:
        """Return the source file name, `<pipeline id><extension>`.

        Example:
            ```python
            lc.source_file_name
            ```
        """
        return f"{self.pipeline_id}{self.sdk_env.source_extension}"

    @property
    def source_file_path(self) -> Path:
        """Return the source path relative to the pipeline folder.

        Example:
            ```python
            lc.source_file_path
            ```
        """
        return Path(SOURCE_FOLDER) / self.source_file_name

    @property
    def absolute_source_file_path(self) -> Path:
        """Return the absolute source path.

        Example:
            ```python
            lc.absolute_source_file_path
            ```
        """
        return (self.source_dir / self.source_file_name).absolute()

    @property
    def test_source_file_path(self) -> Path:
        """Return the relative path of the source copy named `<pipeline id>_test<extension>`.

        Example:
            ```python
            lc.test_source_file_path
            ```
        """
        return Path(SOURCE_FOLDER) / f"{self.pipeline_id}_test{self.sdk_env.source_extension}"

    @property
    def absolute_test_source_file_path(self) -> Path:
        """Return the absolute path of the `_test` source copy.

        Example:
            ```python
            lc.absolute_test_source_file_path
            ```
        """
        return (self.base_folder / self.test_source_file_path).absolute()

    @property
    def executable_file_path(self) -> Path:
        """Return the absolute path native backends compile their binary to.

        Example:
            ```python
            lc.executable_file_path
            ```
        """
        return (self.compiled_dir / str(self.pipeline_id)).absolute()

    def create_folders(self) -> None:
        """Create the pipeline's source and compiled folders.

        Example:
            ```python
            lc.create_folders()
            ```
        """
        self.source_dir.mkdir(parents=True, exist_ok=True)
        self.compiled_dir.mkdir(parents=True, exist_ok=True)

    def create_source_code_file(self, code: str) -> Path:
        """Write the submitted source and return its absolute path.

        Example:
            ```python
            path = lc.create_source_code_file("print(1)")
            ```
        """
        path = self.absolute_source_file_path
        path.write_text(code, encoding="utf-8")
        return path

    def delete_folders(self) -> None:
        """Remove every file that belongs to the pipeline.

        Example:
            ```python
            lc.delete_folders()
            ```
        """
        if self.base_folder.exists():
            shutil.rmtree(self.base_folder)
            logger.debug("%s: removed %s", self.pipeline_id, self.base_folder)
