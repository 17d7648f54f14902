from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from typing import Sequence

from .config import SdkEnvironment
from .executors import CommandConfig, ExecutorBuilder
from .lifecycle import LifeCycle


class Backend(ABC):
    """Language toolchain that knows how to compile, run and test a snippet.

    Subclasses decide how source and artifact paths enter each command.
    The orchestrator only talks to this interface.

    Example:
        ```python
        backend = backend_for(load_sdk_environments()["python"])
        builder = backend.executor_builder(lc, [])
        ```
    """

    compiles_tests = True

    def __init__(self, sdk_env: SdkEnvironment) -> None:
        """Wrap the command templates of one backend.

        Example:
            ```python
            backend = ScriptBackend(sdk_env)
            ```
        """
        self.sdk_env = sdk_env

    @property
    def name(self) -> str:
        """Return the backend's configured name.

        Example:
            ```python
            backend.name
            ```
        """
        return self.sdk_env.sdk

    def compile_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the compile invocation, or None when nothing is compiled.

        Example:
            ```python
            cfg = backend.compile_command(lc)
            ```
        """
        return None

    @abstractmethod
    def run_command(self, lc: LifeCycle) -> CommandConfig:
        """Return the run invocation without the artifact name.

        Example:
            ```python
            cfg = backend.run_command(lc)
            ```
        """
        raise NotImplementedError

    def test_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the unit-test invocation, or None when tests are unsupported.

        Example:
            ```python
            cfg = backend.test_command(lc)
            ```
        """
        return None

    def resolve_artifact_name(self, lc: LifeCycle) -> str | None:
        """Return the compiled artifact name known only after compilation.

        Example:
            ```python
            name = backend.resolve_artifact_name(lc)
            ```
        """
        return None

    @property
    def supports_tests(self) -> bool:
        """Return whether a unit-test command is configured.

        Example:
            ```python
            if backend.supports_tests: ...
            ```
        """
        return bool(self.sdk_env.test_cmd)

    def prepare_test_sources(self, lc: LifeCycle) -> None:
        """Lay out extra files the test command expects.

        Example:
            ```python
            backend.prepare_test_sources(lc)
            ```
        """

    def executor_builder(
        self,
        lc: LifeCycle,
        pipeline_options: Sequence[str],
        *,
        unit_test: bool = False,
    ) -> ExecutorBuilder:
        """Assemble a builder with every stage this backend supports.

        With `unit_test` set, backends whose test command builds the sources
        itself leave the compile stage out.

        Example:
            ```python
            executor = backend.executor_builder(lc, ["--name", "world"]).build()
            ```
        """
        builder = ExecutorBuilder().with_working_dir(lc.base_folder)
        compile_cfg = None if unit_test and not self.compiles_tests else self.compile_command(lc)
        if compile_cfg is not None and compile_cfg.command:
            builder = builder.with_compiler().with_command(compile_cfg.command).with_args(compile_cfg.args)
        test_cfg = self.test_command(lc)
        if test_cfg is not None and test_cfg.command:
            builder = builder.with_test_runner().with_command(test_cfg.command).with_args(test_cfg.args)
        run_cfg = self.run_command(lc)
        return (
            builder.with_runner()
            .with_command(run_cfg.command)
            .with_args(run_cfg.args)
            .with_pipeline_options(pipeline_options)
        )


class ScriptBackend(Backend):
    """Interpreted language; the optional compile step is a syntax check.

    Example:
        ```python
        backend = ScriptBackend(sdk_env)
        ```
    """

    def compile_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the syntax-check invocation when one is configured.

        Example:
            ```python
            cfg = backend.compile_command(lc)
            ```
        """
        if not self.sdk_env.compile_cmd:
            return None
        return CommandConfig(
            self.sdk_env.compile_cmd,
            (*self.sdk_env.compile_args, str(lc.source_file_path)),
        )

    def run_command(self, lc: LifeCycle) -> CommandConfig:
        """Return the interpreter invocation on the source file.

        Example:
            ```python
            cfg = backend.run_command(lc)
            ```
        """
        return CommandConfig(
            self.sdk_env.run_cmd,
            (*self.sdk_env.run_args, str(lc.source_file_path)),
        )

    def test_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the test-runner invocation on the source file.

        Example:
            ```python
            cfg = backend.test_command(lc)
            ```
        """
        if not self.sdk_env.test_cmd:
            return None
        return CommandConfig(
            self.sdk_env.test_cmd,
            (*self.sdk_env.test_args, str(lc.source_file_path)),
        )


class NativeBackend(Backend):
    """Compiled language producing a standalone binary named after the pipeline.

    Unit tests run through the test command on a `<pipeline id>_test` copy of
    the source; that command builds the tests itself, so there is no separate
    compile stage in test mode.

    Example:
        ```python
        backend = NativeBackend(load_sdk_environments()["go"])
        ```
    """

    compiles_tests = False

    def compile_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the build invocation writing `bin/<pipeline id>`.

        Example:
            ```python
            cfg = backend.compile_command(lc)
            ```
        """
        return CommandConfig(
            self.sdk_env.compile_cmd,
            (
                *self.sdk_env.compile_args,
                "-o",
                str(lc.executable_file_path),
                str(lc.source_file_path),
            ),
        )

    def run_command(self, lc: LifeCycle) -> CommandConfig:
        """Return the binary invocation, through `run_cmd` when one is set.

        Example:
            ```python
            cfg = backend.run_command(lc)
            ```
        """
        if self.sdk_env.run_cmd:
            return CommandConfig(
                self.sdk_env.run_cmd,
                (*self.sdk_env.run_args, str(lc.executable_file_path)),
            )
        return CommandConfig(str(lc.executable_file_path), self.sdk_env.run_args)

    def test_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the test invocation on the `_test` copy of the source.

        Example:
            ```python
            cfg = backend.test_command(lc)
            ```
        """
        if not self.sdk_env.test_cmd:
            return None
        return CommandConfig(
            self.sdk_env.test_cmd,
            (*self.sdk_env.test_args, str(lc.test_source_file_path)),
        )

    def prepare_test_sources(self, lc: LifeCycle) -> None:
        """Copy the source to the `_test` file name test tools pick up.

        Example:
            ```python
            backend.prepare_test_sources(lc)
            ```
        """
        shutil.copyfile(lc.absolute_source_file_path, lc.absolute_test_source_file_path)


class JvmBackend(Backend):
    """JVM language whose entry class is only known after compilation.

    Example:
        ```python
        backend = JvmBackend(load_sdk_environments()["java"])
        ```
    """

    def compile_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the compiler invocation on the source file.

        Example:
            ```python
            cfg = backend.compile_command(lc)
            ```
        """
        return CommandConfig(
            self.sdk_env.compile_cmd,
            (*self.sdk_env.compile_args, str(lc.source_file_path)),
        )

    def run_command(self, lc: LifeCycle) -> CommandConfig:
        """Return the launcher invocation; the class name is bound later.

        Example:
            ```python
            cfg = backend.run_command(lc)
            ```
        """
        return CommandConfig(self.sdk_env.run_cmd, self.sdk_env.run_args)

    def test_command(self, lc: LifeCycle) -> CommandConfig | None:
        """Return the test launcher invocation; the class name is bound later.

        Example:
            ```python
            cfg = backend.test_command(lc)
            ```
        """
        if not self.sdk_env.test_cmd:
            return None
        return CommandConfig(self.sdk_env.test_cmd, self.sdk_env.test_args)

    def resolve_artifact_name(self, lc: LifeCycle) -> str | None:
        """Ask the lifecycle's resolver for the compiled entry class.

        Example:
            ```python
            name = backend.resolve_artifact_name(lc)
            ```
        """
        return lc.executable_name(lc.pipeline_id, lc.compiled_dir)


_BACKENDS_BY_KIND: dict[str, type[Backend]] = {
    "script": ScriptBackend,
    "native": NativeBackend,
    "jvm": JvmBackend,
}


def backend_for(sdk_env: SdkEnvironment) -> Backend:
    """Select the backend implementation for an SDK environment.

    Example:
        ```python
        backend = backend_for(load_sdk_environments()["java"])
        ```
    """
    backend_cls = _BACKENDS_BY_KIND.get(sdk_env.kind)
    if backend_cls is None:
        raise ValueError(f"Unsupported backend kind '{sdk_env.kind}'")
    return backend_cls(sdk_env)
