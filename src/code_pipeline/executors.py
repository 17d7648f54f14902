from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Iterable


class Stage(Enum):
    """Stage a builder call configures.

    Example:
        ```python
        Stage.COMPILE
        ```
    """

    COMPILE = "compile"
    RUN = "run"
    TEST = "test"


@dataclass(frozen=True, slots=True)
class CommandConfig:
    """Command name and declared arguments of one stage.

    Example:
        ```python
        cfg = CommandConfig(command="javac", args=("-d", "bin"))
        ```
    """

    command: str = ""
    args: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Executor:
    """Resolved compile, run and test invocations of one pipeline.

    Equal inputs produce equal executors, so builds can be compared without
    running anything.

    Example:
        ```python
        executor = ExecutorBuilder().with_runner().with_command("python3").build()
        executor.run_argv()
        ```
    """

    compile: CommandConfig | None = None
    run: CommandConfig | None = None
    test: CommandConfig | None = None
    pipeline_options: tuple[str, ...] = ()
    executable_name: str | None = None
    working_dir: Path | None = None

    @property
    def has_compile(self) -> bool:
        """Return whether a compile command is configured.

        Example:
            ```python
            if executor.has_compile: ...
            ```
        """
        return self.compile is not None and bool(self.compile.command)

    def compile_argv(self) -> tuple[str, ...]:
        """Return the compile command followed by its declared arguments.

        Example:
            ```python
            argv = executor.compile_argv()
            ```
        """
        cfg = _require(self.compile, Stage.COMPILE)
        return (cfg.command, *cfg.args)

    def run_argv(self) -> tuple[str, ...]:
        """Return the run command with arguments, executable name and pipeline options.

        Example:
            ```python
            argv = executor.run_argv()
            ```
        """
        cfg = _require(self.run, Stage.RUN)
        argv = [cfg.command, *cfg.args]
        if self.executable_name:
            argv.append(self.executable_name)
        if self.pipeline_options:
            argv.extend(self.pipeline_options)
        return tuple(argv)

    def test_argv(self) -> tuple[str, ...]:
        """Return the test command with its own arguments and executable name.

        Example:
            ```python
            argv = executor.test_argv()
            ```
        """
        cfg = _require(self.test, Stage.TEST)
        argv = [cfg.command, *cfg.args]
        if self.executable_name:
            argv.append(self.executable_name)
        return tuple(argv)


def _require(cfg: CommandConfig | None, stage: Stage) -> CommandConfig:
    """Return a configured stage or raise when it is missing.

    Example:
        ```python
        cfg = _require(executor.run, Stage.RUN)
        ```
    """
    if cfg is None or not cfg.command:
        raise ValueError(f"{stage.value} command is not configured")
    return cfg


@dataclass(frozen=True, slots=True)
class ExecutorBuilder:
    """Immutable builder that accumulates stage configuration.

    Every `with_*` call returns a new builder; `with_command` and `with_args`
    apply to the stage selected last by `with_compiler`, `with_runner` or
    `with_test_runner`.

    Example:
        ```python
        executor = (
            ExecutorBuilder()
            .with_compiler().with_command("javac").with_args(["-d", "bin", "src/Main.java"])
            .with_runner().with_command("java").with_args(["-cp", "bin:"])
            .build()
        )
        ```
    """

    selected: Stage | None = None
    compile: CommandConfig | None = None
    run: CommandConfig | None = None
    test: CommandConfig | None = None
    pipeline_options: tuple[str, ...] = ()
    executable_name: str | None = None
    working_dir: Path | None = None

    def with_compiler(self) -> ExecutorBuilder:
        """Select the compile stage for following calls.

        Example:
            ```python
            builder = builder.with_compiler()
            ```
        """
        return replace(self, selected=Stage.COMPILE, compile=self.compile or CommandConfig())

    def with_runner(self) -> ExecutorBuilder:
        """Select the run stage for following calls.

        Example:
            ```python
            builder = builder.with_runner()
            ```
        """
        return replace(self, selected=Stage.RUN, run=self.run or CommandConfig())

    def with_test_runner(self) -> ExecutorBuilder:
        """Select the test stage for following calls.

        Example:
            ```python
            builder = builder.with_test_runner()
            ```
        """
        return replace(self, selected=Stage.TEST, test=self.test or CommandConfig())

    def with_command(self, command: str) -> ExecutorBuilder:
        """Set the command name of the selected stage.

        Example:
            ```python
            builder = builder.with_runner().with_command("java")
            ```
        """
        cfg = self._selected_config()
        return self._with_selected(replace(cfg, command=command))

    def with_args(self, args: Iterable[str]) -> ExecutorBuilder:
        """Set the declared arguments of the selected stage.

        Example:
            ```python
            builder = builder.with_runner().with_args(["-cp", "bin:"])
            ```
        """
        cfg = self._selected_config()
        return self._with_selected(replace(cfg, args=tuple(args)))

    def with_pipeline_options(self, options: Iterable[str]) -> ExecutorBuilder:
        """Set options appended to the run command, empty strings included.

        Example:
            ```python
            builder = builder.with_pipeline_options(["--output", "out.txt"])
            ```
        """
        return replace(self, pipeline_options=tuple(options))

    def with_executable_name(self, name: str) -> ExecutorBuilder:
        """Bind the compiled artifact name passed to the run and test commands.

        Example:
            ```python
            builder = builder.with_executable_name("HelloWorld")
            ```
        """
        return replace(self, executable_name=name)

    def with_working_dir(self, path: str | Path) -> ExecutorBuilder:
        """Set the directory every stage runs in.

        Example:
            ```python
            builder = builder.with_working_dir(lc.base_folder)
            ```
        """
        return replace(self, working_dir=Path(path))

    def build(self) -> Executor:
        """Freeze the accumulated configuration into an executor.

        Example:
            ```python
            executor = builder.build()
            ```
        """
        return Executor(
            compile=self.compile,
            run=self.run,
            test=self.test,
            pipeline_options=self.pipeline_options,
            executable_name=self.executable_name,
            working_dir=self.working_dir,
        )

    def _selected_config(self) -> CommandConfig:
        """Return the configuration of the selected stage.

        Example:
            ```python
            cfg = builder._selected_config()
            ```
        """
        if self.selected is Stage.COMPILE and self.compile is not None:
            return self.compile
        if self.selected is Stage.RUN and self.run is not None:
            return self.run
        if self.selected is Stage.TEST and self.test is not None:
            return self.test
        raise ValueError("select a stage with with_compiler, with_runner or with_test_runner first")

    def _with_selected(self, cfg: CommandConfig) -> ExecutorBuilder:
        """Return a builder with the selected stage replaced by `cfg`.

        Example:
            ```python
            builder = builder._with_selected(CommandConfig("java"))
            ```
        """
        if self.selected is Stage.COMPILE:
            return replace(self, compile=cfg)
        if self.selected is Stage.RUN:
            return replace(self, run=cfg)
        return replace(self, test=cfg)
