from __future__ import annotations

import argparse
import logging
import threading
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter

from code_pipeline import (
    ApplicationEnvironment,
    InfrastructureError,
    NotFoundError,
    PipelineService,
    SdkEnvironment,
    Slot,
    Status,
    load_sdk_environments,
)

_CONSOLE = Console(no_color=False)

_STATUS_STYLES = {
    Status.FINISHED: "bold green",
    Status.CANCELED: "bold yellow",
    Status.RUN_TIMEOUT: "bold yellow",
}


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m cpl")
        ```
    """

    def error(self, message: str) -> Never:
        """Print the usage error in a red panel followed by the help, then exit 2.

        Example:
            ```python
            parser.error("the following arguments are required: --sdk")
            ```
        """
        _CONSOLE.print(Panel.fit(Text.assemble(("Error: ", "bold red"), message), border_style="red"))
        self.print_help()
        raise SystemExit(2)

    def print_help(self, file: Any | None = None) -> None:
        """Write the help to `file`, or to stdout when no file is given.

        Example:
            ```python
            parser.print_help(file=io.StringIO())
            ```
        """
        super().print_help(file=file)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running snippets through the pipeline.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m cpl",
        description=(
            "code-pipeline CLI\n"
            "Validate, compile and run a source snippet with a configured backend.\n"
            "Progress is published to the pipeline cache exactly as a remote poller sees it."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m cpl backends\n"
            "  python -m cpl run hello.py --sdk python\n"
            "  python -m cpl run Hello.java --sdk java --timeout 30\n"
            "  python -m cpl run loop.py --sdk python --cancel-after 2\n\n"
            "Configuration:\n"
            "  APP_WORK_DIR, PIPELINE_EXECUTE_TIMEOUT and CANCEL_CHECK_INTERVAL are read from the environment."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--backends-file",
        help=(
            "TOML file with [backends.<name>] command templates.\n"
            "Defaults to the bundled backends.toml."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print pipeline log records.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    sub.add_parser(
        "backends",
        help="List configured backends.",
        description="Show every configured backend with its compile, run and test commands.",
        formatter_class=_HELP_FORMATTER,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Process one source file.",
        description=(
            "Run one source file through validate, compile and run (or test).\n"
            "Exits 0 when the pipeline finishes, 1 for any other terminal status."
        ),
        epilog=(
            "Examples:\n"
            "  python -m cpl run hello.py --sdk python\n"
            "  python -m cpl run main.go --sdk go --options \"-name world\""
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Path of the source file to process.")
    run_cmd.add_argument("--sdk", required=True, help="Backend name, e.g. python, go, java.")
    run_cmd.add_argument(
        "--options",
        default="",
        help="Pipeline options appended to the run command (shell-style quoting).",
    )
    run_cmd.add_argument(
        "--timeout",
        type=float,
        help="Run deadline in seconds (default: PIPELINE_EXECUTE_TIMEOUT or 900).",
    )
    run_cmd.add_argument(
        "--work-dir",
        help="Folder pipeline files are created in (default: APP_WORK_DIR or cwd).",
    )
    run_cmd.add_argument(
        "--cancel-after",
        type=float,
        help="Set the Canceled flag after this many seconds.",
    )

    return parser


def build_app_env(args: argparse.Namespace) -> ApplicationEnvironment:
    """Create the application environment from env vars and CLI overrides.

    Example:
        ```python
        app_env = build_app_env(args)
        ```
    """
    app_env = ApplicationEnvironment.from_env()
    return ApplicationEnvironment(
        working_dir=Path(args.work_dir) if args.work_dir else app_env.working_dir,
        pipeline_execute_timeout=(
            args.timeout if args.timeout is not None else app_env.pipeline_execute_timeout
        ),
        cancel_check_interval=app_env.cancel_check_interval,
    )


def _configure_logging(verbose: bool) -> None:
    """Route pipeline log records through Rich when `verbose` is set.

    Example:
        ```python
        _configure_logging(args.verbose)
        ```
    """
    if not verbose:
        return
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=_CONSOLE, show_path=False)],
    )


def _print_backends(sdk_envs: dict[str, SdkEnvironment]) -> None:
    """Print a table of every configured backend and its commands.

    Example:
        ```python
        _print_backends(load_sdk_environments())
        ```
    """
    table = Table(title="Configured Backends")
    table.add_column("Name", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Compile")
    table.add_column("Run")
    table.add_column("Test")
    for name, env in sorted(sdk_envs.items()):
        table.add_row(
            name,
            env.kind,
            " ".join([env.compile_cmd, *env.compile_args]).strip() or "-",
            " ".join([env.run_cmd, *env.run_args]).strip() or "<binary>",
            " ".join([env.test_cmd, *env.test_args]).strip() or "-",
        )
    _CONSOLE.print(table)


def _print_result(service: PipelineService, pipeline_id: Any, status: Status) -> None:
    """Print the terminal status and every non-empty output slot of a pipeline.

    Example:
        ```python
        _print_result(service, pipeline_id, Status.FINISHED)
        ```
    """
    style = _STATUS_STYLES.get(status, "bold red")
    _CONSOLE.print(Panel.fit(f"{pipeline_id}: {status.value}", title="Status", style=style))
    for slot, title in (
        (Slot.COMPILE_OUTPUT, "Compile Output"),
        (Slot.RUN_OUTPUT, "Run Output"),
        (Slot.RUN_ERROR, "Run Error"),
    ):
        try:
            text = service.output(pipeline_id, slot)
        except NotFoundError:
            continue
        if text:
            _CONSOLE.print(Panel(Text(text.rstrip("\n")), title=title, border_style="cyan"))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `cpl` CLI command handler.

    Example:
        ```python
        code = main(["run", "hello.py", "--sdk", "python"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)
    sdk_envs = load_sdk_environments(args.backends_file)

    if args.command == "backends":
        _print_backends(sdk_envs)
        return 0

    if args.command == "run":
        source = Path(args.source)
        if not source.is_file():
            _CONSOLE.print(Panel.fit(f"Source file '{source}' not found", style="bold red"))
            return 1
        service = PipelineService(build_app_env(args), sdk_envs=sdk_envs)
        try:
            pipeline_id = service.submit(
                source.read_text(encoding="utf-8"),
                sdk=args.sdk,
                pipeline_options=args.options,
            )
        except (ValueError, InfrastructureError) as exc:
            _CONSOLE.print(Panel.fit(Text(str(exc)), style="bold red"))
            return 1
        timer: threading.Timer | None = None
        if args.cancel_after is not None:
            timer = threading.Timer(args.cancel_after, service.cancel, args=(pipeline_id,))
            timer.start()
        try:
            status = service.wait(pipeline_id)
        finally:
            if timer is not None:
                timer.cancel()
        _print_result(service, pipeline_id, status)
        return 0 if status is Status.FINISHED else 1

    parser.error("Unhandled command")
    return 2
