from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

BACKEND_KINDS = frozenset({"script", "native", "jvm"})

DEFAULT_PIPELINE_EXECUTE_TIMEOUT = 15 * 60.0
DEFAULT_CANCEL_CHECK_INTERVAL = 0.5

_FALLBACK_BACKENDS: dict[str, Any] = {
    "python": {
        "kind": "script",
        "source_extension": ".py",
        "compile_cmd": "python3",
        "compile_args": ["-m", "py_compile"],
        "run_cmd": "python3",
        "run_args": [],
        "test_cmd": "python3",
        "test_args": ["-m", "pytest"],
        "unit_test_markers": ["def test_"],
    },
}


def _default_backends_path() -> Path:
    """Return bundled backend command TOML path.

    Example:
        ```python
        path = _default_backends_path()
        ```
    """
    return Path(__file__).with_name("backends.toml")


def _read_backends_toml(path: Path) -> dict[str, Any]:
    """Read backend TOML and return the table of backend definitions.

    Example:
        ```python
        raw = _read_backends_toml(Path("/etc/code-pipeline/backends.toml"))
        ```
    """
    if not path.exists():
        return _FALLBACK_BACKENDS
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    backends = raw.get("backends", raw)
    if not isinstance(backends, dict):
        raise ValueError("Backend config must be a TOML table")
    return backends


def _list_of_str(value: Any, field_name: str) -> tuple[str, ...]:
    """Validate and normalize a list-of-strings config field.

    Example:
        ```python
        args = _list_of_str(["-d", "bin"], "compile_args")
        ```
    """
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"'{field_name}' must be a list of strings")
    out: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"'{field_name}' must contain only strings")
        out.append(item)
    return tuple(out)


def _non_negative_float(value: Any, field_name: str) -> float:
    """Parse a duration in seconds that must not be negative.

    Example:
        ```python
        timeout = _non_negative_float("30", "PIPELINE_EXECUTE_TIMEOUT")
        ```
    """
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be a number of seconds") from exc
    if seconds < 0:
        raise ValueError(f"'{field_name}' must not be negative")
    return seconds


@dataclass(frozen=True, slots=True)
class SdkEnvironment:
    """Command templates for one language backend.

    Example:
        ```python
        sdk = SdkEnvironment(sdk="python", kind="script", source_extension=".py", run_cmd="python3")
        ```
    """

    sdk: str
    kind: str
    source_extension: str
    run_cmd: str
    compile_cmd: str = ""
    test_cmd: str = ""
    compile_args: tuple[str, ...] = ()
    run_args: tuple[str, ...] = ()
    test_args: tuple[str, ...] = ()
    unit_test_markers: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate backend kind and required commands.

        Example:
            ```python
            SdkEnvironment(sdk="go", kind="native", source_extension=".go", run_cmd="", compile_cmd="go")
            ```
        """
        if self.kind not in BACKEND_KINDS:
            raise ValueError(f"kind must be one of {sorted(BACKEND_KINDS)}, got '{self.kind}'")
        if not self.source_extension.startswith("."):
            raise ValueError("source_extension must start with '.'")
        if self.kind in {"script", "jvm"} and not self.run_cmd:
            raise ValueError(f"backend '{self.sdk}' needs a run_cmd")
        if self.kind in {"native", "jvm"} and not self.compile_cmd:
            raise ValueError(f"backend '{self.sdk}' needs a compile_cmd")

    @classmethod
    def from_table(cls, sdk: str, raw: Mapping[str, Any]) -> SdkEnvironment:
        """Create a backend environment from one TOML table.

        Example:
            ```python
            sdk = SdkEnvironment.from_table("python", {"kind": "script", "source_extension": ".py", "run_cmd": "python3"})
            ```
        """
        if not isinstance(raw, Mapping):
            raise ValueError(f"Backend '{sdk}' must be a TOML table")
        return cls(
            sdk=sdk,
            kind=str(raw.get("kind", "script")),
            source_extension=str(raw.get("source_extension", "")),
            run_cmd=str(raw.get("run_cmd", "")),
            compile_cmd=str(raw.get("compile_cmd", "")),
            test_cmd=str(raw.get("test_cmd", "")),
            compile_args=_list_of_str(raw.get("compile_args", []), "compile_args"),
            run_args=_list_of_str(raw.get("run_args", []), "run_args"),
            test_args=_list_of_str(raw.get("test_args", []), "test_args"),
            unit_test_markers=_list_of_str(
                raw.get("unit_test_markers", []), "unit_test_markers"
            ),
        )


def load_sdk_environments(path: str | Path | None = None) -> dict[str, SdkEnvironment]:
    """Load every backend defined in a TOML file, defaulting to the bundled one.

    Example:
        ```python
        backends = load_sdk_environments()
        python_env = backends["python"]
        ```
    """
    raw = _read_backends_toml(Path(path) if path is not None else _default_backends_path())
    return {name: SdkEnvironment.from_table(name, table) for name, table in raw.items()}


@dataclass(frozen=True, slots=True)
class ApplicationEnvironment:
    """Process-wide settings shared by every pipeline.

    Example:
        ```python
        app_env = ApplicationEnvironment(working_dir=Path("/tmp/work"), pipeline_execute_timeout=30)
        ```
    """

    working_dir: Path
    pipeline_execute_timeout: float = DEFAULT_PIPELINE_EXECUTE_TIMEOUT
    cancel_check_interval: float = DEFAULT_CANCEL_CHECK_INTERVAL

    def __post_init__(self) -> None:
        """Validate durations after dataclass initialization.

        Example:
            ```python
            ApplicationEnvironment(working_dir=Path("."), pipeline_execute_timeout=0)
            ```
        """
        if self.pipeline_execute_timeout < 0:
            raise ValueError("pipeline_execute_timeout must not be negative")
        if self.cancel_check_interval <= 0:
            raise ValueError("cancel_check_interval must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ApplicationEnvironment:
        """Read settings from APP_WORK_DIR, PIPELINE_EXECUTE_TIMEOUT and CANCEL_CHECK_INTERVAL.

        Example:
            ```python
            app_env = ApplicationEnvironment.from_env({"APP_WORK_DIR": "/tmp/work"})
            ```
        """
        env = os.environ if environ is None else environ
        work_dir = env.get("APP_WORK_DIR") or os.getcwd()
        return cls(
            working_dir=Path(work_dir).expanduser(),
            pipeline_execute_timeout=_non_negative_float(
                env.get("PIPELINE_EXECUTE_TIMEOUT", DEFAULT_PIPELINE_EXECUTE_TIMEOUT),
                "PIPELINE_EXECUTE_TIMEOUT",
            ),
            cancel_check_interval=_non_negative_float(
                env.get("CANCEL_CHECK_INTERVAL", DEFAULT_CANCEL_CHECK_INTERVAL),
                "CANCEL_CHECK_INTERVAL",
            ),
        )
