from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .config import SdkEnvironment
from .errors import ValidationError

UNIT_TEST_VALIDATOR_NAME = "unit_test"

ValidationResultSet = dict[str, bool]


@dataclass(frozen=True, slots=True)
class Validator:
    """Named check run against the prepared source file.

    A validator with `rejects=True` fails the pipeline when its check returns
    False. Other validators only contribute a verdict to the result set.

    Example:
        ```python
        v = Validator("non_empty", lambda path: path.stat().st_size > 0)
        ```
    """

    name: str
    check: Callable[[Path], bool]
    rejects: bool = True


def _read_source(path: Path) -> str:
    """Read a source file as text.

    Example:
        ```python
        code = _read_source(Path("src/main.py"))
        ```
    """
    return path.read_text(encoding="utf-8", errors="replace")


def _contains_all(markers: Sequence[str]) -> Callable[[Path], bool]:
    """Build a check that is true when every marker appears in the source.

    Example:
        ```python
        is_test = _contains_all(["@Test", "org.junit"])
        ```
    """

    def _check(path: Path) -> bool:
        """Return whether the source contains every marker.

        Example:
            ```python
            _check(Path("src/Main.java"))
            ```
        """
        if not markers:
            return False
        code = _read_source(path)
        return all(marker in code for marker in markers)

    return _check


def validators_for(sdk_env: SdkEnvironment) -> list[Validator]:
    """Return the ordered validator set for a backend.

    Example:
        ```python
        validators = validators_for(load_sdk_environments()["java"])
        ```
    """
    return [
        Validator("source_exists", lambda path: path.is_file()),
        Validator("source_extension", lambda path: path.suffix == sdk_env.source_extension),
        Validator("non_empty", lambda path: bool(_read_source(path).strip())),
        Validator(
            UNIT_TEST_VALIDATOR_NAME,
            _contains_all(sdk_env.unit_test_markers),
            rejects=False,
        ),
    ]


def run_validators(validators: Sequence[Validator], path: Path) -> ValidationResultSet:
    """Run validators in order and collect their verdicts.

    Raises `ValidationError` naming the first rejecting validator; the
    remaining validators are not run.

    Example:
        ```python
        results = run_validators(validators_for(sdk_env), lc.absolute_source_file_path)
        is_test = results[UNIT_TEST_VALIDATOR_NAME]
        ```
    """
    results: ValidationResultSet = {}
    for validator in validators:
        try:
            verdict = bool(validator.check(path))
        except OSError as exc:
            raise ValidationError(f"{validator.name}: {exc}") from exc
        results[validator.name] = verdict
        if validator.rejects and not verdict:
            raise ValidationError(f"source rejected by validator '{validator.name}'")
    return results
