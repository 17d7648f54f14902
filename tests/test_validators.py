from pathlib import Path

import pytest
from conftest import PYTHON_ENV

from code_pipeline import ValidationError
from code_pipeline.validators import UNIT_TEST_VALIDATOR_NAME, Validator, run_validators, validators_for


def _source(tmp_path: Path, name: str, code: str) -> Path:
    path = tmp_path / name
    path.write_text(code, encoding="utf-8")
    return path


def test_valid_source_passes_every_validator(tmp_path: Path) -> None:
    results = run_validators(validators_for(PYTHON_ENV), _source(tmp_path, "main.py", "print(1)\n"))

    assert results == {
        "source_exists": True,
        "source_extension": True,
        "non_empty": True,
        UNIT_TEST_VALIDATOR_NAME: False,
    }


def test_unit_test_markers_are_detected(tmp_path: Path) -> None:
    path = _source(tmp_path, "main.py", "import unittest\n")

    results = run_validators(validators_for(PYTHON_ENV), path)

    assert results[UNIT_TEST_VALIDATOR_NAME] is True


def test_missing_source_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="source_exists"):
        run_validators(validators_for(PYTHON_ENV), tmp_path / "missing.py")


def test_wrong_extension_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="source_extension"):
        run_validators(validators_for(PYTHON_ENV), _source(tmp_path, "main.go", "package main\n"))


def test_blank_source_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="non_empty"):
        run_validators(validators_for(PYTHON_ENV), _source(tmp_path, "main.py", "  \n\n"))


def test_validation_error_is_a_value_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        run_validators(validators_for(PYTHON_ENV), tmp_path / "missing.py")


def test_first_rejection_stops_the_run(tmp_path: Path) -> None:
    seen: list[str] = []

    def _track(name: str, verdict: bool) -> Validator:
        def check(path: Path) -> bool:
            seen.append(name)
            return verdict

        return Validator(name, check)

    with pytest.raises(ValidationError):
        run_validators([_track("a", True), _track("b", False), _track("c", True)], tmp_path)

    assert seen == ["a", "b"]


def test_check_os_error_becomes_validation_error(tmp_path: Path) -> None:
    def explode(path: Path) -> bool:
        raise PermissionError("denied")

    with pytest.raises(ValidationError, match="reader: denied"):
        run_validators([Validator("reader", explode)], tmp_path)
