import pytest

from rebuildcheck.errors import (
    SETUP_ERRORS,
    AssertionMismatchError,
    ErrorCode,
    InvalidPathError,
    MalformedArtifactError,
    MissingExpectationError,
    NotAFileError,
    NotFoundError,
    ReadOnlyViolationError,
    ScenarioScriptError,
)
from rebuildcheck.models import Mismatch, PhaseResult, ScenarioReport, VerificationResult


def _mismatch(subject: str = "/src/a.ts") -> Mismatch:
    return Mismatch(
        check="read_tally",
        subject=subject,
        reason="value_mismatch",
        expected="1",
        actual="2",
        hint="The file was read a different number of times.",
    )


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        NotFoundError("missing"),
        NotAFileError("directory"),
        ReadOnlyViolationError("frozen"),
        InvalidPathError("bad path"),
        ScenarioScriptError("bad script"),
        AssertionMismatchError("mismatch"),
        MissingExpectationError("no expectation"),
        MalformedArtifactError("bad artifact"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.NOT_FOUND.value,
        ErrorCode.NOT_A_FILE.value,
        ErrorCode.READONLY.value,
        ErrorCode.INVALID_PATH.value,
        ErrorCode.SCENARIO_SCRIPT.value,
        ErrorCode.ASSERTION_MISMATCH.value,
        ErrorCode.MISSING_EXPECTATION.value,
        ErrorCode.MALFORMED_ARTIFACT.value,
    ]


def test_error_message_includes_hint_and_context() -> None:
    error = NotFoundError("File does not exist.", hint="Check the path.", context={"path": "/src/a.ts"})
    text = str(error)
    assert "File does not exist." in text
    assert "Hint: Check the path." in text
    assert "path: /src/a.ts" in text
    assert error.to_dict()["code"] == "E_NOT_FOUND"
    assert error.to_dict()["context"] == {"path": "/src/a.ts"}


def test_assertion_errors_are_not_setup_errors() -> None:
    assert AssertionMismatchError not in SETUP_ERRORS
    assert MalformedArtifactError not in SETUP_ERRORS
    assert ScenarioScriptError in SETUP_ERRORS


def test_assertion_mismatch_error_lists_each_mismatch() -> None:
    error = AssertionMismatchError("failed", mismatches=[_mismatch("/src/a.ts"), _mismatch("/src/b.ts")])
    text = str(error)
    assert "/src/a.ts" in text
    assert "/src/b.ts" in text
    assert len(error.mismatches) == 2


def test_phase_result_status_follows_mismatches() -> None:
    phase = PhaseResult(name="initial Build")
    phase.extend(VerificationResult(ok=True))
    assert phase.status == "passed"
    phase.extend(VerificationResult.from_mismatches([_mismatch()]))
    assert phase.status == "failed"
    assert phase.to_dict()["mismatches"] == [_mismatch().to_dict()]


def test_scenario_report_lookup_and_ok() -> None:
    report = ScenarioReport(scenario="s", project="p", phases=[PhaseResult(name="initial Build")])
    assert report.ok
    assert report.phase("initial Build").name == "initial Build"
    with pytest.raises(KeyError):
        report.phase("missing")
    report.raise_for_failures()

    report.error = NotFoundError("missing").to_dict()
    assert not report.ok
