"""Per-phase expectations and the checks that compare them to a build."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from rebuildcheck.host import Diagnostic
from rebuildcheck.models import Mismatch, VerificationResult
from rebuildcheck.vfs import FileSystem

# (message template, *substitution arguments)
ExpectedDiagnostic = tuple[str, ...]
ModifyFs = Callable[[FileSystem], None]

PROJECTS_IN_THIS_BUILD = "Projects in this build: {0}"


def no_change(fs: FileSystem) -> None:
    """Mutation used by phases that rebuild without editing anything."""


@dataclass(frozen=True, slots=True)
class BuildPhase:
    """A scripted filesystem mutation followed by a build, and what it should do."""

    modify_fs: ModifyFs = no_change
    expected_diagnostics: Sequence[ExpectedDiagnostic] = ()
    expected_read_files: Mapping[str, int] | None = None


def projects_in_build_diagnostic(*projects: str) -> ExpectedDiagnostic:
    return (PROJECTS_IN_THIS_BUILD, "".join(f"\r\n    * {project}" for project in projects))


def verify_diagnostics(
    actual: Sequence[Diagnostic],
    expected: Sequence[ExpectedDiagnostic],
) -> VerificationResult:
    mismatches: list[Mismatch] = []
    actual_items = [diagnostic.as_expected() for diagnostic in actual]
    expected_items = [tuple(item) for item in expected]
    for index in range(max(len(actual_items), len(expected_items))):
        subject = f"diagnostic #{index}"
        if index >= len(actual_items):
            mismatches.append(
                Mismatch(
                    check="diagnostics",
                    subject=subject,
                    reason="missing_actual",
                    expected=_render(expected_items[index]),
                    actual=None,
                    hint="The build reported fewer diagnostics than expected.",
                )
            )
        elif index >= len(expected_items):
            mismatches.append(
                Mismatch(
                    check="diagnostics",
                    subject=subject,
                    reason="unexpected_actual",
                    expected=None,
                    actual=_render(actual_items[index]),
                    hint="The build reported a diagnostic that was not expected.",
                )
            )
        elif actual_items[index] != expected_items[index]:
            mismatches.append(
                Mismatch(
                    check="diagnostics",
                    subject=subject,
                    reason="value_mismatch",
                    expected=_render(expected_items[index]),
                    actual=_render(actual_items[index]),
                    hint="Diagnostic template or arguments differ.",
                )
            )
    return VerificationResult.from_mismatches(mismatches)


def verify_read_tally(actual: Mapping[str, int], expected: Mapping[str, int]) -> VerificationResult:
    """Compare read counts; a path missing from either side counts as zero reads."""
    mismatches: list[Mismatch] = []
    for path in sorted(expected.keys() | actual.keys()):
        expected_count = expected.get(path, 0)
        actual_count = actual.get(path, 0)
        if expected_count == actual_count:
            continue
        if actual_count == 0:
            reason = "missing_actual"
            hint = "The file was expected to be read but never was."
        elif expected_count == 0:
            reason = "unexpected_actual"
            hint = "The build read a file it should not have needed."
        else:
            reason = "value_mismatch"
            hint = "The file was read a different number of times."
        mismatches.append(
            Mismatch(
                check="read_tally",
                subject=path,
                reason=reason,
                expected=str(expected_count),
                actual=str(actual_count),
                hint=hint,
            )
        )
    return VerificationResult.from_mismatches(mismatches)


def verify_outputs_match(
    clean: FileSystem,
    incremental: FileSystem,
    output_files: Sequence[str],
) -> VerificationResult:
    """Every declared output must hold the same bytes (or be absent) in both builds."""
    mismatches: list[Mismatch] = []
    for output in output_files:
        expected = clean.read(output) if clean.is_file(output) else None
        actual = incremental.read(output) if incremental.is_file(output) else None
        if expected == actual:
            continue
        if actual is None:
            reason = "missing_actual"
        elif expected is None:
            reason = "unexpected_actual"
        else:
            reason = "value_mismatch"
        mismatches.append(
            Mismatch(
                check="output",
                subject=output,
                reason=reason,
                expected=_decode(expected),
                actual=_decode(actual),
                hint="Incremental output differs from a clean build of the same inputs.",
            )
        )
    return VerificationResult.from_mismatches(mismatches)


def verify_timestamp(fs: FileSystem, path: str, expected: int, *, label: str) -> VerificationResult:
    actual = fs.stat(path).mtime if fs.is_file(path) else None
    if actual == expected:
        return VerificationResult(ok=True)
    return VerificationResult.from_mismatches(
        [
            Mismatch(
                check="timestamp",
                subject=path,
                reason="missing_actual" if actual is None else "value_mismatch",
                expected=str(expected),
                actual=None if actual is None else str(actual),
                hint=label,
            )
        ]
    )


def _render(item: tuple[str, ...]) -> str:
    return json.dumps(list(item))


def _decode(content: bytes | None) -> str | None:
    if content is None:
        return None
    return content.decode("utf-8", errors="replace")
