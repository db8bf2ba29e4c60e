"""Verification results, phase outcomes and scenario reports."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import cbor2

from rebuildcheck.errors import AssertionMismatchError

if TYPE_CHECKING:
    from rebuildcheck.vfs import FileSystem

CheckKind = Literal["diagnostics", "read_tally", "output", "timestamp", "baseline"]
MismatchReason = Literal["missing_actual", "unexpected_actual", "value_mismatch"]
PhaseStatus = Literal["passed", "failed", "error"]


@dataclass(frozen=True, slots=True)
class Mismatch:
    check: CheckKind
    subject: str
    reason: MismatchReason
    expected: str | None
    actual: str | None
    hint: str

    def describe(self) -> str:
        return (
            f"[{self.check}] {self.subject}: {self.reason} "
            f"(expected={self.expected!r}, actual={self.actual!r})"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "check": self.check,
            "subject": self.subject,
            "reason": self.reason,
            "expected": self.expected,
            "actual": self.actual,
            "hint": self.hint,
        }


@dataclass(frozen=True, slots=True)
class VerificationResult:
    ok: bool
    mismatches: tuple[Mismatch, ...] = ()

    @classmethod
    def from_mismatches(cls, mismatches: list[Mismatch]) -> VerificationResult:
        return cls(ok=not mismatches, mismatches=tuple(mismatches))


@dataclass(slots=True)
class PhaseResult:
    name: str
    status: PhaseStatus = "passed"
    mismatches: list[Mismatch] = field(default_factory=list)
    read_tally: dict[str, int] = field(default_factory=dict)
    diagnostics: list[tuple[str, ...]] = field(default_factory=list)
    baseline_path: str | None = None
    baseline_text: str | None = None
    error: dict[str, object] | None = None
    fs: FileSystem | None = field(default=None, repr=False, compare=False)

    def extend(self, result: VerificationResult) -> None:
        self.mismatches.extend(result.mismatches)
        if self.mismatches and self.status == "passed":
            self.status = "failed"

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self.status,
            "mismatches": [mismatch.to_dict() for mismatch in self.mismatches],
            "read_tally": dict(sorted(self.read_tally.items())),
            "diagnostics": [list(item) for item in self.diagnostics],
            "baseline_path": self.baseline_path,
            "error": self.error,
        }


@dataclass(slots=True)
class ScenarioReport:
    scenario: str
    project: str
    phases: list[PhaseResult] = field(default_factory=list)
    error: dict[str, object] | None = None
    schema_version: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None and all(phase.status == "passed" for phase in self.phases)

    @property
    def mismatches(self) -> list[Mismatch]:
        return [mismatch for phase in self.phases for mismatch in phase.mismatches]

    def phase(self, name: str) -> PhaseResult:
        for phase in self.phases:
            if phase.name == name:
                return phase
        raise KeyError(name)

    def raise_for_failures(self) -> None:
        mismatches = self.mismatches
        if not mismatches:
            return
        failed = ", ".join(phase.name for phase in self.phases if phase.status == "failed")
        raise AssertionMismatchError(
            f"Scenario `{self.scenario}` failed verification.",
            mismatches=mismatches,
            hint="Inspect the listed paths to see which phase diverged.",
            context={"project": self.project, "phases": failed},
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "scenario": self.scenario,
            "project": self.project,
            "ok": self.ok,
            "error": self.error,
            "phases": [phase.to_dict() for phase in self.phases],
        }
