"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rebuildcheck.models import Mismatch


class ErrorCode(StrEnum):
    """Stable error identifiers used across the verification engine."""

    NOT_FOUND = "E_NOT_FOUND"
    NOT_A_FILE = "E_NOT_A_FILE"
    READONLY = "E_READONLY"
    INVALID_PATH = "E_INVALID_PATH"
    SCENARIO_SCRIPT = "E_SCENARIO_SCRIPT"
    ASSERTION_MISMATCH = "E_ASSERTION_MISMATCH"
    MISSING_EXPECTATION = "E_MISSING_EXPECTATION"
    MALFORMED_ARTIFACT = "E_MALFORMED_ARTIFACT"


class RebuildCheckError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class NotFoundError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.NOT_FOUND, hint=hint, context=context)


class NotAFileError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.NOT_A_FILE, hint=hint, context=context)


class ReadOnlyViolationError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.READONLY, hint=hint, context=context)


class InvalidPathError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_PATH, hint=hint, context=context)


class ScenarioScriptError(RebuildCheckError):
    """A scripted mutation could not be applied as written."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.SCENARIO_SCRIPT, hint=hint, context=context)


class MissingExpectationError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_EXPECTATION, hint=hint, context=context)


class MalformedArtifactError(RebuildCheckError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MALFORMED_ARTIFACT, hint=hint, context=context)


class AssertionMismatchError(RebuildCheckError):
    """Expected and actual build behaviour differ.

    Carries every :class:`~rebuildcheck.models.Mismatch` so the message lists
    the offending paths and counts rather than a bare failure.
    """

    mismatches: tuple[Mismatch, ...]

    def __init__(
        self,
        message: str,
        *,
        mismatches: Sequence[Mismatch] = (),
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ASSERTION_MISMATCH, hint=hint, context=context)
        self.mismatches = tuple(mismatches)

    def __str__(self) -> str:
        lines = [super().__str__()]
        for mismatch in self.mismatches:
            lines.append(f"  - {mismatch.describe()}")
        return "\n".join(lines)


# Malformed scenario scripts, as opposed to regressions in the build under test.
SETUP_ERRORS: tuple[type[RebuildCheckError], ...] = (
    NotFoundError,
    NotAFileError,
    ReadOnlyViolationError,
    InvalidPathError,
    ScenarioScriptError,
    MissingExpectationError,
)


__all__ = [
    "AssertionMismatchError",
    "ErrorCode",
    "InvalidPathError",
    "MalformedArtifactError",
    "MissingExpectationError",
    "NotAFileError",
    "NotFoundError",
    "ReadOnlyViolationError",
    "RebuildCheckError",
    "SETUP_ERRORS",
    "ScenarioScriptError",
]
