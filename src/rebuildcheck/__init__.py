"""Public package entrypoint for the incremental build verifier."""

from .baseline import BaselineStore, baseline_name
from .builders import BuildStatus, InProcessBuilder, create_builder
from .clock import LogicalClock
from .config import BuildOptions, RunnerOptions
from .errors import (
    AssertionMismatchError,
    ErrorCode,
    InvalidPathError,
    MalformedArtifactError,
    MissingExpectationError,
    NotAFileError,
    NotFoundError,
    ReadOnlyViolationError,
    RebuildCheckError,
    ScenarioScriptError,
)
from .expectations import BuildPhase, no_change, projects_in_build_diagnostic
from .host import BuildHost, Diagnostic
from .instrument import ReadTally, read_files_map, record_reads
from .models import Mismatch, PhaseResult, ScenarioReport, VerificationResult
from .observability import StructuredLogger
from .runner import BuildScenario, PhaseState, ScenarioRunner
from .vfs import FileSystem, Patch, format_patch, load_project_from_disk

__all__ = [
    "AssertionMismatchError",
    "BaselineStore",
    "BuildHost",
    "BuildOptions",
    "BuildPhase",
    "BuildScenario",
    "BuildStatus",
    "Diagnostic",
    "ErrorCode",
    "FileSystem",
    "InProcessBuilder",
    "InvalidPathError",
    "LogicalClock",
    "MalformedArtifactError",
    "Mismatch",
    "MissingExpectationError",
    "NotAFileError",
    "NotFoundError",
    "Patch",
    "PhaseResult",
    "PhaseState",
    "ReadOnlyViolationError",
    "ReadTally",
    "RebuildCheckError",
    "RunnerOptions",
    "ScenarioReport",
    "ScenarioRunner",
    "ScenarioScriptError",
    "StructuredLogger",
    "VerificationResult",
    "baseline_name",
    "create_builder",
    "format_patch",
    "load_project_from_disk",
    "no_change",
    "projects_in_build_diagnostic",
    "read_files_map",
    "record_reads",
]
