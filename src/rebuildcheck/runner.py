"""Scenario runner: scripted edits, instrumented builds and their verification.

A scenario is an initial build followed by zero or more incremental phases.
Each incremental phase starts from a shadow of the initial build's output,
so phases are independent of one another. Every phase walks the states
``init -> shadowed -> mutated -> ticked -> built -> asserted`` and the
scenario ends in ``done``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from rebuildcheck.artifacts.render import (
    BuildInfoSectionFiles,
    write_bundle_section_baselines,
    write_source_map_baselines,
)
from rebuildcheck.artifacts.sourcemap import SourceMapRecorder, render_source_map_record
from rebuildcheck.baseline import BaselineStore, baseline_name
from rebuildcheck.builders.base import BuilderFactory, BuildStatus
from rebuildcheck.builders.inprocess import create_builder
from rebuildcheck.clock import LogicalClock
from rebuildcheck.config import RunnerOptions, ensure_baseline_tool, ensure_source_root
from rebuildcheck.errors import (
    SETUP_ERRORS,
    MalformedArtifactError,
    MissingExpectationError,
    ScenarioScriptError,
)
from rebuildcheck.expectations import (
    BuildPhase,
    ModifyFs,
    verify_diagnostics,
    verify_outputs_match,
    verify_read_tally,
    verify_timestamp,
)
from rebuildcheck.host import BuildHost
from rebuildcheck.instrument import ReadTally, record_reads
from rebuildcheck.models import PhaseResult, ScenarioReport, VerificationResult
from rebuildcheck.mutations import remove_if_exists
from rebuildcheck.observability import StructuredLogger
from rebuildcheck.vfs import FileSystem, format_patch

INITIAL_BUILD = "initial Build"
INCREMENTAL_DTS_CHANGED = "incremental declaration changes"
INCREMENTAL_DTS_UNCHANGED = "incremental declaration doesnt change"
INCREMENTAL_HEADER_CHANGED = "incremental headers change without dts changes"

# Errors that abort the scenario in progress. Anything else is a bug.
FATAL_ERRORS = (*SETUP_ERRORS, MalformedArtifactError)


class PhaseState(StrEnum):
    INIT = "init"
    SHADOWED = "shadowed"
    MUTATED = "mutated"
    TICKED = "ticked"
    BUILT = "built"
    ASSERTED = "asserted"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class BuildScenario:
    """Everything needed to verify one project across its build phases."""

    scenario: str
    project: str
    project_fs: FileSystem
    root_names: tuple[str, ...]
    initial_build: BuildPhase
    expected_map_files: tuple[str, ...] = ()
    expected_build_info_files: tuple[BuildInfoSectionFiles, ...] = ()
    last_project_output: str | None = None
    output_files: tuple[str, ...] | None = None
    incremental_dts_changed_build: BuildPhase | None = None
    incremental_dts_unchanged_build: BuildPhase | None = None
    incremental_header_changed_build: BuildPhase | None = None

    def incremental_phases(self) -> list[tuple[str, BuildPhase]]:
        phases = (
            (INCREMENTAL_DTS_CHANGED, self.incremental_dts_changed_build),
            (INCREMENTAL_DTS_UNCHANGED, self.incremental_dts_unchanged_build),
            (INCREMENTAL_HEADER_CHANGED, self.incremental_header_changed_build),
        )
        return [(name, phase) for name, phase in phases if phase is not None]


@dataclass(slots=True)
class BuildOutcome:
    fs: FileSystem
    host: BuildHost
    read_tally: ReadTally
    status: BuildStatus


@dataclass(slots=True)
class ScenarioRunner:
    """Runs scenarios strictly one after another against a shared clock."""

    clock: LogicalClock
    options: RunnerOptions = field(default_factory=RunnerOptions)
    builder_factory: BuilderFactory = create_builder
    baseline_store: BaselineStore | None = None
    source_map_recorder: SourceMapRecorder = render_source_map_record
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def run(self, scenario: BuildScenario) -> ScenarioReport:
        """Run *scenario* and return its report.

        Assertion mismatches are collected in the report. Setup errors (a
        malformed scenario script) and malformed build artifacts propagate
        after being logged.
        """
        report = ScenarioReport(scenario=scenario.scenario, project=scenario.project)
        try:
            self._run(scenario, report)
        except FATAL_ERRORS as exc:
            self._log_fatal_error(scenario, report, exc)
            raise
        return report

    def run_scenarios(self, scenarios: Sequence[BuildScenario]) -> list[ScenarioReport]:
        """Run independent scenarios; a fatal error in one does not stop the rest."""
        reports: list[ScenarioReport] = []
        for scenario in scenarios:
            report = ScenarioReport(scenario=scenario.scenario, project=scenario.project)
            try:
                self._run(scenario, report)
            except FATAL_ERRORS as exc:
                self._log_fatal_error(scenario, report, exc)
                report.error = exc.to_dict()
                if report.phases:
                    report.phases[-1].status = "error"
                    report.phases[-1].error = exc.to_dict()
            reports.append(report)
        return reports

    # -- scenario flow --

    def _run(self, scenario: BuildScenario, report: ScenarioReport) -> None:
        self._validate(scenario)
        name = scenario.scenario

        initial = PhaseResult(name=INITIAL_BUILD)
        report.phases.append(initial)
        self._transition(name, initial.name, PhaseState.INIT)
        fs = scenario.project_fs.shadow()
        self._transition(name, initial.name, PhaseState.SHADOWED)
        outcome = self._build(
            fs,
            scenario,
            scenario.initial_build.modify_fs,
            phase=initial.name,
            map_files=scenario.expected_map_files,
            build_info_files=scenario.expected_build_info_files,
        )
        first_build_time = self.clock.now()
        self._assert_phase(initial, scenario, scenario.initial_build, outcome, base=scenario.project_fs)

        for phase_name, phase in scenario.incremental_phases():
            result = PhaseResult(name=phase_name)
            report.phases.append(result)
            self._transition(name, phase_name, PhaseState.INIT)
            if scenario.last_project_output is not None:
                self._extend(
                    result,
                    scenario,
                    verify_timestamp(
                        fs,
                        scenario.last_project_output,
                        first_build_time,
                        label="First build timestamp is correct",
                    ),
                )
            self.clock.tick()
            new_fs = fs.shadow()
            self._transition(name, phase_name, PhaseState.SHADOWED)
            self.clock.tick()
            outcome = self._build(
                new_fs,
                scenario,
                phase.modify_fs,
                phase=phase_name,
                map_files=scenario.expected_map_files,
                build_info_files=scenario.expected_build_info_files,
            )
            if scenario.last_project_output is not None:
                self._extend(
                    result,
                    scenario,
                    verify_timestamp(
                        new_fs,
                        scenario.last_project_output,
                        self.clock.now(),
                        label="Second build timestamp is correct",
                    ),
                )
            self._assert_phase(result, scenario, phase, outcome, base=fs)
            if self.options.verify_clean_build:
                self._verify_clean_build(result, scenario, new_fs)

        self._transition(name, None, PhaseState.DONE)
        self.logger.log(
            operation="scenario",
            scenario=name,
            phase=None,
            message="Scenario passed." if report.ok else "Scenario failed.",
            level="info" if report.ok else "error",
            extra={"mismatches": len(report.mismatches)},
        )

    def _build(
        self,
        fs: FileSystem,
        scenario: BuildScenario,
        modify_fs: ModifyFs,
        *,
        phase: str,
        map_files: Sequence[str],
        build_info_files: Sequence[BuildInfoSectionFiles],
    ) -> BuildOutcome:
        modify_fs(fs)
        self._transition(scenario.scenario, phase, PhaseState.MUTATED)
        self.clock.tick()
        self._transition(scenario.scenario, phase, PhaseState.TICKED)

        host = BuildHost(fs)
        builder = self.builder_factory(host, scenario.root_names, self.options.build_options)
        host.clear_diagnostics()
        with record_reads(host, ensure_source_root(self.options)) as tally:
            status = builder.build_all_projects()
        write_source_map_baselines(fs, map_files, self.source_map_recorder)
        write_bundle_section_baselines(fs, build_info_files)
        fs.make_readonly()

        self.logger.log(
            operation="build",
            scenario=scenario.scenario,
            phase=phase,
            message=f"Build finished with status {status}.",
            extra={"time": self.clock.now(), "reads": tally.as_dict()},
        )
        self._transition(scenario.scenario, phase, PhaseState.BUILT)
        return BuildOutcome(fs=fs, host=host, read_tally=tally, status=status)

    def _assert_phase(
        self,
        result: PhaseResult,
        scenario: BuildScenario,
        phase: BuildPhase,
        outcome: BuildOutcome,
        *,
        base: FileSystem,
    ) -> None:
        result.fs = outcome.fs
        result.read_tally = outcome.read_tally.as_dict()
        result.diagnostics = [diagnostic.as_expected() for diagnostic in outcome.host.diagnostics]
        if not self.options.baseline_only:
            self._extend(result, scenario, verify_diagnostics(outcome.host.diagnostics, phase.expected_diagnostics))
            if phase.expected_read_files is None:
                raise MissingExpectationError(
                    "Phase has no expected read files.",
                    context={"scenario": scenario.scenario, "phase": result.name},
                )
            self._extend(result, scenario, verify_read_tally(result.read_tally, phase.expected_read_files))

        patch = outcome.fs.diff(base)
        result.baseline_path = baseline_name(
            ensure_baseline_tool(self.options),
            scenario.project,
            result.name,
            scenario.scenario,
        )
        result.baseline_text = format_patch(patch)
        if self.baseline_store is not None:
            mismatch = self.baseline_store.record(result.baseline_path, result.baseline_text if patch else None)
            if mismatch is not None:
                self._extend(result, scenario, VerificationResult.from_mismatches([mismatch]))
        self._transition(scenario.scenario, result.name, PhaseState.ASSERTED)

    def _verify_clean_build(self, result: PhaseResult, scenario: BuildScenario, fs: FileSystem) -> None:
        output_files = scenario.output_files
        if output_files is None:
            raise MissingExpectationError(
                "Clean builds need the list of declared output files.",
                context={"scenario": scenario.scenario, "phase": result.name},
            )

        def delete_outputs(clean_fs: FileSystem) -> None:
            for output in output_files:
                remove_if_exists(clean_fs, output)

        clean = self._build(
            fs.shadow(),
            scenario,
            delete_outputs,
            phase=f"{result.name} (clean)",
            map_files=(),
            build_info_files=(),
        )
        self._extend(result, scenario, verify_outputs_match(clean.fs, fs, output_files))

    # -- helpers --

    def _validate(self, scenario: BuildScenario) -> None:
        if scenario.project_fs.clock is not self.clock:
            raise ScenarioScriptError(
                "Base filesystem does not use the runner's clock.",
                hint="Create the base filesystem with the same LogicalClock as the runner.",
                context={"scenario": scenario.scenario},
            )
        if not scenario.project_fs.is_readonly:
            raise ScenarioScriptError(
                "Base filesystem must be read-only.",
                hint="Call make_readonly() on the shared fixture before running scenarios.",
                context={"scenario": scenario.scenario},
            )
        incremental = scenario.incremental_phases()
        if incremental and self.options.verify_clean_build and scenario.output_files is None:
            raise MissingExpectationError(
                "Incremental phases need the list of declared output files.",
                hint="Set output_files so clean builds can be compared.",
                context={"scenario": scenario.scenario},
            )
        if self.options.baseline_only:
            return
        phases = [(INITIAL_BUILD, scenario.initial_build), *incremental]
        for phase_name, phase in phases:
            if phase.expected_read_files is None:
                raise MissingExpectationError(
                    "Phase has no expected read files.",
                    hint="Provide expected_read_files or run in baseline-only mode.",
                    context={"scenario": scenario.scenario, "phase": phase_name},
                )

    def _extend(self, result: PhaseResult, scenario: BuildScenario, verification: VerificationResult) -> None:
        for mismatch in verification.mismatches:
            self.logger.log(
                operation="mismatch",
                scenario=scenario.scenario,
                phase=result.name,
                message=mismatch.describe(),
                level="error",
                extra=mismatch.to_dict(),
            )
        result.extend(verification)

    def _transition(self, scenario: str, phase: str | None, state: PhaseState) -> None:
        self.logger.log(
            operation="transition",
            scenario=scenario,
            phase=phase,
            state=state.value,
            message=f"Entered state {state.value}.",
        )

    def _log_fatal_error(self, scenario: BuildScenario, report: ScenarioReport, exc: Exception) -> None:
        phase = report.phases[-1].name if report.phases else None
        self.logger.log(
            operation="artifact_error" if isinstance(exc, MalformedArtifactError) else "setup_error",
            scenario=scenario.scenario,
            phase=phase,
            message=str(exc),
            level="error",
        )
