"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable

import pytest

from rebuildcheck.clock import LogicalClock
from rebuildcheck.runner import ScenarioRunner
from rebuildcheck.vfs import FileSystem

CORE_A = (
    "export const a = 1;\n"
    "// helper comment\n"
    "export function double(x: number) { return x * 2; }\n"
)


def _write_chain_project(fs: FileSystem) -> None:
    fs.write("/lib/lib.d.ts", "interface Array<T> {}\n", parents=True)
    fs.write("/src/core/project.json", json.dumps({"files": ["a.ts", "b.ts"]}), parents=True)
    fs.write("/src/core/a.ts", CORE_A)
    fs.write("/src/core/b.ts", "export const b = 2;\n")
    fs.write(
        "/src/logic/project.json",
        json.dumps({"files": ["index.ts"], "references": [{"path": "../core"}], "sourceMap": True}),
        parents=True,
    )
    fs.write("/src/logic/index.ts", "export const value = 3;\n")


@pytest.fixture
def clock() -> LogicalClock:
    return LogicalClock()


@pytest.fixture
def make_project_fs() -> Callable[[LogicalClock], FileSystem]:
    """Build the read-only ``core <- logic`` fixture on a given clock."""

    def factory(clock: LogicalClock) -> FileSystem:
        fs = FileSystem(ignore_case=True, clock=clock)
        _write_chain_project(fs)
        return fs.make_readonly()

    return factory


@pytest.fixture
def project_fs(clock: LogicalClock, make_project_fs: Callable[[LogicalClock], FileSystem]) -> FileSystem:
    return make_project_fs(clock)


@pytest.fixture
def runner(clock: LogicalClock) -> ScenarioRunner:
    return ScenarioRunner(clock=clock)
