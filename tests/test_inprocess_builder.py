import json

import pytest

from rebuildcheck.artifacts import parse_build_info, render_bundle_sections
from rebuildcheck.builders import BuildStatus, create_builder
from rebuildcheck.builders.inprocess import (
    BUILDING,
    CONFIG_INVALID,
    DRY_RUN_BUILD,
    FILE_NOT_FOUND,
    OUT_OF_DATE_FORCED,
    OUT_OF_DATE_OUTPUT_MISSING,
    PREPEND_REQUIRES_OUT_FILE,
    SKIPPING_BLOCKED,
    UP_TO_DATE,
    Project,
)
from rebuildcheck.clock import LogicalClock
from rebuildcheck.config import BuildOptions
from rebuildcheck.expectations import projects_in_build_diagnostic
from rebuildcheck.host import BuildHost
from rebuildcheck.instrument import record_reads
from rebuildcheck.vfs import FileSystem

CORE = "src/core/project.json"
LOGIC = "src/logic/project.json"


def _build(fs: FileSystem, *roots: str, **options: bool) -> tuple[BuildHost, BuildStatus]:
    host = BuildHost(fs)
    status = create_builder(host, roots, BuildOptions(**options)).build_all_projects()
    return host, status


def test_builds_references_first_and_emits_outputs(project_fs: FileSystem, clock: LogicalClock) -> None:
    fs = project_fs.shadow()
    clock.tick()
    host, status = _build(fs, "/src/logic")

    assert status is BuildStatus.SUCCESS
    assert [diagnostic.as_expected() for diagnostic in host.diagnostics] == [
        projects_in_build_diagnostic(CORE, LOGIC),
        (OUT_OF_DATE_OUTPUT_MISSING, CORE, "src/core/out/a.js"),
        (BUILDING, CORE),
        (OUT_OF_DATE_OUTPUT_MISSING, LOGIC, "src/logic/out/index.js"),
        (BUILDING, LOGIC),
    ]
    assert fs.read_text("/src/core/out/a.js").startswith('"use strict";\nexport const a = 1;')
    assert fs.read_text("/src/core/out/a.d.ts") == (
        "export declare const a = 1;\nexport declare function double(x: number);\n"
    )
    assert fs.read_text("/src/logic/out/index.js").endswith("//# sourceMappingURL=index.js.map\n")
    source_map = json.loads(fs.read_text("/src/logic/out/index.js.map"))
    assert source_map["sources"] == ["../index.ts"]
    assert source_map["mappings"] == ";AAAA"
    assert fs.stat("/src/logic/out/index.js").mtime == clock.now()


def test_second_build_without_changes_is_up_to_date(project_fs: FileSystem, clock: LogicalClock) -> None:
    fs = project_fs.shadow()
    clock.tick()
    _build(fs, "/src/logic")
    clock.tick()

    host = BuildHost(fs)
    with record_reads(host, "/src/") as tally:
        create_builder(host, ["/src/logic"], BuildOptions()).build_all_projects()

    assert [diagnostic.as_expected() for diagnostic in host.diagnostics] == [
        projects_in_build_diagnostic(CORE, LOGIC),
        (UP_TO_DATE, CORE, "src/core/project.json", "src/core/out/a.js"),
        (UP_TO_DATE, LOGIC, "src/logic/project.json", "src/logic/out/index.js"),
    ]
    assert tally.as_dict() == {"/src/core/project.json": 1, "/src/logic/project.json": 1}


def test_unchanged_declaration_keeps_its_timestamp(project_fs: FileSystem, clock: LogicalClock) -> None:
    fs = project_fs.shadow()
    clock.tick()
    _build(fs, "/src/core")
    first_build = clock.now()
    clock.tick()
    fs.write("/src/core/a.ts", fs.read_text("/src/core/a.ts").replace("helper", "renamed helper"))
    clock.tick()
    _build(fs, "/src/core")

    assert fs.stat("/src/core/out/a.d.ts").mtime == first_build
    assert fs.stat("/src/core/out/a.js").mtime == clock.now()


def test_dry_run_reports_without_writing(project_fs: FileSystem) -> None:
    fs = project_fs.shadow()
    host, status = _build(fs, "/src/core", dry_run=True)

    assert status is BuildStatus.SUCCESS
    assert (DRY_RUN_BUILD, CORE) in [diagnostic.as_expected() for diagnostic in host.diagnostics]
    assert not fs.exists("/src/core/out")


def test_force_rebuilds_up_to_date_project(project_fs: FileSystem, clock: LogicalClock) -> None:
    fs = project_fs.shadow()
    _build(fs, "/src/core")
    clock.tick()
    host, _ = _build(fs, "/src/core", force=True)

    assert (OUT_OF_DATE_FORCED, CORE) in [diagnostic.as_expected() for diagnostic in host.diagnostics]
    assert fs.stat("/src/core/out/a.js").mtime == clock.now()


def test_quiet_build_reports_nothing(project_fs: FileSystem) -> None:
    host, status = _build(project_fs.shadow(), "/src/logic", verbose=False)
    assert status is BuildStatus.SUCCESS
    assert host.diagnostics == ()


def test_missing_and_invalid_configs_block_dependents(clock: LogicalClock) -> None:
    fs = FileSystem(clock=clock)
    fs.write("/src/app/project.json", json.dumps({"files": ["main.ts"], "references": [{"path": "../lib"}]}), parents=True)
    fs.write("/src/app/main.ts", "export const main = 1;\n")
    host, status = _build(fs, "/src/app")

    assert status is BuildStatus.DIAGNOSTICS_PRESENT
    messages = [diagnostic.as_expected() for diagnostic in host.diagnostics]
    assert (FILE_NOT_FOUND, "src/lib/project.json") in messages
    assert (SKIPPING_BLOCKED, "src/app/project.json", "src/lib/project.json") in messages

    fs.write("/src/lib/project.json", json.dumps({"files": []}), parents=True)
    host, status = _build(fs, "/src/app")
    assert status is BuildStatus.DIAGNOSTICS_PRESENT
    assert host.diagnostics[0].template == CONFIG_INVALID
    assert host.diagnostics[0].args[0] == "src/lib/project.json"


def test_prepend_requires_out_file(clock: LogicalClock) -> None:
    fs = FileSystem(clock=clock)
    fs.write("/src/first/project.json", json.dumps({"files": ["first.ts"]}), parents=True)
    fs.write("/src/first/first.ts", "export const first = 1;\n")
    fs.write(
        "/src/second/project.json",
        json.dumps({"files": ["second.ts"], "outFile": "second", "references": [{"path": "../first", "prepend": True}]}),
        parents=True,
    )
    fs.write("/src/second/second.ts", "export const second = 2;\n")
    host, status = _build(fs, "/src/second")

    assert status is BuildStatus.DIAGNOSTICS_PRESENT
    assert host.diagnostics[-1].as_expected() == (PREPEND_REQUIRES_OUT_FILE, "src/first/project.json")


def test_bundle_paths_need_out_file() -> None:
    project = Project(config_path="/src/first/project.json", files=("first.ts",), out_dir="/src/first/out")
    assert project.outputs() == ["/src/first/out/first.js", "/src/first/out/first.d.ts"]
    with pytest.raises(ValueError, match="outFile"):
        project.bundle_js


def _bundle_fs(clock: LogicalClock) -> FileSystem:
    fs = FileSystem(clock=clock)
    fs.write("/src/first/project.json", json.dumps({"files": ["first.ts"], "outFile": "first"}), parents=True)
    fs.write("/src/first/first.ts", "export const first = 1;\n")
    fs.write(
        "/src/second/project.json",
        json.dumps({"files": ["second.ts"], "outFile": "second", "references": [{"path": "../first", "prepend": True}]}),
        parents=True,
    )
    fs.write("/src/second/second.ts", "export const second = 2;\n")
    return fs


def test_prepend_bundles_upstream_output(clock: LogicalClock) -> None:
    fs = _bundle_fs(clock)
    host = BuildHost(fs)
    with record_reads(host, "/src/") as tally:
        status = create_builder(host, ["/src/second"], BuildOptions()).build_all_projects()

    assert status is BuildStatus.SUCCESS
    assert fs.read_text("/src/second/out/second.js") == (
        '"use strict";\nexport const first = 1;\nexport const second = 2;\n'
    )
    assert fs.read_text("/src/second/out/second.d.ts") == (
        "export declare const first = 1;\nexport declare const second = 2;\n"
    )
    assert tally.get("/src/first/out/first.d.ts") == 2
    assert tally.get("/src/first/out/first.js") == 1

    build_info = parse_build_info(fs.read_text("/src/second/out/second.buildinfo"))
    assert build_info.bundle is not None and build_info.bundle.js is not None
    assert [(section.kind, section.pos, section.end) for section in build_info.bundle.js.sections] == [
        ("prologue", 0, 14),
        ("prepend", 14, 38),
        ("text", 38, 63),
    ]

    rendered = render_bundle_sections(
        fs,
        "/src/second/out/second.buildinfo",
        "/src/second/out/second.js",
        "/src/second/out/second.d.ts",
    )
    assert rendered is not None
    assert "prepend: (14-38):: src/first/out/first.js texts:: 1" in rendered
    assert "prepend: (0-32):: src/first/out/first.d.ts texts:: 1" in rendered
    assert "File:: /src/second/out/second.d.ts" in rendered


def test_prepend_rebuilds_when_upstream_bundle_changes(clock: LogicalClock) -> None:
    fs = _bundle_fs(clock)
    clock.tick()
    _build(fs, "/src/second")
    clock.tick()
    fs.write("/src/first/first.ts", "export const first = 1; // comment\n")
    clock.tick()
    host, _ = _build(fs, "/src/second")

    assert (BUILDING, "src/second/project.json") in [diagnostic.as_expected() for diagnostic in host.diagnostics]
    assert "// comment" in fs.read_text("/src/second/out/second.js")
