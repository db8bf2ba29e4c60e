"""In-process reference builder for testing and development.

Builds projects inside the virtual filesystem with deterministic toy emit
rules instead of invoking a real compiler. It follows the same incremental
contract a real orchestrator must honour, which makes it suitable for:
- Unit tests that exercise the verification pipeline end to end
- Development environments without the real build tool installed

Project layout: a directory with a ``project.json`` such as::

    {"files": ["a.ts"], "outDir": "out", "references": [{"path": "../core"}]}

Each ``<name>.ts`` emits ``<outDir>/<name>.js`` and ``<outDir>/<name>.d.ts``
(plus ``.js.map`` with ``"sourceMap": true``). With ``"outFile": "bundle"``
the project emits ``bundle.js``, ``bundle.d.ts`` and a ``bundle.buildinfo``
record describing the bundle sections; references marked ``"prepend": true``
have their bundles prepended.
"""

from __future__ import annotations

import json
import posixpath
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from rebuildcheck.artifacts.bundle import (
    BuildInfo,
    BundleFileInfo,
    BundleInfo,
    BundleSection,
    FlatSection,
    PrependSection,
    serialize_build_info,
)
from rebuildcheck.builders.base import BuildStatus
from rebuildcheck.config import BuildOptions
from rebuildcheck.expectations import PROJECTS_IN_THIS_BUILD
from rebuildcheck.host import BuildHost

CONFIG_NAME = "project.json"
BUILDER_VERSION = "1.0.0"
PROLOGUE = '"use strict";\n'

FILE_NOT_FOUND = "File '{0}' not found."
CONFIG_INVALID = "Project configuration '{0}' is invalid: {1}"
PREPEND_REQUIRES_OUT_FILE = "Cannot prepend project '{0}' because it does not have 'outFile' set"
SKIPPING_BLOCKED = "Skipping build of project '{0}' because its dependency '{1}' has errors"
OUT_OF_DATE_INPUT_MISSING = "Project '{0}' is out of date because input '{1}' does not exist"
OUT_OF_DATE_OUTPUT_MISSING = "Project '{0}' is out of date because output file '{1}' does not exist"
OUT_OF_DATE_OUTPUT_OLDER = (
    "Project '{0}' is out of date because oldest output '{1}' is older than newest input '{2}'"
)
OUT_OF_DATE_UPSTREAM = (
    "Project '{0}' is out of date because output of its dependency '{1}' has changed"
)
OUT_OF_DATE_FORCED = "Project '{0}' is being forcibly rebuilt"
UP_TO_DATE = (
    "Project '{0}' is up to date because newest input '{1}' is older than oldest output '{2}'"
)
UP_TO_DATE_WITH_UPSTREAM = "Project '{0}' is up to date with .d.ts files from its dependencies"
UPDATING_TIMESTAMPS = "Updating output timestamps of project '{0}'..."
BUILDING = "Building project '{0}'..."
DRY_RUN_BUILD = "A non-dry build would build project '{0}'"
DRY_RUN_UPDATE = "A non-dry build would update timestamps for output of project '{0}'"

StatusKind = Literal[
    "input_missing",
    "output_missing",
    "output_older",
    "upstream_changed",
    "forced",
    "up_to_date",
    "up_to_date_with_upstream",
]


@dataclass(frozen=True, slots=True)
class ProjectReference:
    path: str
    prepend: bool = False


@dataclass(frozen=True, slots=True)
class Project:
    config_path: str
    files: tuple[str, ...]
    out_dir: str
    references: tuple[ProjectReference, ...] = ()
    declaration: bool = True
    source_map: bool = False
    out_file: str | None = None

    @property
    def name(self) -> str:
        return _display(self.config_path)

    @property
    def bundle_js(self) -> str:
        return f"{self._bundle_stem()}.js"

    @property
    def bundle_dts(self) -> str:
        return f"{self._bundle_stem()}.d.ts"

    @property
    def build_info(self) -> str:
        return f"{self._bundle_stem()}.buildinfo"

    def js_output(self, source: str) -> str:
        return posixpath.join(self.out_dir, f"{_stem(source)}.js")

    def dts_output(self, source: str) -> str:
        return posixpath.join(self.out_dir, f"{_stem(source)}.d.ts")

    def declaration_outputs(self) -> list[str]:
        if not self.declaration:
            return []
        if self.out_file is not None:
            return [self.bundle_dts]
        return [self.dts_output(source) for source in self.files]

    def program_outputs(self) -> list[str]:
        """Outputs rewritten on every rebuild, everything except declarations."""
        if self.out_file is not None:
            return [self.bundle_js, self.build_info]
        outputs: list[str] = []
        for source in self.files:
            js = self.js_output(source)
            outputs.append(js)
            if self.source_map:
                outputs.append(f"{js}.map")
        return outputs

    def outputs(self) -> list[str]:
        return [*self.program_outputs(), *self.declaration_outputs()]

    def _bundle_stem(self) -> str:
        if self.out_file is None:
            raise ValueError(f"project '{self.name}' has no `outFile`")
        return posixpath.join(self.out_dir, self.out_file)


@dataclass(frozen=True, slots=True)
class UpToDateStatus:
    kind: StatusKind
    args: tuple[str, ...] = ()


@dataclass(slots=True)
class InProcessBuilder:
    """Builder that runs the whole project graph against a :class:`BuildHost`."""

    host: BuildHost
    root_names: Sequence[str]
    options: BuildOptions = field(default_factory=BuildOptions)
    _projects: dict[str, Project] = field(init=False, default_factory=dict)
    _failed: set[str] = field(init=False, default_factory=set)

    def build_all_projects(self) -> BuildStatus:
        order = self._build_order()
        if self.options.verbose:
            self._report(PROJECTS_IN_THIS_BUILD, "".join(f"\r\n    * {project.name}" for project in order))
        status = BuildStatus.SUCCESS
        for project in order:
            if not self._build_project(project):
                status = BuildStatus.DIAGNOSTICS_PRESENT
        return status

    # -- graph --

    def _build_order(self) -> list[Project]:
        order: list[Project] = []
        visited: set[str] = set()

        def visit(config_path: str) -> None:
            if config_path in visited:
                return
            visited.add(config_path)
            project = self._load_project(config_path)
            if project is None:
                return
            for reference in project.references:
                visit(reference.path)
            order.append(project)

        for root in self.root_names:
            visit(_config_path(self.host.fs.resolve(root)))
        return order

    def _load_project(self, config_path: str) -> Project | None:
        raw = self.host.read_file(config_path)
        if raw is None:
            self._failed.add(config_path)
            self._report(FILE_NOT_FOUND, _display(config_path))
            return None
        try:
            project = _parse_project(config_path, raw)
        except ValueError as exc:
            self._failed.add(config_path)
            self._report(CONFIG_INVALID, _display(config_path), str(exc))
            return None
        self._projects[config_path] = project
        return project

    # -- per project --

    def _build_project(self, project: Project) -> bool:
        for reference in project.references:
            if reference.path in self._failed:
                self._failed.add(project.config_path)
                self._report(SKIPPING_BLOCKED, project.name, _display(reference.path))
                return False

        status = self._up_to_date_status(project)
        if self.options.force:
            status = UpToDateStatus("forced", (project.name,))

        if status.kind == "up_to_date":
            if self.options.verbose:
                self._report(UP_TO_DATE, *status.args)
            return True
        if status.kind == "up_to_date_with_upstream":
            if self.options.dry_run:
                self._report(DRY_RUN_UPDATE, project.name)
                return True
            if self.options.verbose:
                self._report(UP_TO_DATE_WITH_UPSTREAM, project.name)
                self._report(UPDATING_TIMESTAMPS, project.name)
            now = self.host.now()
            for output in project.program_outputs():
                self.host.set_modified_time(output, now)
            return True

        if self.options.verbose:
            self._report(_REASON_TEMPLATES[status.kind], *status.args)
        if self.options.dry_run:
            self._report(DRY_RUN_BUILD, project.name)
            return True
        if self.options.verbose:
            self._report(BUILDING, project.name)
        if not self._emit(project):
            self._failed.add(project.config_path)
            return False
        return True

    def _up_to_date_status(self, project: Project) -> UpToDateStatus:
        newest_input, newest_input_time = project.config_path, -1
        for path in (project.config_path, *project.files):
            mtime = self.host.get_modified_time(path)
            if mtime is None:
                return UpToDateStatus("input_missing", (project.name, _display(path)))
            if mtime > newest_input_time:
                newest_input, newest_input_time = path, mtime

        for output in project.outputs():
            if self.host.get_modified_time(output) is None:
                return UpToDateStatus("output_missing", (project.name, _display(output)))

        # Declarations keep their timestamp when their content is unchanged,
        # so staleness is judged against the program outputs only.
        oldest_output, oldest_output_time = min(
            ((output, self._mtime(output)) for output in project.program_outputs()),
            key=lambda item: item[1],
        )
        if oldest_output_time < newest_input_time:
            return UpToDateStatus(
                "output_older",
                (project.name, _display(oldest_output), _display(newest_input)),
            )

        upstream_newer = False
        for reference in project.references:
            upstream = self._projects[reference.path]
            declarations = upstream.declaration_outputs() or upstream.outputs()
            if max(self._mtime(path) for path in declarations) > oldest_output_time:
                return UpToDateStatus("upstream_changed", (project.name, upstream.name))
            if reference.prepend and upstream.out_file is not None:
                if self._mtime(upstream.bundle_js) > oldest_output_time:
                    return UpToDateStatus("upstream_changed", (project.name, upstream.name))
            if max(self._mtime(path) for path in upstream.outputs()) > oldest_output_time:
                upstream_newer = True

        if upstream_newer:
            return UpToDateStatus("up_to_date_with_upstream", (project.name,))
        return UpToDateStatus(
            "up_to_date",
            (project.name, _display(newest_input), _display(oldest_output)),
        )

    # -- emit --

    def _emit(self, project: Project) -> bool:
        sources: dict[str, str] = {}
        for path in project.files:
            raw = self.host.read_file(path)
            if raw is None:
                self._report(FILE_NOT_FOUND, _display(path))
                return False
            sources[path] = _with_trailing_newline(raw.decode("utf-8"))

        # Referenced declarations are read for type information.
        for reference in project.references:
            for declaration in self._projects[reference.path].declaration_outputs():
                self.host.read_file(declaration)

        if project.out_file is not None:
            return self._emit_bundle(project, sources)
        for path, text in sources.items():
            self._emit_file(project, path, text)
        return True

    def _emit_file(self, project: Project, source: str, text: str) -> None:
        js_path = project.js_output(source)
        js = PROLOGUE + text
        if project.source_map:
            map_path = f"{js_path}.map"
            js += f"//# sourceMappingURL={posixpath.basename(map_path)}\n"
            self.host.write_file(map_path, _source_map(js_path, source, text))
        self.host.write_file(js_path, js)
        if project.declaration:
            self.host.write_file_if_changed(project.dts_output(source), _declarations(text))

    def _emit_bundle(self, project: Project, sources: dict[str, str]) -> bool:
        js = PROLOGUE
        dts = ""
        js_sections: list[BundleSection] = [FlatSection("prologue", 0, len(PROLOGUE), "use strict")]
        dts_sections: list[BundleSection] = []

        for reference in project.references:
            if not reference.prepend:
                continue
            upstream = self._projects[reference.path]
            if upstream.out_file is None:
                self._report(PREPEND_REQUIRES_OUT_FILE, upstream.name)
                return False
            upstream_js = self._read_text(upstream.bundle_js).removeprefix(PROLOGUE)
            js_sections.append(_prepend_section(len(js), upstream_js, upstream.bundle_js))
            js += upstream_js
            if project.declaration and upstream.declaration:
                upstream_dts = self._read_text(upstream.bundle_dts)
                dts_sections.append(_prepend_section(len(dts), upstream_dts, upstream.bundle_dts))
                dts += upstream_dts

        own_js = "".join(sources.values())
        js_sections.append(FlatSection("text", len(js), len(js) + len(own_js)))
        js += own_js
        own_dts = "".join(_declarations(text) for text in sources.values())
        dts_sections.append(FlatSection("text", len(dts), len(dts) + len(own_dts)))
        dts += own_dts

        self.host.write_file(project.bundle_js, js)
        dts_info: BundleFileInfo | None = None
        if project.declaration:
            self.host.write_file_if_changed(project.bundle_dts, dts)
            dts_info = BundleFileInfo(sections=tuple(dts_sections))
        build_info = BuildInfo(
            version=BUILDER_VERSION,
            bundle=BundleInfo(js=BundleFileInfo(sections=tuple(js_sections)), dts=dts_info),
        )
        self.host.write_file(project.build_info, serialize_build_info(build_info))
        return True

    # -- helpers --

    def _read_text(self, path: str) -> str:
        raw = self.host.read_file(path)
        return "" if raw is None else raw.decode("utf-8")

    def _mtime(self, path: str) -> int:
        mtime = self.host.get_modified_time(path)
        return -1 if mtime is None else mtime

    def _report(self, template: str, *args: str) -> None:
        self.host.report_diagnostic(template, *args)


_REASON_TEMPLATES: dict[StatusKind, str] = {
    "input_missing": OUT_OF_DATE_INPUT_MISSING,
    "output_missing": OUT_OF_DATE_OUTPUT_MISSING,
    "output_older": OUT_OF_DATE_OUTPUT_OLDER,
    "upstream_changed": OUT_OF_DATE_UPSTREAM,
    "forced": OUT_OF_DATE_FORCED,
}


def create_builder(host: BuildHost, root_names: Sequence[str], options: BuildOptions) -> InProcessBuilder:
    return InProcessBuilder(host=host, root_names=tuple(root_names), options=options)


def _parse_project(config_path: str, raw: bytes) -> Project:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"not valid JSON ({exc})") from exc
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    directory = posixpath.dirname(config_path)

    files = payload.get("files")
    if not isinstance(files, list) or not files or not all(isinstance(item, str) and item for item in files):
        raise ValueError("`files` must be a non-empty list of file names")
    out_dir = payload.get("outDir", "out")
    if not isinstance(out_dir, str) or not out_dir:
        raise ValueError("`outDir` must be a non-empty string")
    out_file = payload.get("outFile")
    if out_file is not None and (not isinstance(out_file, str) or not out_file):
        raise ValueError("`outFile` must be a non-empty string")

    references: list[ProjectReference] = []
    for item in payload.get("references", []):
        if not isinstance(item, dict) or not isinstance(item.get("path"), str):
            raise ValueError("each reference needs a `path`")
        target = posixpath.normpath(posixpath.join(directory, item["path"]))
        references.append(ProjectReference(path=_config_path(target), prepend=bool(item.get("prepend", False))))

    return Project(
        config_path=config_path,
        files=tuple(posixpath.normpath(posixpath.join(directory, name)) for name in files),
        out_dir=posixpath.normpath(posixpath.join(directory, out_dir)),
        references=tuple(references),
        declaration=_flag(payload, "declaration", default=True),
        source_map=_flag(payload, "sourceMap", default=False),
        out_file=out_file,
    )


def _flag(payload: dict[str, Any], key: str, *, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"`{key}` must be a boolean")
    return value


def _config_path(path: str) -> str:
    return path if path.endswith(f"/{CONFIG_NAME}") else posixpath.join(path, CONFIG_NAME)


def _display(path: str) -> str:
    return path.lstrip("/")


def _stem(path: str) -> str:
    name = posixpath.basename(path)
    return name.rsplit(".", 1)[0] if "." in name else name


def _with_trailing_newline(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"


def _declarations(text: str) -> str:
    """Keep exported declarations only; comments and bodies never reach the d.ts."""
    lines: list[str] = []
    for line in text.splitlines():
        code = line.split("//", 1)[0].strip()
        if not code.startswith("export "):
            continue
        body = code.removeprefix("export ").strip()
        if "{" in body:
            body = body.split("{", 1)[0].rstrip()
        if not body.endswith(";"):
            body += ";"
        lines.append(f"export declare {body}")
    if not lines:
        return "export {};\n"
    return "\n".join(lines) + "\n"


def _source_map(js_path: str, source: str, text: str) -> str:
    # Line 0 is the prologue; source line N maps to generated line N + 1.
    line_count = len(text.splitlines())
    groups = [""] + ["AAAA" if index == 0 else "AACA" for index in range(line_count)]
    payload = {
        "version": 3,
        "file": posixpath.basename(js_path),
        "sourceRoot": "",
        "sources": [posixpath.relpath(source, posixpath.dirname(js_path))],
        "names": [],
        "mappings": ";".join(groups),
    }
    return json.dumps(payload, sort_keys=True)


def _prepend_section(offset: int, text: str, data: str) -> PrependSection:
    return PrependSection(
        pos=offset,
        end=offset + len(text),
        data=_display(data),
        texts=(FlatSection("text", offset, offset + len(text)),),
    )
