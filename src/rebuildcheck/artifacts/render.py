"""Deterministic text dumps of build artifacts, written next to the artifact."""

from __future__ import annotations

import re
from collections.abc import Sequence

from rebuildcheck.artifacts.bundle import (
    BundleFileInfo,
    BundleSection,
    PrependSection,
    parse_build_info,
)
from rebuildcheck.artifacts.sourcemap import SourceMapRecorder, render_source_map_record
from rebuildcheck.vfs import FileSystem

FILE_RULE = "=" * 70
SECTION_RULE = "-" * 70
PREPEND_TEXT_RULE = ">>" + "-" * 68
BASELINE_SUFFIX = ".baseline.txt"

_LINE_BREAK = re.compile(r"\r?\n")

# (build info file, bundled js output, bundled declaration output)
BuildInfoSectionFiles = tuple[str, str | None, str | None]


def render_bundle_sections(
    fs: FileSystem,
    build_info_file: str,
    js_file: str | None,
    dts_file: str | None,
) -> str | None:
    """Render the bundle sections of *build_info_file*, or ``None`` if it has none."""
    build_info = parse_build_info(fs.read_text(build_info_file))
    bundle = build_info.bundle
    if bundle is None or not (_has_sections(bundle.js) or _has_sections(bundle.dts)):
        return None
    lines: list[str] = []
    _render_file(fs, lines, bundle.js, js_file)
    _render_file(fs, lines, bundle.dts, dts_file)
    return "\n".join(lines) + "\n"


def write_bundle_section_baselines(fs: FileSystem, files: Sequence[BuildInfoSectionFiles]) -> list[str]:
    written: list[str] = []
    for build_info_file, js_file, dts_file in files:
        if not fs.exists(build_info_file):
            continue
        text = render_bundle_sections(fs, build_info_file, js_file, dts_file)
        if text is None:
            continue
        target = f"{build_info_file}{BASELINE_SUFFIX}"
        fs.write(target, text)
        written.append(target)
    return written


def write_source_map_baselines(
    fs: FileSystem,
    map_files: Sequence[str],
    recorder: SourceMapRecorder = render_source_map_record,
) -> list[str]:
    written: list[str] = []
    for map_file in map_files:
        if not fs.exists(map_file):
            continue
        target = f"{map_file}{BASELINE_SUFFIX}"
        fs.write(target, recorder(fs, map_file))
        written.append(target)
    return written


def _has_sections(info: BundleFileInfo | None) -> bool:
    return info is not None and bool(info.sections)


def _render_file(fs: FileSystem, lines: list[str], info: BundleFileInfo | None, out_file: str | None) -> None:
    if not _has_sections(info) and not out_file:
        return
    content = fs.read_text(out_file) if out_file and fs.is_file(out_file) else ""
    lines.append(FILE_RULE)
    lines.append(f"File:: {out_file}")
    for section in info.sections if info is not None else ():
        lines.append(SECTION_RULE)
        lines.append(_section_header(section))
        if not isinstance(section, PrependSection):
            lines.extend(_section_text(content, section.pos, section.end))
            continue
        for text in section.texts:
            lines.append(PREPEND_TEXT_RULE)
            lines.append(_section_header(text))
            lines.extend(_section_text(content, text.pos, text.end))
    lines.append(FILE_RULE)


def _section_header(section: BundleSection) -> str:
    header = f"{section.kind}: ({section.pos}-{section.end})"
    if section.data:
        header += f":: {section.data}"
    if isinstance(section, PrependSection):
        header += f" texts:: {len(section.texts)}"
    return header


def _section_text(content: str, pos: int, end: int) -> list[str]:
    return _LINE_BREAK.split(content[pos:end])
