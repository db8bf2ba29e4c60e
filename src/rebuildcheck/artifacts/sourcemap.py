"""Source map parsing and human-readable mapping records."""

from __future__ import annotations

import json
import posixpath
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rebuildcheck.errors import MalformedArtifactError
from rebuildcheck.vfs import FileSystem

BASE64_DIGITS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DIGIT_VALUES = {char: index for index, char in enumerate(BASE64_DIGITS)}
_VLQ_CONTINUATION = 0b100000
_VLQ_MASK = 0b011111

HEADER_RULE = "=" * 67
SECTION_RULE = "-" * 67

SourceMapRecorder = Callable[[FileSystem, str], str]


@dataclass(frozen=True, slots=True)
class MappingSegment:
    """One decoded mapping; all positions are zero-based."""

    generated_line: int
    generated_column: int
    source_index: int | None = None
    source_line: int | None = None
    source_column: int | None = None
    name_index: int | None = None


@dataclass(frozen=True, slots=True)
class SourceMap:
    version: int
    file: str
    sources: tuple[str, ...]
    names: tuple[str, ...]
    mappings: str
    source_root: str = ""

    def segments(self) -> list[MappingSegment]:
        return decode_mappings(self.mappings, source_count=len(self.sources), name_count=len(self.names))


def parse_source_map(raw: str) -> SourceMap:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedArtifactError("Invalid source map JSON.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise MalformedArtifactError("Invalid source map payload type.")
    version = payload.get("version")
    if version != 3:
        raise MalformedArtifactError(
            "Unsupported source map version.",
            context={"version": str(version)},
        )
    return SourceMap(
        version=version,
        file=_string(payload, "file", default=""),
        sources=_string_list(payload, "sources"),
        names=_string_list(payload, "names"),
        mappings=_string(payload, "mappings", default=""),
        source_root=_string(payload, "sourceRoot", default=""),
    )


def decode_vlq(segment: str) -> list[int]:
    values: list[int] = []
    shift = 0
    accumulated = 0
    for char in segment:
        digit = _DIGIT_VALUES.get(char)
        if digit is None:
            raise MalformedArtifactError(
                "Invalid base64 VLQ digit in mappings.",
                context={"segment": segment, "digit": char},
            )
        accumulated += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += 5
            continue
        negative = accumulated & 1
        accumulated >>= 1
        values.append(-accumulated if negative else accumulated)
        shift = 0
        accumulated = 0
    if shift:
        raise MalformedArtifactError("Truncated base64 VLQ value in mappings.", context={"segment": segment})
    return values


def encode_vlq(values: list[int]) -> str:
    out: list[str] = []
    for value in values:
        remaining = (-value << 1) | 1 if value < 0 else value << 1
        while True:
            digit = remaining & _VLQ_MASK
            remaining >>= 5
            if remaining:
                digit |= _VLQ_CONTINUATION
            out.append(BASE64_DIGITS[digit])
            if not remaining:
                break
    return "".join(out)


def decode_mappings(mappings: str, *, source_count: int, name_count: int) -> list[MappingSegment]:
    segments: list[MappingSegment] = []
    source_index = source_line = source_column = name_index = 0
    for line_number, line in enumerate(mappings.split(";")):
        generated_column = 0
        for raw in line.split(","):
            if not raw:
                continue
            fields = decode_vlq(raw)
            if len(fields) not in (1, 4, 5):
                raise MalformedArtifactError(
                    "Mapping segment must have 1, 4 or 5 fields.",
                    context={"segment": raw, "line": str(line_number)},
                )
            generated_column += fields[0]
            if len(fields) == 1:
                segments.append(MappingSegment(line_number, generated_column))
                continue
            source_index += fields[1]
            source_line += fields[2]
            source_column += fields[3]
            if not 0 <= source_index < source_count:
                raise MalformedArtifactError(
                    "Mapping refers to an unknown source.",
                    context={"segment": raw, "source_index": str(source_index)},
                )
            segment_name: int | None = None
            if len(fields) == 5:
                name_index += fields[4]
                if not 0 <= name_index < name_count:
                    raise MalformedArtifactError(
                        "Mapping refers to an unknown name.",
                        context={"segment": raw, "name_index": str(name_index)},
                    )
                segment_name = name_index
            segments.append(
                MappingSegment(
                    generated_line=line_number,
                    generated_column=generated_column,
                    source_index=source_index,
                    source_line=source_line,
                    source_column=source_column,
                    name_index=segment_name,
                )
            )
    return segments


def render_source_map_record(fs: FileSystem, map_file: str) -> str:
    """Render every mapping of *map_file* against the generated and source text."""
    source_map = parse_source_map(fs.read_text(map_file))
    map_dir = posixpath.dirname(fs.resolve(map_file))
    generated_path = posixpath.join(map_dir, source_map.file) if source_map.file else None
    generated_lines = _lines(fs, generated_path)
    source_paths = [
        posixpath.normpath(posixpath.join(map_dir, source_map.source_root, source))
        for source in source_map.sources
    ]
    source_lines = {index: _lines(fs, path) for index, path in enumerate(source_paths)}

    lines = [
        HEADER_RULE,
        f"JsFile: {source_map.file}",
        f"mapUrl: {posixpath.basename(map_file)}",
        f"sourceRoot: {source_map.source_root}",
        f"sources: {','.join(source_map.sources)}",
        HEADER_RULE,
    ]
    current_line: int | None = None
    for segment in source_map.segments():
        if segment.generated_line != current_line:
            current_line = segment.generated_line
            lines.append(SECTION_RULE)
            lines.append(f">>>{_line_at(generated_lines, current_line)}")
        emitted = f"Emitted({segment.generated_line + 1}, {segment.generated_column + 1})"
        if segment.source_index is None or segment.source_line is None or segment.source_column is None:
            lines.append(f"  >{emitted}")
            continue
        source_text = _line_at(source_lines[segment.source_index], segment.source_line)
        entry = (
            f"  >{emitted} Source({segment.source_line + 1}, {segment.source_column + 1})"
            f" + SourceIndex({segment.source_index})"
        )
        if segment.name_index is not None:
            entry += f" name ({source_map.names[segment.name_index]})"
        lines.append(entry)
        lines.append(f"  <{source_text[segment.source_column:]}")
    lines.append(HEADER_RULE)
    return "\n".join(lines) + "\n"


def _lines(fs: FileSystem, path: str | None) -> list[str]:
    if path is None or not fs.is_file(path):
        return []
    return fs.read_text(path).splitlines()


def _line_at(lines: list[str], index: int) -> str:
    return lines[index] if 0 <= index < len(lines) else ""


def _string(payload: dict[str, Any], key: str, *, default: str) -> str:
    value = payload.get(key, default)
    if not isinstance(value, str):
        raise MalformedArtifactError(f"Invalid source map `{key}` value.")
    return value


def _string_list(payload: dict[str, Any], key: str) -> tuple[str, ...]:
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedArtifactError(f"Invalid source map `{key}` value.")
    return tuple(value)
