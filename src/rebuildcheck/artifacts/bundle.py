"""Typed model and parser for build-info bundle section records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from rebuildcheck.errors import MalformedArtifactError

PREPEND = "prepend"
TEXT = "text"


@dataclass(frozen=True, slots=True)
class FlatSection:
    kind: str
    pos: int
    end: int
    data: str | None = None


@dataclass(frozen=True, slots=True)
class PrependSection:
    pos: int
    end: int
    texts: tuple[FlatSection, ...]
    data: str | None = None
    kind: str = PREPEND


BundleSection = FlatSection | PrependSection


@dataclass(frozen=True, slots=True)
class BundleFileInfo:
    sections: tuple[BundleSection, ...] = ()


@dataclass(frozen=True, slots=True)
class BundleInfo:
    js: BundleFileInfo | None = None
    dts: BundleFileInfo | None = None


@dataclass(frozen=True, slots=True)
class BuildInfo:
    bundle: BundleInfo | None = None
    version: str | None = None


def serialize_build_info(build_info: BuildInfo) -> str:
    payload: dict[str, Any] = {}
    if build_info.version is not None:
        payload["version"] = build_info.version
    if build_info.bundle is not None:
        bundle: dict[str, Any] = {}
        if build_info.bundle.js is not None:
            bundle["js"] = _file_info_payload(build_info.bundle.js)
        if build_info.bundle.dts is not None:
            bundle["dts"] = _file_info_payload(build_info.bundle.dts)
        payload["bundle"] = bundle
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_build_info(raw: str) -> BuildInfo:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedArtifactError("Invalid build info JSON.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise MalformedArtifactError("Invalid build info payload type.")

    version = payload.get("version")
    if version is not None and not isinstance(version, str):
        raise MalformedArtifactError("Invalid build info `version` value.")
    bundle_raw = payload.get("bundle")
    if bundle_raw is None:
        return BuildInfo(bundle=None, version=version)
    if not isinstance(bundle_raw, dict):
        raise MalformedArtifactError("Invalid build info `bundle` value.")
    return BuildInfo(
        bundle=BundleInfo(
            js=_parse_file_info(bundle_raw.get("js"), "js"),
            dts=_parse_file_info(bundle_raw.get("dts"), "dts"),
        ),
        version=version,
    )


def _parse_file_info(raw: Any, key: str) -> BundleFileInfo | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedArtifactError(f"Invalid bundle `{key}` value.")
    sections_raw = raw.get("sections", [])
    if not isinstance(sections_raw, list):
        raise MalformedArtifactError(f"Invalid bundle `{key}.sections` value.")
    return BundleFileInfo(sections=tuple(_parse_section(item, key) for item in sections_raw))


def _parse_section(item: Any, key: str) -> BundleSection:
    if not isinstance(item, dict):
        raise MalformedArtifactError(f"Invalid section entry in bundle `{key}`.")
    kind = _required_str(item, "kind")
    pos = _required_offset(item, "pos")
    end = _required_offset(item, "end")
    if end < pos:
        raise MalformedArtifactError(
            "Section ends before it starts.",
            context={"bundle": key, "kind": kind, "range": f"{pos}-{end}"},
        )
    data = _optional_str(item, "data")
    if kind != PREPEND:
        return FlatSection(kind=kind, pos=pos, end=end, data=data)

    texts_raw = item.get("texts")
    if not isinstance(texts_raw, list) or not texts_raw:
        raise MalformedArtifactError(
            "Prepend section requires a non-empty `texts` list.",
            context={"bundle": key, "range": f"{pos}-{end}"},
        )
    texts = tuple(_parse_text(text, key) for text in texts_raw)
    if texts[0].pos != pos or texts[-1].end != end:
        raise MalformedArtifactError(
            "Prepend section range must span its first and last text.",
            context={
                "bundle": key,
                "range": f"{pos}-{end}",
                "texts": f"{texts[0].pos}-{texts[-1].end}",
            },
        )
    return PrependSection(pos=pos, end=end, texts=texts, data=data)


def _parse_text(item: Any, key: str) -> FlatSection:
    section = _parse_section(item, key)
    if isinstance(section, PrependSection):
        raise MalformedArtifactError(
            "Prepend sections cannot nest.",
            context={"bundle": key},
        )
    return section


def _file_info_payload(info: BundleFileInfo) -> dict[str, Any]:
    return {"sections": [_section_payload(section) for section in info.sections]}


def _section_payload(section: BundleSection) -> dict[str, Any]:
    payload: dict[str, Any] = {"kind": section.kind, "pos": section.pos, "end": section.end}
    if section.data is not None:
        payload["data"] = section.data
    if isinstance(section, PrependSection):
        payload["texts"] = [_section_payload(text) for text in section.texts]
    return payload


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedArtifactError(f"Invalid section `{key}` value.")
    return value


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedArtifactError(f"Invalid section `{key}` value.")
    return value


def _required_offset(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise MalformedArtifactError(f"Invalid section `{key}` value.")
    return value
