"""Build-artifact parsing and baseline rendering."""

from .bundle import (
    BuildInfo,
    BundleFileInfo,
    BundleInfo,
    FlatSection,
    PrependSection,
    parse_build_info,
    serialize_build_info,
)
from .render import (
    BuildInfoSectionFiles,
    render_bundle_sections,
    write_bundle_section_baselines,
    write_source_map_baselines,
)
from .sourcemap import SourceMap, parse_source_map, render_source_map_record

__all__ = [
    "BuildInfo",
    "BuildInfoSectionFiles",
    "BundleFileInfo",
    "BundleInfo",
    "FlatSection",
    "PrependSection",
    "SourceMap",
    "parse_build_info",
    "parse_source_map",
    "render_bundle_sections",
    "render_source_map_record",
    "serialize_build_info",
    "write_bundle_section_baselines",
    "write_source_map_baselines",
]
