"""Runner configuration and validation helpers."""

from __future__ import annotations

from dataclasses import dataclass, field

from rebuildcheck.errors import InvalidPathError


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """Options handed to the build orchestrator for every invocation."""

    dry_run: bool = False
    force: bool = False
    verbose: bool = True


@dataclass(frozen=True, slots=True)
class RunnerOptions:
    source_root: str = "/src/"
    baseline_tool: str = "tsbuild"
    build_options: BuildOptions = field(default_factory=BuildOptions)
    verify_clean_build: bool = True
    baseline_only: bool = False


def ensure_source_root(options: RunnerOptions) -> str:
    """Return the source root with exactly one trailing slash."""
    root = options.source_root
    if not root.startswith("/"):
        raise InvalidPathError(
            "Source root must be an absolute path.",
            hint="Use a root such as '/src/'.",
            context={"source_root": root},
        )
    return root.rstrip("/") + "/"


def ensure_baseline_tool(options: RunnerOptions) -> str:
    tool = options.baseline_tool
    if not tool or "/" in tool:
        raise InvalidPathError(
            "Baseline tool name must be a single non-empty path segment.",
            context={"baseline_tool": tool},
        )
    return tool
