"""Patch model produced by :meth:`FileSystem.diff` and its text rendering."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from rebuildcheck.errors import MalformedArtifactError

NO_CHANGES = "No changes\n"


class ChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True, slots=True)
class PatchEntry:
    path: str
    kind: ChangeKind
    old: bytes | None = None
    new: bytes | None = None
    is_directory: bool = False


@dataclass(frozen=True, slots=True)
class Patch:
    entries: tuple[PatchEntry, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PatchEntry]:
        return iter(self.entries)

    def paths(self, kind: ChangeKind | None = None) -> list[str]:
        return [entry.path for entry in self.entries if kind is None or entry.kind is kind]

    def by_path(self) -> dict[str, PatchEntry]:
        return {entry.path: entry for entry in self.entries}


def format_patch(patch: Patch) -> str:
    """Render *patch* in the ``//// [path]`` layout used by baseline files."""
    if not patch:
        return NO_CHANGES
    lines: list[str] = []
    for entry in patch:
        if entry.is_directory:
            marker = "(directory)" if entry.kind is ChangeKind.ADDED else "(directory deleted)"
            lines.append(f"//// [{entry.path}] {marker}")
            continue
        if entry.kind is ChangeKind.REMOVED:
            lines.append(f"//// [{entry.path}] (deleted)")
            continue
        if entry.new is None:
            raise MalformedArtifactError(
                "Patch entry has no new content.",
                context={"path": entry.path, "kind": entry.kind.value},
            )
        lines.append(f"//// [{entry.path}]")
        lines.append(entry.new.decode("utf-8", errors="replace"))
    return "\n".join(lines) + "\n"
