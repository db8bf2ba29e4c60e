"""On-disk baseline files for review."""

from __future__ import annotations

import shutil
from pathlib import Path

from rebuildcheck.models import Mismatch
from rebuildcheck.vfs import path as vpath
from rebuildcheck.vfs.patch import NO_CHANGES


def baseline_name(tool: str, project: str, phase: str, scenario: str, *, ext: str = "js") -> str:
    """``<tool>/<project>/<phase-slug>/<scenario-slug>.<ext>``"""
    return f"{tool}/{project}/{vpath.slugify(phase)}/{vpath.slugify(scenario)}.{ext}"


class BaselineStore:
    """Writes local baselines and compares them with accepted references.

    Without a reference root the store only writes, which is what a first run
    that produces reviewable output needs.
    """

    def __init__(self, local_root: str | Path, reference_root: str | Path | None = None) -> None:
        self.local_root = Path(local_root)
        self.reference_root = Path(reference_root) if reference_root is not None else None

    def record(self, name: str, text: str | None) -> Mismatch | None:
        content = NO_CHANGES if text is None else text
        local_path = self.local_root / name
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_text(content, encoding="utf-8")
        if self.reference_root is None:
            return None

        reference_path = self.reference_root / name
        if not reference_path.exists():
            return Mismatch(
                check="baseline",
                subject=name,
                reason="unexpected_actual",
                expected=None,
                actual=str(local_path),
                hint="New baseline written; review it and accept it as the reference.",
            )
        if reference_path.read_text(encoding="utf-8") != content:
            return Mismatch(
                check="baseline",
                subject=name,
                reason="value_mismatch",
                expected=str(reference_path),
                actual=str(local_path),
                hint="Compare the local baseline with the reference.",
            )
        return None

    def accept(self, name: str) -> Path:
        """Promote a local baseline to the reference set."""
        if self.reference_root is None:
            raise ValueError("BaselineStore has no reference root to accept into.")
        source = self.local_root / name
        target = self.reference_root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return target
