"""Protocol for the incremental build orchestrator under verification."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Protocol

from rebuildcheck.config import BuildOptions
from rebuildcheck.host import BuildHost


class BuildStatus(StrEnum):
    SUCCESS = "success"
    DIAGNOSTICS_PRESENT = "diagnostics_present"


class Builder(Protocol):
    def build_all_projects(self) -> BuildStatus:
        """Bring every root project and its references up to date."""


class BuilderFactory(Protocol):
    def __call__(
        self,
        host: BuildHost,
        root_names: Sequence[str],
        options: BuildOptions,
    ) -> Builder:
        """Create a builder bound to *host* for the given root projects."""
