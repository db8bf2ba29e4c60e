"""Read-call instrumentation for a single build invocation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from rebuildcheck.host import BuildHost
from rebuildcheck.vfs import path as vpath


@dataclass(slots=True)
class ReadTally:
    """Per-path read counts under the source root for one build."""

    source_root: str
    counts: dict[str, int] = field(default_factory=dict)

    def record(self, path: str) -> None:
        if not vpath.is_under(path, self.source_root):
            return
        self.counts[path] = self.counts.get(path, 0) + 1

    def get(self, path: str) -> int:
        return self.counts.get(path, 0)

    def as_dict(self) -> dict[str, int]:
        return dict(sorted(self.counts.items()))

    def __contains__(self, path: object) -> bool:
        return path in self.counts

    def __len__(self) -> int:
        return len(self.counts)


@contextmanager
def record_reads(host: BuildHost, source_root: str) -> Iterator[ReadTally]:
    """Tally every ``host.read_file`` call under *source_root* until exit.

    Library reads outside the root happen on every build and are skipped.
    """
    tally = ReadTally(source_root=source_root)
    original = host.read_file
    shadowed = vars(host).get("read_file")

    def read_file(path: str) -> bytes | None:
        tally.record(host.fs.resolve(path))
        return original(path)

    host.read_file = read_file  # type: ignore[method-assign]
    try:
        yield tally
    finally:
        if shadowed is None:
            del host.read_file
        else:
            host.read_file = shadowed  # type: ignore[method-assign]


def read_files_map(files_read_once: list[str] | tuple[str, ...], *files_read_twice: str) -> Mapping[str, int]:
    """Build an expected tally where most files are read once."""
    expected = dict.fromkeys(files_read_once, 1)
    for path in files_read_twice:
        expected[path] = 2
    return expected
