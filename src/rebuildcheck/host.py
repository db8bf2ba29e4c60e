"""Build host handed to the orchestrator: filesystem access plus diagnostics."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from rebuildcheck.vfs import FileSystem


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A reported message template with its substitution arguments."""

    template: str
    args: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return self.template.format(*self.args)

    def as_expected(self) -> tuple[str, ...]:
        return (self.template, *self.args)


@dataclass(slots=True)
class DiagnosticSink:
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def report(self, template: str, *args: str) -> None:
        self.diagnostics.append(Diagnostic(template=template, args=tuple(args)))

    def clear(self) -> None:
        self.diagnostics.clear()

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    def messages(self) -> list[str]:
        return [diagnostic.message for diagnostic in self.diagnostics]


class BuildHost:
    """Filesystem-backed host used by a build orchestrator.

    ``read_file`` is the single entry point through which the orchestrator
    reads file content; :func:`rebuildcheck.instrument.record_reads` wraps it
    for the duration of one build.
    """

    def __init__(self, fs: FileSystem) -> None:
        self.fs = fs
        self.sink = DiagnosticSink()

    def read_file(self, path: str) -> bytes | None:
        if not self.fs.is_file(path):
            return None
        return self.fs.read(path)

    def write_file(self, path: str, data: bytes | str) -> None:
        self.fs.write(path, data, parents=True)

    def write_file_if_changed(self, path: str, data: bytes | str) -> bool:
        """Write only when the content differs, keeping the old timestamp otherwise.

        The comparison happens inside the host and is not a build read.
        """
        content = data.encode("utf-8") if isinstance(data, str) else data
        if self.fs.is_file(path) and self.fs.read(path) == content:
            return False
        self.write_file(path, content)
        return True

    def file_exists(self, path: str) -> bool:
        return self.fs.is_file(path)

    def directory_exists(self, path: str) -> bool:
        return self.fs.is_dir(path)

    def get_modified_time(self, path: str) -> int | None:
        if not self.fs.exists(path):
            return None
        return self.fs.stat(path).mtime

    def set_modified_time(self, path: str, mtime: int) -> None:
        self.fs.touch(path, mtime)

    def delete_file(self, path: str) -> None:
        if self.fs.exists(path):
            self.fs.remove(path)

    def now(self) -> int:
        return self.fs.clock.now()

    def report_diagnostic(self, template: str, *args: str) -> None:
        self.sink.report(template, *args)

    def clear_diagnostics(self) -> None:
        self.sink.clear()

    @property
    def diagnostics(self) -> Sequence[Diagnostic]:
        return tuple(self.sink.diagnostics)
