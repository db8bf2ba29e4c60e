"""In-memory filesystem with copy-on-write shadows and structural diffing."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from rebuildcheck.clock import LogicalClock
from rebuildcheck.errors import (
    InvalidPathError,
    NotAFileError,
    NotFoundError,
    ReadOnlyViolationError,
)
from rebuildcheck.vfs import path as vpath
from rebuildcheck.vfs.nodes import DirectoryNode, FileNode, Node
from rebuildcheck.vfs.patch import ChangeKind, Patch, PatchEntry


@dataclass(frozen=True, slots=True)
class FileStat:
    path: str
    is_file: bool
    is_directory: bool
    mtime: int
    size: int


class FileSystem:
    """A mutable view over an immutable node tree.

    ``shadow()`` hands out a new view over the same root; mutations on either
    view replace that view's root only, so neither observes the other.
    """

    def __init__(
        self,
        *,
        ignore_case: bool = False,
        clock: LogicalClock | None = None,
        cwd: str = vpath.ROOT,
        _root: DirectoryNode | None = None,
    ) -> None:
        self.ignore_case = ignore_case
        self.clock = clock if clock is not None else LogicalClock()
        self.cwd = vpath.normalize(cwd)
        self._root = _root if _root is not None else DirectoryNode(name="", mtime=self.clock.now())
        self._readonly = False

    def __repr__(self) -> str:
        state = "readonly" if self._readonly else "mutable"
        return f"FileSystem(ignore_case={self.ignore_case}, {state})"

    # -- snapshot lifecycle --

    @property
    def is_readonly(self) -> bool:
        return self._readonly

    def make_readonly(self) -> FileSystem:
        self._readonly = True
        return self

    def shadow(self, *, ignore_case: bool | None = None) -> FileSystem:
        """Return an independent, mutable view sharing every current node."""
        if ignore_case is not None and ignore_case != self.ignore_case:
            raise InvalidPathError(
                "A shadow cannot change case sensitivity.",
                hint="Case sensitivity is fixed when the filesystem is created.",
            )
        return FileSystem(
            ignore_case=self.ignore_case,
            clock=self.clock,
            cwd=self.cwd,
            _root=self._root,
        )

    # -- queries --

    def resolve(self, path: str) -> str:
        return vpath.normalize(path, cwd=self.cwd)

    def exists(self, path: str) -> bool:
        return self._lookup(self.resolve(path)) is not None

    def is_file(self, path: str) -> bool:
        return isinstance(self._lookup(self.resolve(path)), FileNode)

    def is_dir(self, path: str) -> bool:
        return isinstance(self._lookup(self.resolve(path)), DirectoryNode)

    def stat(self, path: str) -> FileStat:
        resolved = self.resolve(path)
        node = self._require(resolved)
        if isinstance(node, FileNode):
            return FileStat(path=resolved, is_file=True, is_directory=False, mtime=node.mtime, size=node.size)
        return FileStat(path=resolved, is_file=False, is_directory=True, mtime=node.mtime, size=0)

    def read(self, path: str) -> bytes:
        return self._require_file(self.resolve(path)).content

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        return self.read(path).decode(encoding)

    def list_dir(self, path: str = vpath.ROOT) -> list[str]:
        resolved = self.resolve(path)
        node = self._require(resolved)
        if not isinstance(node, DirectoryNode):
            raise InvalidPathError(
                "Path is a file, not a directory.",
                hint="Use read() for files.",
                context={"operation": "list_dir", "path": resolved},
            )
        return [child.name for child in node.sorted_children()]

    def iter_files(self, path: str = vpath.ROOT) -> Iterator[tuple[str, FileNode]]:
        """Yield ``(path, node)`` for every file below *path*, depth first."""
        resolved = self.resolve(path)
        node = self._lookup(resolved)
        if node is None:
            return
        yield from _walk_files(resolved, node)

    # -- mutations --

    def write(self, path: str, data: bytes | str, *, parents: bool = False) -> None:
        self._ensure_writable("write", path)
        resolved = self.resolve(path)
        parts = vpath.split(resolved)
        if not parts:
            raise NotAFileError("Cannot write to the root directory.", context={"path": resolved})
        content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        existing = self._lookup(resolved)
        if isinstance(existing, DirectoryNode):
            raise NotAFileError(
                "Cannot write file content to a directory.",
                context={"operation": "write", "path": resolved},
            )
        if parents:
            self._make_dirs(parts[:-1])
        name = existing.name if existing is not None else parts[-1]
        node = FileNode(name=name, content=content, mtime=self.clock.now())
        self._root = self._replace(self._root, parts, node, operation="write", full_path=resolved)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        self._ensure_writable("mkdir", path)
        resolved = self.resolve(path)
        parts = vpath.split(resolved)
        if parents:
            self._make_dirs(parts)
            return
        existing = self._lookup(resolved)
        if isinstance(existing, DirectoryNode):
            return
        if existing is not None:
            raise NotAFileError(
                "A file already exists at the directory path.",
                context={"operation": "mkdir", "path": resolved},
            )
        node = DirectoryNode(name=parts[-1], mtime=self.clock.now())
        self._root = self._replace(self._root, parts, node, operation="mkdir", full_path=resolved)

    def touch(self, path: str, timestamp: int | None = None) -> None:
        """Set a file's modification time without touching its content."""
        self._ensure_writable("touch", path)
        resolved = self.resolve(path)
        node = self._require_file(resolved)
        mtime = self.clock.now() if timestamp is None else timestamp
        updated = FileNode(name=node.name, content=node.content, mtime=mtime)
        self._root = self._replace(
            self._root, vpath.split(resolved), updated, operation="touch", full_path=resolved
        )

    def remove(self, path: str) -> None:
        """Delete a file, or a directory together with everything below it."""
        self._ensure_writable("remove", path)
        resolved = self.resolve(path)
        parts = vpath.split(resolved)
        if not parts:
            raise InvalidPathError("Cannot remove the root directory.")
        self._require(resolved)
        self._root = self._replace(self._root, parts, None, operation="remove", full_path=resolved)

    # -- structural operations --

    def diff(self, other: FileSystem) -> Patch:
        """Describe how this filesystem differs from *other*.

        Paths only here are ``added``, paths only in *other* are ``removed``
        and files present in both with different bytes are ``modified``.
        """
        entries: list[PatchEntry] = []
        _diff_dirs(vpath.ROOT, self._root, other._root, entries)
        entries.sort(key=_entry_sort_key)
        return Patch(entries=tuple(entries))

    # -- internals --

    def _key(self, name: str) -> str:
        return name.casefold() if self.ignore_case else name

    def _lookup(self, resolved: str) -> Node | None:
        node: Node = self._root
        for part in vpath.split(resolved):
            if not isinstance(node, DirectoryNode):
                return None
            child = node.child(self._key(part))
            if child is None:
                return None
            node = child
        return node

    def _require(self, resolved: str) -> Node:
        node = self._lookup(resolved)
        if node is None:
            raise NotFoundError("Path does not exist.", context={"path": resolved})
        return node

    def _require_file(self, resolved: str) -> FileNode:
        node = self._lookup(resolved)
        if node is None:
            raise NotFoundError("File does not exist.", context={"path": resolved})
        if not isinstance(node, FileNode):
            raise NotAFileError("Path is a directory, not a file.", context={"path": resolved})
        return node

    def _ensure_writable(self, operation: str, path: str) -> None:
        if self._readonly:
            raise ReadOnlyViolationError(
                "Filesystem is read-only.",
                hint="Mutate a shadow() of the filesystem instead.",
                context={"operation": operation, "path": path},
            )

    def _make_dirs(self, parts: tuple[str, ...]) -> None:
        for depth in range(1, len(parts) + 1):
            prefix = parts[:depth]
            existing = self._lookup(vpath.join(*prefix))
            if isinstance(existing, DirectoryNode):
                continue
            if existing is not None:
                raise NotAFileError(
                    "A file is in the way of a directory.",
                    context={"operation": "mkdir", "path": vpath.join(*prefix)},
                )
            node = DirectoryNode(name=prefix[-1], mtime=self.clock.now())
            self._root = self._replace(
                self._root, prefix, node, operation="mkdir", full_path=vpath.join(*prefix)
            )

    def _replace(
        self,
        directory: DirectoryNode,
        parts: tuple[str, ...],
        node: Node | None,
        *,
        operation: str,
        full_path: str,
    ) -> DirectoryNode:
        """Return a copy of *directory* with the entry at *parts* set to *node*.

        ``None`` deletes the entry. Only directories along *parts* are copied.
        """
        head, rest = parts[0], parts[1:]
        key = self._key(head)
        now = self.clock.now()
        if not rest:
            if node is None:
                return directory.without_child(key, mtime=now)
            # Directory mtimes move only when entries are added or removed.
            mtime = directory.mtime if key in directory.children else now
            return directory.with_child(key, node, mtime=mtime)
        child = directory.child(key)
        if not isinstance(child, DirectoryNode):
            raise NotFoundError(
                "Parent directory does not exist.",
                hint="Create intermediate directories explicitly or pass parents=True.",
                context={"operation": operation, "path": full_path},
            )
        updated = self._replace(child, rest, node, operation=operation, full_path=full_path)
        return directory.with_child(key, updated, mtime=directory.mtime)


def _walk_files(path: str, node: Node) -> Iterator[tuple[str, FileNode]]:
    if isinstance(node, FileNode):
        yield path, node
        return
    for child in node.sorted_children():
        yield from _walk_files(_child_path(path, child.name), child)


def _child_path(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


def _diff_dirs(path: str, changed: DirectoryNode, base: DirectoryNode, out: list[PatchEntry]) -> None:
    if changed is base:
        return
    for key in changed.children.keys() | base.children.keys():
        _diff_nodes(path, changed.children.get(key), base.children.get(key), out)


def _diff_nodes(parent: str, changed: Node | None, base: Node | None, out: list[PatchEntry]) -> None:
    if changed is base:
        return
    if changed is None or base is None:
        if base is not None:
            _report_subtree(_child_path(parent, base.name), base, ChangeKind.REMOVED, out)
        if changed is not None:
            _report_subtree(_child_path(parent, changed.name), changed, ChangeKind.ADDED, out)
        return
    path = _child_path(parent, changed.name)
    if isinstance(changed, FileNode) and isinstance(base, FileNode):
        if changed.content != base.content:
            out.append(
                PatchEntry(path=path, kind=ChangeKind.MODIFIED, old=base.content, new=changed.content)
            )
        return
    if isinstance(changed, DirectoryNode) and isinstance(base, DirectoryNode):
        _diff_dirs(path, changed, base, out)
        return
    # A file replaced by a directory, or the other way around.
    _report_subtree(_child_path(parent, base.name), base, ChangeKind.REMOVED, out)
    _report_subtree(path, changed, ChangeKind.ADDED, out)


def _report_subtree(path: str, node: Node, kind: ChangeKind, out: list[PatchEntry]) -> None:
    if isinstance(node, FileNode):
        if kind is ChangeKind.ADDED:
            out.append(PatchEntry(path=path, kind=kind, new=node.content))
        else:
            out.append(PatchEntry(path=path, kind=kind, old=node.content))
        return
    out.append(PatchEntry(path=path, kind=kind, is_directory=True))
    for child in node.sorted_children():
        _report_subtree(_child_path(path, child.name), child, kind, out)


def _entry_sort_key(entry: PatchEntry) -> tuple[tuple[str, ...], int]:
    # Removals sort before additions at the same path.
    order = 0 if entry.kind is ChangeKind.REMOVED else 1
    return vpath.split(entry.path), order
