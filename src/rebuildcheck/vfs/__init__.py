"""Virtual filesystem with copy-on-write shadows."""

from .filesystem import FileStat, FileSystem
from .loader import load_project_from_disk
from .nodes import DirectoryNode, FileNode
from .patch import NO_CHANGES, ChangeKind, Patch, PatchEntry, format_patch

__all__ = [
    "ChangeKind",
    "DirectoryNode",
    "FileNode",
    "FileStat",
    "FileSystem",
    "NO_CHANGES",
    "Patch",
    "PatchEntry",
    "format_patch",
    "load_project_from_disk",
]
