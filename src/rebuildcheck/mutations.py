"""Scripted filesystem edits applied by scenario phases."""

from __future__ import annotations

from rebuildcheck.errors import NotFoundError, ScenarioScriptError
from rebuildcheck.vfs import FileSystem


def replace_text(fs: FileSystem, path: str, old_text: str, new_text: str) -> None:
    """Replace the first occurrence of *old_text* in the file at *path*."""
    old = _read_existing(fs, path, operation="replace_text")
    if old_text not in old:
        raise ScenarioScriptError(
            "Text to replace does not exist in file.",
            hint="Check the scenario script against the fixture content.",
            context={"path": path, "text": old_text},
        )
    fs.write(path, old.replace(old_text, new_text, 1))


def prepend_text(fs: FileSystem, path: str, additional_content: str) -> None:
    old = _read_existing(fs, path, operation="prepend_text")
    fs.write(path, f"{additional_content}{old}")


def append_text(fs: FileSystem, path: str, additional_content: str) -> None:
    old = _read_existing(fs, path, operation="append_text")
    fs.write(path, f"{old}{additional_content}")


def remove_if_exists(fs: FileSystem, path: str) -> bool:
    if not fs.exists(path):
        return False
    fs.remove(path)
    return True


def _read_existing(fs: FileSystem, path: str, *, operation: str) -> str:
    if not fs.is_file(path):
        raise NotFoundError(
            "File does not exist.",
            context={"operation": operation, "path": path},
        )
    return fs.read_text(path)
