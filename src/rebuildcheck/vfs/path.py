"""POSIX path helpers for the virtual filesystem."""

from __future__ import annotations

import posixpath

from rebuildcheck.errors import InvalidPathError

ROOT = "/"


def normalize(path: str, *, cwd: str = ROOT) -> str:
    """Return an absolute, normalized form of *path* resolved against *cwd*."""
    if not path:
        raise InvalidPathError("Path must be non-empty.")
    if "\x00" in path:
        raise InvalidPathError("Path must not contain NUL bytes.", context={"path": path})
    path = path.replace("\\", "/")
    if not path.startswith("/"):
        path = posixpath.join(cwd, path)
    normalized = posixpath.normpath(path)
    # normpath keeps a leading "//" as-is on POSIX.
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def split(path: str) -> tuple[str, ...]:
    """Split a normalized absolute path into its components."""
    return tuple(part for part in path.split("/") if part)


def join(*parts: str) -> str:
    return "/" + "/".join(part for part in parts if part)


def is_under(path: str, root: str) -> bool:
    """Whether *path* is *root* itself or lies beneath it."""
    root = root.rstrip("/")
    if not root:
        return path.startswith("/")
    return path == root or path.startswith(root + "/")


def slugify(text: str) -> str:
    """Turn a human scenario title into a baseline path segment."""
    return "-".join(text.split(" "))
