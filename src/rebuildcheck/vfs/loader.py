"""Populate a virtual filesystem from host directories."""

from __future__ import annotations

from pathlib import Path

from rebuildcheck.clock import LogicalClock
from rebuildcheck.errors import NotFoundError
from rebuildcheck.vfs.filesystem import FileSystem

SOURCE_MOUNT = "/src"
LIB_MOUNT = "/lib"


def load_project_from_disk(
    src_dir: str | Path,
    lib_dir: str | Path | None = None,
    *,
    clock: LogicalClock,
    ignore_case: bool = True,
) -> FileSystem:
    """Copy *src_dir* to ``/src`` (and *lib_dir* to ``/lib``) and freeze the result.

    Every file is stamped with the clock's current time, so the on-disk
    mtimes of the host never leak into the verification.
    """
    fs = FileSystem(ignore_case=ignore_case, clock=clock)
    _mount(fs, Path(src_dir), SOURCE_MOUNT)
    if lib_dir is not None:
        _mount(fs, Path(lib_dir), LIB_MOUNT)
    return fs.make_readonly()


def _mount(fs: FileSystem, host_dir: Path, mount_point: str) -> None:
    if not host_dir.is_dir():
        raise NotFoundError(
            "Host directory does not exist.",
            hint="Point the loader at an existing project directory.",
            context={"operation": "load_project_from_disk", "path": str(host_dir)},
        )
    fs.mkdir(mount_point, parents=True)
    for host_path in sorted(host_dir.rglob("*")):
        relative = host_path.relative_to(host_dir).as_posix()
        target = f"{mount_point}/{relative}"
        if host_path.is_dir():
            fs.mkdir(target, parents=True)
        elif host_path.is_file():
            fs.write(target, host_path.read_bytes(), parents=True)
