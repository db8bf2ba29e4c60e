import pytest

from rebuildcheck.clock import LogicalClock
from rebuildcheck.errors import (
    InvalidPathError,
    MalformedArtifactError,
    NotAFileError,
    NotFoundError,
    ReadOnlyViolationError,
)
from rebuildcheck.vfs import NO_CHANGES, ChangeKind, FileSystem, Patch, PatchEntry, format_patch


def _fs(**kwargs: object) -> FileSystem:
    fs = FileSystem(clock=LogicalClock(), **kwargs)  # type: ignore[arg-type]
    fs.write("/src/a.ts", "a", parents=True)
    fs.write("/src/nested/b.ts", "b", parents=True)
    return fs


def test_write_and_read_roundtrip_with_stat() -> None:
    fs = _fs()
    assert fs.read("/src/a.ts") == b"a"
    assert fs.read_text("src/nested/../a.ts") == "a"
    stat = fs.stat("/src/a.ts")
    assert stat.is_file
    assert stat.size == 1
    assert stat.mtime == 100
    assert fs.list_dir("/src") == ["a.ts", "nested"]
    assert [path for path, _ in fs.iter_files()] == ["/src/a.ts", "/src/nested/b.ts"]


def test_shadow_is_isolated_in_both_directions() -> None:
    base = _fs()
    shadow = base.shadow()
    shadow.write("/src/a.ts", "changed")
    shadow.write("/src/new.ts", "new")
    base.write("/src/nested/b.ts", "base-only")

    assert base.read_text("/src/a.ts") == "a"
    assert not base.exists("/src/new.ts")
    assert shadow.read_text("/src/nested/b.ts") == "b"
    assert shadow.clock is base.clock


def test_untouched_shadow_has_no_diff() -> None:
    base = _fs().make_readonly()
    shadow = base.shadow()
    assert not shadow.is_readonly
    assert not shadow.diff(base)
    assert format_patch(shadow.diff(base)) == NO_CHANGES


def test_readonly_rejects_every_mutation() -> None:
    fs = _fs().make_readonly()
    with pytest.raises(ReadOnlyViolationError):
        fs.write("/src/a.ts", "x")
    with pytest.raises(ReadOnlyViolationError):
        fs.mkdir("/other")
    with pytest.raises(ReadOnlyViolationError):
        fs.touch("/src/a.ts", 5)
    with pytest.raises(ReadOnlyViolationError):
        fs.remove("/src/a.ts")
    assert fs.read_text("/src/a.ts") == "a"


def test_diff_reports_added_removed_and_modified_in_path_order() -> None:
    base = _fs().make_readonly()
    changed = base.shadow()
    changed.write("/src/a.ts", "a2")
    changed.remove("/src/nested")
    changed.write("/src/z.ts", "z")

    patch = changed.diff(base)
    assert [(entry.path, entry.kind) for entry in patch] == [
        ("/src/a.ts", ChangeKind.MODIFIED),
        ("/src/nested", ChangeKind.REMOVED),
        ("/src/nested/b.ts", ChangeKind.REMOVED),
        ("/src/z.ts", ChangeKind.ADDED),
    ]
    assert patch.by_path()["/src/a.ts"].old == b"a"


def test_diff_is_deterministic_and_inverse() -> None:
    base = _fs().make_readonly()
    left = base.shadow()
    left.write("/src/extra.ts", "x")
    right = base.shadow()
    right.write("/src/extra.ts", "x")

    assert format_patch(left.diff(base)) == format_patch(right.diff(base))
    forward = left.diff(base)
    backward = base.diff(left)
    assert forward.paths(ChangeKind.ADDED) == backward.paths(ChangeKind.REMOVED)
    assert not left.diff(right)


def test_diff_lists_removal_before_addition_at_same_path() -> None:
    base = FileSystem(clock=LogicalClock())
    base.write("/x", "file")
    changed = base.shadow()
    changed.remove("/x")
    changed.write("/x/y", "nested", parents=True)

    entries = [(entry.path, entry.kind, entry.is_directory) for entry in changed.diff(base)]
    assert entries == [
        ("/x", ChangeKind.REMOVED, False),
        ("/x", ChangeKind.ADDED, True),
        ("/x/y", ChangeKind.ADDED, False),
    ]


def test_format_patch_layout() -> None:
    base = _fs().make_readonly()
    changed = base.shadow()
    changed.write("/src/a.ts", "line1\nline2")
    changed.remove("/src/nested/b.ts")
    changed.mkdir("/src/empty")

    assert format_patch(changed.diff(base)) == (
        "//// [/src/a.ts]\n"
        "line1\n"
        "line2\n"
        "//// [/src/empty] (directory)\n"
        "//// [/src/nested/b.ts] (deleted)\n"
    )


def test_case_insensitive_lookup_keeps_display_name() -> None:
    fs = FileSystem(ignore_case=True, clock=LogicalClock())
    fs.write("/Src/Main.ts", "x", parents=True)
    fs.write("/src/main.TS", "y")
    assert fs.read_text("/SRC/MAIN.TS") == "y"
    assert fs.list_dir("/") == ["Src"]
    assert fs.list_dir("/src") == ["Main.ts"]

    sensitive = FileSystem(clock=LogicalClock())
    sensitive.write("/Main.ts", "x")
    assert not sensitive.exists("/main.ts")


def test_shadow_cannot_change_case_sensitivity() -> None:
    fs = FileSystem(ignore_case=True, clock=LogicalClock())
    assert fs.shadow(ignore_case=True).ignore_case
    with pytest.raises(InvalidPathError):
        fs.shadow(ignore_case=False)


def test_error_cases_are_typed() -> None:
    fs = _fs()
    with pytest.raises(NotFoundError):
        fs.read("/missing.ts")
    with pytest.raises(NotAFileError):
        fs.read("/src")
    with pytest.raises(NotAFileError):
        fs.write("/src", "x")
    with pytest.raises(NotAFileError):
        fs.write("/", "x")
    with pytest.raises(NotFoundError):
        fs.write("/nowhere/a.ts", "x")
    with pytest.raises(NotFoundError):
        fs.remove("/missing.ts")
    with pytest.raises(InvalidPathError):
        fs.remove("/")
    with pytest.raises(InvalidPathError):
        fs.exists("")
    with pytest.raises(NotAFileError):
        fs.write("/src/a.ts/child", "x", parents=True)
    with pytest.raises(InvalidPathError):
        fs.list_dir("/src/a.ts")
    with pytest.raises(NotFoundError):
        fs.list_dir("/missing")


def test_format_patch_rejects_file_entry_without_content() -> None:
    patch = Patch((PatchEntry("/src/a.ts", ChangeKind.MODIFIED, old=b"a"),))
    with pytest.raises(MalformedArtifactError) as exc:
        format_patch(patch)
    assert exc.value.context["path"] == "/src/a.ts"


def test_directory_mtime_moves_only_on_entry_changes() -> None:
    clock = LogicalClock()
    fs = FileSystem(clock=clock)
    fs.mkdir("/src")
    fs.write("/src/a.ts", "a")
    created = fs.stat("/src").mtime

    clock.tick()
    fs.write("/src/a.ts", "a2")
    fs.touch("/src/a.ts")
    assert fs.stat("/src").mtime == created
    assert fs.stat("/src/a.ts").mtime == clock.now()

    clock.tick()
    fs.write("/src/b.ts", "b")
    assert fs.stat("/src").mtime == clock.now()
