"""
hookgate — unit tests for the check registry

File: tests/unit/registry/test_registry.py
Last updated: 2026-10-19

Purpose
- Validate discovery, eligibility, and deterministic ordering of checks.

What this test file should cover
- Numeric order key ascending, ties by identifier, unnumbered entries last.
- Eligibility: execute bit, disabling suffixes, prefix filter, dot-files, directories.
- Missing, non-directory, or unreadable checks directory raises ``ConfigurationError``.
- Every discovery rescans; enabling or disabling a check takes effect immediately.
"""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from hookgate.registry import (
    CheckRegistry,
    ConfigurationError,
    RegistrySettings,
    discover,
    parse_order_key,
    scan_checks,
)

pytestmark = pytest.mark.unit


def _write_check(directory: Path, name: str, *, executable: bool = True) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    path.chmod(0o755 if executable else 0o644)
    return path


def _ids(descriptors: tuple[object, ...]) -> list[str]:
    return [getattr(item, "identifier") for item in descriptors]


def test_orders_by_numeric_key_not_lexically(tmp_path: Path) -> None:
    for name in ("proj-100-late.sh", "proj-20-mid.sh", "proj-3-early.sh"):
        _write_check(tmp_path, name)

    assert _ids(discover(tmp_path)) == [
        "proj-3-early.sh",
        "proj-20-mid.sh",
        "proj-100-late.sh",
    ]


def test_equal_keys_are_ordered_by_identifier(tmp_path: Path) -> None:
    for name in ("20-zeta.sh", "20-alpha.sh", "10-first.sh"):
        _write_check(tmp_path, name)

    assert _ids(discover(tmp_path)) == ["10-first.sh", "20-alpha.sh", "20-zeta.sh"]


def test_unnumbered_checks_sort_after_numbered(tmp_path: Path) -> None:
    for name in ("lint.sh", "99-last-numbered.sh", "format.sh", "5-first.sh"):
        _write_check(tmp_path, name)

    assert _ids(discover(tmp_path)) == [
        "5-first.sh",
        "99-last-numbered.sh",
        "format.sh",
        "lint.sh",
    ]


def test_non_executable_entry_is_skipped_but_listed(tmp_path: Path) -> None:
    _write_check(tmp_path, "proj-10-a")
    _write_check(tmp_path, "proj-20-b", executable=False)
    _write_check(tmp_path, "proj-30-c")

    assert _ids(discover(tmp_path)) == ["proj-10-a", "proj-30-c"]

    scanned = scan_checks(tmp_path)
    assert [(item.identifier, item.runnable) for item in scanned] == [
        ("proj-10-a", True),
        ("proj-20-b", False),
        ("proj-30-c", True),
    ]


def test_disabled_suffixes_exclude_entries(tmp_path: Path) -> None:
    _write_check(tmp_path, "10-lint.sh")
    _write_check(tmp_path, "20-tests.sh.disabled")
    _write_check(tmp_path, "30-secrets.sh.sample")

    assert _ids(discover(tmp_path)) == ["10-lint.sh"]
    assert _ids(discover(tmp_path, disabled_suffixes=(".sample",))) == [
        "10-lint.sh",
        "20-tests.sh.disabled",
    ]


def test_prefix_filters_foreign_entries_and_is_stripped_for_ordering(tmp_path: Path) -> None:
    _write_check(tmp_path, "proj-20-lint.sh")
    _write_check(tmp_path, "proj-5-format.sh")
    _write_check(tmp_path, "other-1-check.sh")
    _write_check(tmp_path, "README")

    found = discover(tmp_path, prefix="proj")

    assert _ids(found) == ["proj-5-format.sh", "proj-20-lint.sh"]
    assert [item.order_key for item in found] == [5, 20]


def test_dotfiles_and_directories_are_not_candidates(tmp_path: Path) -> None:
    _write_check(tmp_path, ".10-hidden.sh")
    (tmp_path / "20-nested").mkdir()
    _write_check(tmp_path / "20-nested", "30-inner.sh")
    _write_check(tmp_path, "40-visible.sh")

    assert _ids(scan_checks(tmp_path)) == ["40-visible.sh"]


def test_empty_directory_yields_empty_sequence(tmp_path: Path) -> None:
    assert discover(tmp_path) == ()


def test_missing_directory_raises_configuration_error(tmp_path: Path) -> None:
    missing = tmp_path / "does-not-exist"

    with pytest.raises(ConfigurationError) as exc_info:
        discover(missing)

    assert exc_info.value.directory == missing
    assert "does not exist" in str(exc_info.value)
    assert "no checks were run" in str(exc_info.value)


def test_file_in_place_of_directory_raises_configuration_error(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "hooks.d"
    not_a_dir.write_text("", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="is not a directory"):
        discover(not_a_dir)


_requires_permission_checks = pytest.mark.skipif(
    os.geteuid() == 0, reason="root bypasses directory permission bits"
)


@pytest.fixture
def restore_modes() -> Iterator[list[Path]]:
    locked: list[Path] = []
    yield locked
    for path in locked:
        path.chmod(0o755)


@_requires_permission_checks
@pytest.mark.parametrize(
    "mode",
    [
        pytest.param(0o644, id="listable-not-searchable"),
        pytest.param(0o311, id="searchable-not-listable"),
        pytest.param(0o000, id="no-access"),
    ],
)
def test_unreadable_directory_raises_configuration_error(
    tmp_path: Path, restore_modes: list[Path], mode: int
) -> None:
    checks = tmp_path / "hooks.d"
    _write_check(checks, "10-a")
    checks.chmod(mode)
    restore_modes.append(checks)

    with pytest.raises(ConfigurationError, match="is not readable") as exc_info:
        discover(checks)

    assert exc_info.value.directory == checks
    assert "no checks were run" in str(exc_info.value)


@_requires_permission_checks
def test_directory_below_unsearchable_parent_raises_configuration_error(
    tmp_path: Path, restore_modes: list[Path]
) -> None:
    parent = tmp_path / ".githooks"
    checks = parent / "hooks.d"
    _write_check(checks, "10-a")
    parent.chmod(0o600)
    restore_modes.append(parent)

    with pytest.raises(ConfigurationError, match="is not readable"):
        scan_checks(checks)


def test_access_denied_directory_raises_configuration_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_check(tmp_path, "10-a")
    real_access = os.access
    monkeypatch.setattr(
        os, "access", lambda path, mode: Path(path) != tmp_path and real_access(path, mode)
    )

    with pytest.raises(ConfigurationError, match=r"is not readable \(permission denied\)"):
        discover(tmp_path)


def test_listing_error_raises_configuration_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_check(tmp_path, "10-a")

    def deny(path: object) -> object:
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(os, "scandir", deny)

    with pytest.raises(ConfigurationError, match=r"is not readable \(Permission denied\)"):
        discover(tmp_path)


def test_stat_error_on_directory_raises_configuration_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    checks = tmp_path / "hooks.d"
    _write_check(checks, "10-a")
    real_stat = Path.stat

    def guarded_stat(self: Path, **kwargs: object) -> os.stat_result:
        if self == checks:
            raise PermissionError(13, "Permission denied", str(self))
        return real_stat(self, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(Path, "stat", guarded_stat)

    with pytest.raises(ConfigurationError, match="is not readable"):
        discover(checks)


def test_discovery_rescans_every_call(tmp_path: Path) -> None:
    check = _write_check(tmp_path, "10-lint.sh")
    registry = CheckRegistry(RegistrySettings(directory=tmp_path))
    assert _ids(registry.discover()) == ["10-lint.sh"]

    check.chmod(check.stat().st_mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
    assert registry.discover() == ()

    check.chmod(0o755)
    _write_check(tmp_path, "5-format.sh")
    assert _ids(registry.discover()) == ["5-format.sh", "10-lint.sh"]


def test_descriptor_paths_are_absolute_and_inside_directory(tmp_path: Path) -> None:
    _write_check(tmp_path, "10-lint.sh")

    (descriptor,) = discover(tmp_path)

    assert descriptor.path.is_absolute()
    assert descriptor.path.parent == tmp_path.absolute()
    assert descriptor.to_dict() == {
        "identifier": "10-lint.sh",
        "path": (tmp_path.absolute() / "10-lint.sh").as_posix(),
        "order_key": 10,
        "runnable": True,
    }


def test_symlink_to_executable_is_runnable(tmp_path: Path) -> None:
    target = _write_check(tmp_path / "scripts", "lint.sh")
    checks = tmp_path / "hooks.d"
    checks.mkdir()
    os.symlink(target, checks / "10-lint")
    os.symlink(tmp_path / "missing", checks / "20-dangling")

    scanned = scan_checks(checks)

    assert [(item.identifier, item.runnable) for item in scanned] == [
        ("10-lint", True),
        ("20-dangling", False),
    ]


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        ("proj-20-lint.sh", 20),
        ("20-lint.sh", 20),
        ("lint-007.sh", 7),
        ("lint_3_fast", 3),
        ("lint.sh", None),
        ("v2lint.sh", None),
        ("10", 10),
        ("a-1-b-2", 1),
    ],
)
def test_parse_order_key(identifier: str, expected: int | None) -> None:
    assert parse_order_key(identifier) == expected


def test_settings_from_config_resolves_relative_directory(tmp_path: Path) -> None:
    config = {
        "checks": {
            "directory": "ci/hooks.d",
            "prefix": " proj ",
            "disabled_suffixes": [".off"],
        }
    }

    built = RegistrySettings.from_config(config, repo_root=tmp_path)

    assert built.directory == tmp_path / "ci" / "hooks.d"
    assert built.prefix == "proj"
    assert built.disabled_suffixes == (".off",)


def test_settings_from_config_defaults(tmp_path: Path) -> None:
    built = RegistrySettings.from_config({}, repo_root=tmp_path)

    assert built.directory == tmp_path / ".githooks" / "hooks.d"
    assert built.prefix == ""
    assert built.disabled_suffixes == (".disabled", ".sample")


_NAME_STEMS = st.text(alphabet="abcdefghij", min_size=1, max_size=6)


@settings(max_examples=30, derandomize=True, deadline=None)
@given(
    entries=st.lists(
        st.tuples(st.one_of(st.none(), st.integers(min_value=0, max_value=500)), _NAME_STEMS),
        min_size=0,
        max_size=8,
        unique_by=lambda item: item,
    )
)
def test_discovery_order_is_total_and_deterministic(
    entries: list[tuple[int | None, str]],
) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        names = [stem if key is None else f"{key}-{stem}" for key, stem in entries]
        for name in names:
            _write_check(root, name)

        first = discover(root)
        second = discover(root)

        assert first == second
        assert sorted(_ids(first)) == sorted(set(names))

        keys = [item.sort_key() for item in first]
        assert keys == sorted(keys)
        numbered = [item for item in first if item.order_key is not None]
        assert list(first[: len(numbered)]) == numbered
