"""Tests for ProjectIndex."""

from __future__ import annotations

import os
import tempfile
from unittest import mock

import pytest

from projref.errors import DirectoryNotFoundError, InvalidArgumentError
from projref.graph.project_index import ProjectIndex

PROJECT_XML = '<Project Sdk="Microsoft.NET.Sdk"></Project>\n'


def _touch(root: str, *parts: str) -> str:
    path = os.path.join(root, *parts)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(PROJECT_XML)
    return path


class TestBuildIndex:
    def test_indexes_projects_by_stem(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            app = _touch(tmpdir, "App", "App.csproj")
            core = _touch(tmpdir, "Libs", "Core", "Core.csproj")
            vb = _touch(tmpdir, "Libs", "Legacy", "Legacy.vbproj")

            idx = ProjectIndex()
            idx.build_index(tmpdir)

            assert idx.is_built
            assert idx.find_project("App") == app
            assert idx.find_project("Core") == core
            assert idx.find_project("Legacy") == vb

    def test_lookup_is_case_insensitive(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            core = _touch(tmpdir, "Core", "Contoso.Core.csproj")
            idx = ProjectIndex()
            idx.build_index(tmpdir)

            assert idx.find_project("contoso.core") == core
            assert idx.find_project("CONTOSO.CORE") == core

    def test_ignores_non_project_files_and_build_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "App", "App.csproj")
            _touch(tmpdir, "App", "obj", "Stale.csproj")
            _touch(tmpdir, "App", "bin", "Debug", "Other.csproj")
            with open(os.path.join(tmpdir, "App", "Readme.md"), "w") as f:
                f.write("# App\n")

            idx = ProjectIndex()
            idx.build_index(tmpdir)

            assert idx.get_stats().total_projects == 1
            assert idx.find_project("Stale") is None
            assert idx.find_project("Other") is None

    def test_custom_ignore_set(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "samples", "Sample.csproj")
            idx = ProjectIndex(ignore={"samples"})
            idx.build_index(tmpdir)
            assert idx.find_project("Sample") is None

    def test_stats(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "A", "A.csproj")
            _touch(tmpdir, "A", "A.Tests.csproj")
            _touch(tmpdir, "B", "B.csproj")

            idx = ProjectIndex()
            idx.build_index(tmpdir)
            stats = idx.get_stats()

            assert stats.total_projects == 3
            assert stats.indexed_directories == 2
            assert stats.root_dir == os.path.abspath(tmpdir)
            assert stats.build_duration >= 0
            assert stats.duplicates == 0

    def test_rebuild_replaces_previous_index(self):
        with tempfile.TemporaryDirectory() as first, tempfile.TemporaryDirectory() as second:
            _touch(first, "Old", "Old.csproj")
            _touch(second, "New", "New.csproj")

            idx = ProjectIndex()
            idx.build_index(first)
            idx.build_index(second)

            assert idx.find_project("Old") is None
            assert idx.find_project("New") is not None


class TestDuplicates:
    def test_first_encountered_wins(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            first = _touch(tmpdir, "a", "Shared", "Shared.csproj")
            second = _touch(tmpdir, "b", "Shared", "Shared.csproj")

            idx = ProjectIndex()
            idx.build_index(tmpdir)

            assert idx.find_project("Shared") == first
            assert idx.get_stats().duplicates >= 1
            assert idx.get_stats().total_projects == 1
            dup = idx.duplicates[0]
            assert dup.kept == first
            assert dup.ignored == second

    def test_files_of_a_directory_come_before_subdirectories(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            shallow = _touch(tmpdir, "Shared.csproj")
            _touch(tmpdir, "aaa", "Shared.csproj")

            idx = ProjectIndex()
            idx.build_index(tmpdir)

            assert idx.find_project("Shared") == shallow

    def test_duplicate_is_logged(self, caplog):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "a", "Shared.csproj")
            _touch(tmpdir, "b", "Shared.csproj")

            with caplog.at_level("WARNING", logger="projref"):
                ProjectIndex().build_index(tmpdir)

            assert any("Duplicate project name Shared" in r.getMessage() for r in caplog.records)


class TestPreconditions:
    @pytest.mark.parametrize("root", ["", "   "])
    def test_blank_root_rejected(self, root):
        with pytest.raises(InvalidArgumentError):
            ProjectIndex().build_index(root)

    def test_missing_root_rejected(self):
        with pytest.raises(DirectoryNotFoundError):
            ProjectIndex().build_index(os.path.join(tempfile.gettempdir(), "projref-missing-root"))

    def test_find_before_build_returns_none(self):
        idx = ProjectIndex()
        assert not idx.is_built
        assert idx.find_project("Anything") is None

    def test_find_blank_name_returns_none(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "A", "A.csproj")
            idx = ProjectIndex()
            idx.build_index(tmpdir)
            assert idx.find_project("") is None
            assert idx.find_project("  ") is None

    def test_clear_index(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "A", "A.csproj")
            idx = ProjectIndex()
            idx.build_index(tmpdir)
            idx.clear_index()

            assert not idx.is_built
            assert idx.find_project("A") is None
            stats = idx.get_stats()
            assert stats.total_projects == 0
            assert stats.root_dir is None

    def test_failure_mid_scan_leaves_index_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _touch(tmpdir, "A", "A.csproj")
            _touch(tmpdir, "B", "B.csproj")

            def broken_walk(root, extensions, ignore):
                yield os.path.join(tmpdir, "A", "A.csproj")
                raise PermissionError("access denied")

            idx = ProjectIndex()
            with mock.patch("projref.graph.project_index.iter_project_files", broken_walk):
                with pytest.raises(PermissionError):
                    idx.build_index(tmpdir)

            assert not idx.is_built
            assert idx.get_stats().total_projects == 0
            assert idx.find_project("A") is None
