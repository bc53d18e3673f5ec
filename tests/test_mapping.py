"""Tests for MappingStore."""

from __future__ import annotations

import json
import os
import stat
import tempfile

import pytest

from projref.config import MAP_FILE_NAME
from projref.errors import MappingFileError
from projref.mapping import MappingStore


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestLoadOrCreate:
    def test_creates_empty_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.load_or_create()

            assert store.path == os.path.join(tmpdir, MAP_FILE_NAME)
            assert os.path.isfile(store.path)
            assert json.loads(_read(store.path)) == {}
            assert len(store) == 0

    def test_creates_missing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir, file_name=os.path.join("config", "map.json"))
            store.load_or_create()
            assert os.path.isfile(os.path.join(tmpdir, "config", "map.json"))

    def test_loads_existing_file_as_absolute_paths(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with open(os.path.join(tmpdir, MAP_FILE_NAME), "w") as f:
                json.dump({"Core": "Libs/Core/Core.csproj", "Windowsy": "Libs\\Win\\Win.csproj"}, f)

            store = MappingStore(tmpdir)
            store.load_or_create()

            assert store.get("Core") == (True, os.path.join(tmpdir, "Libs", "Core", "Core.csproj"))
            assert store.get("Windowsy") == (True, os.path.join(tmpdir, "Libs", "Win", "Win.csproj"))

    def test_null_kept_as_negative_entry(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with open(os.path.join(tmpdir, MAP_FILE_NAME), "w") as f:
                f.write('{"Newtonsoft.Json": null}')

            store = MappingStore(tmpdir)
            store.load_or_create()

            assert store.get("Newtonsoft.Json") == (True, None)
            assert "Newtonsoft.Json" in store
            assert store.unresolved() == ["Newtonsoft.Json"]

    def test_unknown_package_not_found(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.load_or_create()
            assert store.get("Missing") == (False, None)


class TestMalformedFile:
    @pytest.mark.parametrize("content", [
        "not json",
        "[1, 2, 3]",
        '{"Core": 42}',
    ])
    def test_rejected(self, content):
        with tempfile.TemporaryDirectory() as tmpdir:
            with open(os.path.join(tmpdir, MAP_FILE_NAME), "w") as f:
                f.write(content)
            with pytest.raises(MappingFileError):
                MappingStore(tmpdir).load()


class TestSave:
    def test_sorted_relative_indented(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.put("Zeta", os.path.join(tmpdir, "Z", "Zeta.csproj"))
            store.put("Alpha", os.path.join(tmpdir, "A", "Alpha.csproj"))
            store.put("Missing", None)
            store.save()

            text = _read(store.path)
            assert text == (
                "{\n"
                '  "Alpha": "A/Alpha.csproj",\n'
                '  "Missing": null,\n'
                '  "Zeta": "Z/Zeta.csproj"\n'
                "}\n"
            )

    def test_paths_outside_root_use_parent_segments(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = os.path.join(tmpdir, "solution")
            os.makedirs(root)
            store = MappingStore(root)
            store.put("Shared", os.path.join(tmpdir, "shared", "Shared.csproj"))
            store.save()

            assert json.loads(_read(store.path)) == {"Shared": "../shared/Shared.csproj"}

    def test_round_trip_through_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            core = os.path.join(tmpdir, "Libs", "Core", "Core.csproj")
            store = MappingStore(tmpdir)
            store.put("Core", core)
            store.put("Gone", None)
            store.save()

            reloaded = MappingStore(tmpdir)
            reloaded.load()
            assert reloaded.items() == [("Core", core), ("Gone", None)]

    def test_no_temporary_files_left_behind(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.put("Core", None)
            store.save()
            store.save()
            assert os.listdir(tmpdir) == [MAP_FILE_NAME]

    def test_get_and_put_do_no_io(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.put("Core", os.path.join(tmpdir, "Core.csproj"))
            assert store.get("Core")[0]
            assert not os.path.exists(store.path)

    def test_default_file_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.save()
            assert os.listdir(tmpdir) == ["NuGetToProjectReferenceMap.json"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
class TestFilePermissions:
    def test_new_file_follows_umask(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            previous = os.umask(0o022)
            try:
                store = MappingStore(tmpdir)
                store.save()
            finally:
                os.umask(previous)
            assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o644

    def test_existing_mode_kept(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = MappingStore(tmpdir)
            store.save()
            os.chmod(store.path, 0o640)

            store.put("Core", None)
            store.save()

            assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o640
