"""Persistent package id -> project path map.

The map lives in a JSON file at the workspace root so it can be reviewed
and curated by hand. A ``null`` value is a deliberate entry meaning "no
project is known for this package" and is kept as such, which lets later
runs skip the search and lets a person fill the gap in.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile

from projref.config import MAP_FILE_NAME
from projref.errors import MappingFileError
from projref.paths import PathResolver

logger = logging.getLogger(__name__)


class MappingStore:
    """In-memory package map backed by a JSON file.

    Paths are absolute in memory and root-relative on disk. ``get`` and
    ``put`` never touch the file; only ``load`` and ``save`` do.
    """

    def __init__(
        self,
        root_dir: str,
        path_resolver: PathResolver | None = None,
        file_name: str = MAP_FILE_NAME,
    ) -> None:
        self.root_dir = os.path.abspath(root_dir)
        self.file_name = file_name
        self._paths = path_resolver or PathResolver()
        self._map: dict[str, str | None] = {}

    @property
    def path(self) -> str:
        return os.path.join(self.root_dir, self.file_name)

    def load_or_create(self) -> None:
        """Load the map file, or write an empty one if there is none yet."""
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)

        if os.path.isfile(self.path):
            self.load()
        else:
            logger.info(f"Creating package map {self.path}")
            self.save()

    def load(self) -> None:
        with open(self.path, "r", encoding="utf-8-sig") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise MappingFileError(f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MappingFileError(f"{self.path} must hold a JSON object")

        self._map.clear()
        for package_id, value in data.items():
            if value is None:
                self._map[package_id] = None
            elif isinstance(value, str):
                self._map[package_id] = self._paths.to_absolute(self.root_dir, value)
            else:
                raise MappingFileError(
                    f"{self.path}: value for {package_id!r} must be a path or null"
                )

        logger.debug(f"Loaded {len(self._map)} package mappings from {self.path}")

    def save(self) -> None:
        """Write the map sorted by package id, replacing the file atomically."""
        data: dict[str, str | None] = {}
        for package_id in sorted(self._map):
            value = self._map[package_id]
            if value is not None:
                value = self._paths.to_relative(self.root_dir, value).replace(os.sep, "/")
            data[package_id] = value

        directory = os.path.dirname(self.path)
        fd, tmp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.chmod(tmp_path, _file_mode(self.path))
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved {len(data)} package mappings to {self.path}")

    def get(self, package_id: str) -> tuple[bool, str | None]:
        """Return (found, path). A found entry may still carry a None path."""
        if package_id in self._map:
            return True, self._map[package_id]
        return False, None

    def put(self, package_id: str, project_path: str | None) -> None:
        self._map[package_id] = project_path

    def items(self) -> list[tuple[str, str | None]]:
        return sorted(self._map.items())

    def unresolved(self) -> list[str]:
        """Package ids recorded with no project."""
        return sorted(k for k, v in self._map.items() if v is None)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._map

    def __len__(self) -> int:
        return len(self._map)


def _file_mode(path: str) -> int:
    """Permission bits for a rewritten file: the current ones, else the umask default."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask
