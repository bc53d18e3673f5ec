"""Name-to-path index of every project file below a root directory."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterable

from projref.config import (
    PROJECT_EXTENSIONS,
    DuplicateProject,
    IndexStats,
    ProjectRecord,
)
from projref.discovery import iter_project_files, project_name
from projref.errors import DirectoryNotFoundError, InvalidArgumentError

logger = logging.getLogger(__name__)


class ProjectIndex:
    """Maps project names (file stems, case-insensitive) to absolute paths.

    The first project found for a name wins; later ones are recorded as
    duplicates and otherwise ignored. Lookups before a build, or after a
    failed one, return None. All state changes happen under one lock so
    a concurrent reader never sees a half-built index.
    """

    def __init__(
        self,
        extensions: Iterable[str] = PROJECT_EXTENSIONS,
        ignore: Iterable[str] | None = None,
    ) -> None:
        self.extensions = tuple(extensions)
        self.ignore = None if ignore is None else set(ignore)
        self._projects: dict[str, ProjectRecord] = {}
        self._directories: set[str] = set()
        self._duplicates: list[DuplicateProject] = []
        self._root_dir: str | None = None
        self._build_duration = 0.0
        self._built = False
        self._lock = threading.RLock()

    def build_index(self, root_dir: str) -> None:
        """Scan ``root_dir`` recursively and rebuild the index from scratch."""
        if not root_dir or not root_dir.strip():
            raise InvalidArgumentError("Root directory must not be blank")
        if not os.path.isdir(root_dir):
            raise DirectoryNotFoundError(f"Directory not found: {root_dir}")

        with self._lock:
            self.clear_index()
            self._root_dir = os.path.abspath(root_dir)
            start = time.monotonic()
            logger.info(f"Building project index under {self._root_dir}")

            try:
                for path in iter_project_files(self._root_dir, self.extensions, self.ignore):
                    self._add(path)
            except Exception as e:
                logger.error(f"Project index build failed: {e}")
                self.clear_index()
                raise

            self._build_duration = time.monotonic() - start
            self._built = True

            if self._duplicates:
                logger.warning(f"{len(self._duplicates)} duplicate project names found")
            logger.info(
                f"Indexed {len(self._projects)} projects in {len(self._directories)} "
                f"directories ({self._build_duration * 1000:.1f}ms)"
            )

    def _add(self, path: str) -> None:
        name = project_name(path)
        key = name.casefold()
        existing = self._projects.get(key)
        if existing is not None:
            self._duplicates.append(DuplicateProject(name=name, kept=existing.path, ignored=path))
            logger.warning(f"Duplicate project name {name}: keeping {existing.path}, ignoring {path}")
        else:
            self._projects[key] = ProjectRecord(name=name, path=path)
        self._directories.add(os.path.dirname(path))

    def find_project(self, name: str | None) -> str | None:
        """Return the indexed path for ``name``, or None."""
        if not name or not name.strip():
            return None

        with self._lock:
            if not self._built:
                logger.debug(f"Lookup of {name} before the project index was built")
                return None

            record = self._projects.get(name.casefold())
            if record is None:
                logger.debug(f"Project not in index: {name}")
                return None
            logger.debug(f"Project found in index: {name} -> {record.path}")
            return record.path

    @property
    def is_built(self) -> bool:
        with self._lock:
            return self._built

    def clear_index(self) -> None:
        with self._lock:
            self._projects.clear()
            self._directories.clear()
            self._duplicates = []
            self._root_dir = None
            self._build_duration = 0.0
            self._built = False

    @property
    def duplicates(self) -> list[DuplicateProject]:
        with self._lock:
            return list(self._duplicates)

    def get_stats(self) -> IndexStats:
        with self._lock:
            return IndexStats(
                total_projects=len(self._projects),
                indexed_directories=len(self._directories),
                build_duration=self._build_duration,
                root_dir=self._root_dir,
                duplicates=len(self._duplicates),
            )
