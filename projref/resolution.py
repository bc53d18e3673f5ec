"""Resolving package ids and include strings to project files on disk."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable

from projref.config import (
    PROJECT_EXTENSIONS,
    ProjectRecord,
    Resolution,
    ResolutionStrategy,
)
from projref.discovery import iter_project_files, project_name
from projref.graph.project_index import ProjectIndex
from projref.mapping import MappingStore
from projref.paths import PathResolver, canonical, normalise

logger = logging.getLogger(__name__)


class ProjectResolver:
    """Finds the project file behind a package id or a ProjectReference include.

    Package ids go through the map, then the project index, then a search
    of the filesystem around the workspace. The first lookup producing an
    existing file wins. Filesystem hits are cached per project name for
    the lifetime of the resolver; a cached file that has since vanished is
    evicted and searched for again.
    """

    def __init__(
        self,
        root_dir: str,
        mapping: MappingStore,
        index: ProjectIndex | None = None,
        path_resolver: PathResolver | None = None,
        max_parent_levels: int = 2,
        extensions: Iterable[str] = PROJECT_EXTENSIONS,
        ignore: Iterable[str] | None = None,
        workspace_projects: Callable[[], Iterable[ProjectRecord]] | None = None,
    ) -> None:
        self.root_dir = os.path.abspath(root_dir)
        self.mapping = mapping
        self.index = index
        self.paths = path_resolver or PathResolver(verify_base_exists=False)
        self.max_parent_levels = max_parent_levels
        self.extensions = tuple(extensions)
        self.ignore = ignore
        self.workspace_projects = workspace_projects
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()
        self.stats = {
            "cache_hits": 0,
            "cache_evictions": 0,
            "fallback_searches": 0,
            "fallback_hits": 0,
        }

    # --- Package ids ---

    def resolve_package(self, package_id: str, project_dir: str | None = None) -> Resolution:
        """Resolve a package id; a miss is returned, never raised."""
        found, mapped = self.mapping.get(package_id)
        if found:
            if mapped is None:
                logger.debug(f"{package_id} is recorded as having no project")
                return Resolution(None, ResolutionStrategy.NEGATIVE_CACHE)
            if os.path.isfile(mapped):
                logger.debug(f"{package_id} resolved from map: {mapped}")
                return Resolution(mapped, ResolutionStrategy.MAPPING)
            logger.warning(f"Mapped project for {package_id} no longer exists: {mapped}")

        resolution = self._resolve_name(package_id, project_dir)
        if resolution.found:
            logger.info(f"Package {package_id} resolved via {resolution.strategy.value}: {resolution.path}")
        else:
            logger.info(f"No project found for package {package_id}")
        return resolution

    def _resolve_name(self, name: str, project_dir: str | None) -> Resolution:
        if self.index is not None:
            indexed = self.index.find_project(name)
            if indexed and os.path.isfile(indexed):
                return Resolution(indexed, ResolutionStrategy.INDEX)

        found = self.find_in_filesystem(name, project_dir)
        if found:
            return Resolution(found, ResolutionStrategy.FILESYSTEM)

        return Resolution(None, ResolutionStrategy.MISS)

    # --- ProjectReference includes ---

    def resolve_include(self, include: str, project_dir: str) -> Resolution:
        """Resolve a raw ProjectReference include of a project in ``project_dir``.

        When nothing matches, the path relative to ``project_dir`` is
        returned anyway (strategy MISS) so the caller fails loudly on it.
        """
        include = normalise(include)
        if os.path.isabs(include):
            return Resolution(include, ResolutionStrategy.INCLUDE)

        beside = self.paths.to_absolute(project_dir, include)
        if os.path.isfile(beside):
            return Resolution(beside, ResolutionStrategy.INCLUDE)

        from_root = self.paths.to_absolute(self.root_dir, include)
        if os.path.isfile(from_root):
            logger.debug(f"{include} resolved relative to the workspace root: {from_root}")
            return Resolution(from_root, ResolutionStrategy.INCLUDE)

        name = project_name(include)
        found, mapped = self.mapping.get(name)
        if found and mapped and os.path.isfile(mapped):
            return Resolution(mapped, ResolutionStrategy.MAPPING)

        if self.index is not None:
            indexed = self.index.find_project(name)
            if indexed and os.path.isfile(indexed):
                return Resolution(indexed, ResolutionStrategy.INDEX)

        if self.workspace_projects is not None:
            for record in self.workspace_projects():
                if record.name.casefold() == name.casefold() and os.path.isfile(record.path):
                    return Resolution(record.path, ResolutionStrategy.WORKSPACE)

        found_path = self.find_in_filesystem(name, project_dir)
        if found_path:
            return Resolution(found_path, ResolutionStrategy.FILESYSTEM)

        logger.warning(f"Could not resolve project reference {include} from {project_dir}")
        return Resolution(beside, ResolutionStrategy.MISS)

    # --- Filesystem fallback ---

    def search_directories(self, project_dir: str | None = None) -> list[str]:
        """Directories to search, in priority order, without repeats."""
        candidates = []
        if project_dir:
            candidates.append(os.path.abspath(project_dir))
        candidates.append(self.root_dir)

        current = self.root_dir
        for _ in range(self.max_parent_levels):
            parent = os.path.dirname(current)
            if parent == current:
                break
            candidates.append(parent)
            current = parent

        seen = set()
        dirs = []
        for candidate in candidates:
            key = canonical(candidate)
            if key in seen or not os.path.isdir(candidate):
                continue
            seen.add(key)
            dirs.append(candidate)
        return dirs

    def find_in_filesystem(self, name: str, project_dir: str | None = None) -> str | None:
        """Search the directories around the workspace for a project named ``name``."""
        key = name.casefold()
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                if os.path.isfile(cached):
                    self.stats["cache_hits"] += 1
                    return cached
                del self._cache[key]
                self.stats["cache_evictions"] += 1
                logger.debug(f"Cached project for {name} is gone: {cached}")

            self.stats["fallback_searches"] += 1
            for directory in self.search_directories(project_dir):
                logger.debug(f"Searching {directory} for project {name}")
                try:
                    for path in iter_project_files(directory, self.extensions, self.ignore):
                        if project_name(path).casefold() == key:
                            self._cache[key] = path
                            self.stats["fallback_hits"] += 1
                            return path
                except OSError as e:
                    logger.warning(f"Cannot search {directory}: {e}")

            return None
