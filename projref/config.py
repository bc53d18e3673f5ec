"""Core data types and configuration for projref conversions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PACKAGE_REFERENCE = "PackageReference"
PROJECT_REFERENCE = "ProjectReference"

PROJECT_EXTENSIONS = (".csproj", ".vbproj", ".fsproj")

MAP_FILE_NAME = "NuGetToProjectReferenceMap.json"
REPLACED_PROJECTS_FOLDER = "!ReplacedProjects"

DEFAULT_IGNORE = {
    ".git", ".vs", ".idea", "bin", "obj", "node_modules", "TestResults",
}


class ResolutionStrategy(str, Enum):
    MAPPING = "mapping"
    INDEX = "index"
    WORKSPACE = "workspace"
    FILESYSTEM = "filesystem"
    INCLUDE = "include"
    NEGATIVE_CACHE = "negative_cache"
    MISS = "miss"


@dataclass(frozen=True)
class ProjectRecord:
    """A project known to the workspace."""
    name: str
    path: str


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a package id or include to a project file.

    A miss is a normal outcome: ``path`` is None and ``strategy`` says
    whether the map already knew nothing exists (NEGATIVE_CACHE) or every
    lookup came back empty (MISS).
    """
    path: str | None
    strategy: ResolutionStrategy

    @property
    def found(self) -> bool:
        return self.path is not None


@dataclass(frozen=True)
class DuplicateProject:
    name: str
    kept: str
    ignored: str


@dataclass
class IndexStats:
    total_projects: int = 0
    indexed_directories: int = 0
    build_duration: float = 0.0  # seconds
    root_dir: str | None = None
    duplicates: int = 0


@dataclass
class ConvertedReference:
    project: str
    package_id: str
    target: str
    relative_path: str
    strategy: str


@dataclass
class ConversionConfig:
    workspace_path: str = ""
    map_file_name: str = MAP_FILE_NAME
    max_parent_levels: int = 2
    use_index: bool = True
    verify_paths: bool = True
    exclude_patterns: list[str] = field(default_factory=list)
    project_extensions: tuple[str, ...] = PROJECT_EXTENSIONS
    folder_name: str = REPLACED_PROJECTS_FOLDER
    verbose: bool = False
    quiet: bool = False

    def ignore_set(self) -> set[str]:
        ignore = set(DEFAULT_IGNORE)
        ignore.update(self.exclude_patterns)
        return ignore


@dataclass
class ConversionResult:
    workspace: str = ""
    root_dir: str = ""
    map_file: str = ""
    processed: list[str] = field(default_factory=list)
    conversions: list[ConvertedReference] = field(default_factory=list)
    unresolved: dict[str, list[str]] = field(default_factory=dict)
    registered: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    index_stats: IndexStats | None = None
    resolver_stats: dict[str, int] = field(default_factory=dict)
    timings: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
