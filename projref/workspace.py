"""Workspaces: where projects are enumerated from and registered into."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from projref.config import PROJECT_EXTENSIONS, REPLACED_PROJECTS_FOLDER, ProjectRecord
from projref.discovery import is_project_file, iter_project_records, project_name
from projref.dotnet.project import ProjectItem
from projref.dotnet.solution import SolutionFile, SolutionProject
from projref.errors import (
    DirectoryNotFoundError,
    InvalidArgumentError,
    ProjectFileNotFoundError,
)
from projref.paths import canonical

logger = logging.getLogger(__name__)


@runtime_checkable
class ProjectModel(Protocol):
    """An opened project file whose dependency items can be rewritten."""

    path: str
    modified: bool

    def get_items(self, kind: str) -> list[ProjectItem]:
        ...

    def remove_item(self, item: ProjectItem) -> None:
        ...

    def add_item(self, kind: str, value: str) -> ProjectItem:
        ...

    def save(self) -> None:
        ...


@runtime_checkable
class ProjectEnumerator(Protocol):
    def enumerate(self) -> list[ProjectRecord]:
        """Every buildable project of the workspace, flattened."""
        ...


@runtime_checkable
class FolderOrganizer(Protocol):
    def register(self, project_path: str) -> bool:
        """Add a project to the replaced-projects grouping.

        Returns False when a project of the same name is already there.
        Raises ProjectFileNotFoundError when the file does not exist.
        """
        ...


@runtime_checkable
class Workspace(ProjectEnumerator, FolderOrganizer, Protocol):
    path: str
    root_dir: str


def _require_file(project_path: str) -> str:
    project_path = os.path.abspath(project_path)
    if not os.path.isfile(project_path):
        raise ProjectFileNotFoundError(f"Project file does not exist: {project_path}")
    return project_path


class SolutionWorkspace:
    """A .sln solution; replaced projects go into a solution folder."""

    def __init__(
        self,
        solution: SolutionFile,
        folder_name: str = REPLACED_PROJECTS_FOLDER,
        extensions: Iterable[str] = PROJECT_EXTENSIONS,
    ) -> None:
        self.solution = solution
        self.folder_name = folder_name
        self.extensions = tuple(extensions)
        self._folder: SolutionProject | None = None

    @property
    def path(self) -> str:
        return self.solution.path

    @property
    def root_dir(self) -> str:
        return self.solution.root_dir

    def enumerate(self) -> list[ProjectRecord]:
        """Solution entries that are MSBuild project files.

        Web sites, database projects and other entries of other kinds are
        skipped.
        """
        records = []
        for project in self.solution.projects():
            if not is_project_file(project.path, self.extensions):
                logger.debug(f"Skipping solution entry {project.name}: {project.path} is not a project file")
                continue
            records.append(ProjectRecord(name=project.name, path=self.solution.absolute_path(project)))
        return records

    def _replaced_projects_folder(self) -> SolutionProject:
        if self._folder is None:
            self._folder = self.solution.find_folder(self.folder_name) or self.solution.add_folder(self.folder_name)
        return self._folder

    def register(self, project_path: str) -> bool:
        project_path = _require_file(project_path)
        name = project_name(project_path)

        existing = self.solution.find_folder(self.folder_name)
        if existing is not None:
            for child in self.solution.children_of(existing.project_guid):
                if child.name.casefold() == name.casefold():
                    logger.debug(f"{name} already in solution folder {self.folder_name}")
                    return False

        target = canonical(project_path)
        for project in self.solution.projects():
            if canonical(self.solution.absolute_path(project)) == target:
                logger.debug(f"{name} already part of the solution")
                return False

        folder = self._replaced_projects_folder()
        self.solution.add_project(project_path, folder.project_guid)
        self.solution.save()
        logger.info(f"Registered {project_path} in solution folder {self.folder_name}")
        return True


class DirectoryWorkspace:
    """A plain directory tree; every project file below it is a project.

    Registration is kept in memory, since there is no solution to edit.
    """

    def __init__(
        self,
        root_dir: str,
        extensions: Iterable[str] = PROJECT_EXTENSIONS,
        ignore: Iterable[str] | None = None,
    ) -> None:
        if not os.path.isdir(root_dir):
            raise DirectoryNotFoundError(f"Directory not found: {root_dir}")
        self.root_dir = os.path.abspath(root_dir)
        self.extensions = tuple(extensions)
        self.ignore = ignore
        self._registered: dict[str, str] = {}

    @property
    def path(self) -> str:
        return self.root_dir

    def enumerate(self) -> list[ProjectRecord]:
        return list(iter_project_records(self.root_dir, self.extensions, self.ignore))

    def register(self, project_path: str) -> bool:
        project_path = _require_file(project_path)
        key = project_name(project_path).casefold()
        if key in self._registered:
            return False
        self._registered[key] = project_path
        logger.info(f"Registered {project_path}")
        return True

    @property
    def registered(self) -> list[str]:
        return list(self._registered.values())


def open_workspace(
    path: str,
    folder_name: str = REPLACED_PROJECTS_FOLDER,
    extensions: Iterable[str] = PROJECT_EXTENSIONS,
    ignore: Iterable[str] | None = None,
) -> SolutionWorkspace | DirectoryWorkspace:
    """Open a .sln file or a directory as a workspace."""
    if not path or not path.strip():
        raise InvalidArgumentError("Workspace path must not be blank")
    if os.path.isdir(path):
        return DirectoryWorkspace(path, extensions=extensions, ignore=ignore)
    if path.lower().endswith(".sln"):
        return SolutionWorkspace(SolutionFile.load(path), folder_name=folder_name, extensions=extensions)
    raise InvalidArgumentError(f"Expected a .sln file or a directory: {path}")
