"""Rewriting package references into project references across a workspace."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from projref.config import (
    PACKAGE_REFERENCE,
    PROJECT_REFERENCE,
    ConvertedReference,
    ResolutionStrategy,
)
from projref.discovery import project_name
from projref.dotnet.project import MSBuildProject
from projref.graph.reference_graph import ReferenceGraph
from projref.mapping import MappingStore
from projref.paths import PathResolver, canonical
from projref.resolution import ProjectResolver
from projref.workspace import FolderOrganizer, ProjectEnumerator, ProjectModel

logger = logging.getLogger(__name__)

ProjectLoader = Callable[[str], ProjectModel]


class ReferenceGraphWalker:
    """Walks every project of a workspace and swaps package references for
    project references wherever the package's source project can be found.

    Projects are taken from an explicit depth-first work stack. A project
    pulled in as a replacement is pushed on the stack so its own package
    references get converted too. The visited set, keyed by canonical
    path, guarantees each project is rewritten at most once per run, which
    also makes reference cycles terminate.

    A project file is saved only after all of its references were handled,
    so an error part way through (a replacement that cannot be registered)
    leaves the file on disk as it was.
    """

    def __init__(
        self,
        enumerator: ProjectEnumerator,
        organizer: FolderOrganizer,
        mapping: MappingStore,
        resolver: ProjectResolver,
        path_resolver: PathResolver | None = None,
        loader: ProjectLoader = MSBuildProject.load,
        graph: ReferenceGraph | None = None,
    ) -> None:
        self.enumerator = enumerator
        self.organizer = organizer
        self.mapping = mapping
        self.resolver = resolver
        self.paths = path_resolver or PathResolver()
        self.loader = loader
        self.graph = graph or ReferenceGraph()
        self.visited: set[str] = set()
        self.conversions: list[ConvertedReference] = []

    def run(self) -> ReferenceGraph:
        """Process every enumerated project, then persist the package map."""
        self.visited.clear()
        self.conversions = []

        records = list(self.enumerator.enumerate())
        logger.info(f"Converting package references in {len(records)} projects")

        stack = [record.path for record in reversed(records)]
        while stack:
            discovered = self.process(stack.pop())
            stack.extend(reversed(discovered))

        self.mapping.save()
        logger.info(
            f"Converted {len(self.conversions)} package references "
            f"across {len(self.visited)} projects"
        )
        return self.graph

    def process(self, project_path: str | None) -> list[str]:
        """Rewrite one project. Returns projects that still need processing."""
        if not project_path or not project_path.strip():
            return []

        key = canonical(project_path)
        if key in self.visited:
            logger.debug(f"Already processed {project_path}")
            return []
        self.visited.add(key)

        project_path = os.path.abspath(project_path)
        model = self.loader(project_path)
        project_dir = os.path.dirname(project_path)
        self.graph.add_project(project_path, processed=True)

        discovered: list[str] = []
        for item in model.get_items(PACKAGE_REFERENCE):
            package_id = item.include
            resolution = self.resolver.resolve_package(package_id, project_dir)

            if resolution.strategy not in (ResolutionStrategy.MAPPING, ResolutionStrategy.NEGATIVE_CACHE):
                self.mapping.put(package_id, resolution.path)

            if not resolution.found:
                self.graph.add_unresolved(project_path, package_id, item.version)
                continue

            target = resolution.path
            if canonical(target) == key:
                logger.warning(f"Package {package_id} resolves to {project_path} itself, left as is")
                self.graph.add_unresolved(project_path, package_id, item.version)
                continue

            # Registration may fail; nothing in the model has changed yet.
            registered = self.register(target)

            relative = self.paths.to_relative(project_dir, target)
            model.remove_item(item)
            if not self._references(model, project_dir, target):
                model.add_item(PROJECT_REFERENCE, relative)

            ref = ConvertedReference(
                project=project_path,
                package_id=package_id,
                target=target,
                relative_path=relative,
                strategy=resolution.strategy.value,
            )
            self.conversions.append(ref)
            self.graph.add_conversion(ref)
            logger.info(f"{project_name(project_path)}: {package_id} -> {relative}")

            discovered.append(target)
            discovered.extend(registered)

        if model.modified:
            model.save()
        return discovered

    def register(self, project_path: str) -> list[str]:
        """Register a replacement project and, transitively, the projects it references.

        Only projects the organizer did not know yet are descended into.
        Returns the newly registered paths.
        """
        added: list[str] = []
        pending = [project_path]
        while pending:
            current = pending.pop()
            if not self.organizer.register(current):
                continue
            added.append(current)
            self.graph.add_project(current, registered=True)

            sub_project = self.loader(current)
            sub_dir = os.path.dirname(current)
            for item in reversed(sub_project.get_items(PROJECT_REFERENCE)):
                resolution = self.resolver.resolve_include(item.include, sub_dir)
                self.graph.add_project_reference(current, resolution.path)
                pending.append(resolution.path)

        return added

    def _references(self, model: ProjectModel, project_dir: str, target: str) -> bool:
        """Whether ``model`` already has a ProjectReference to ``target``."""
        target_key = canonical(target)
        for item in model.get_items(PROJECT_REFERENCE):
            if canonical(self.paths.to_absolute(project_dir, item.include)) == target_key:
                return True
        return False
