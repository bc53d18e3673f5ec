"""Sequential conversion phases with timing."""

from __future__ import annotations

import logging
import time

from projref.config import ConversionConfig, ConversionResult
from projref.graph.project_index import ProjectIndex
from projref.graph.reference_graph import ReferenceGraph
from projref.mapping import MappingStore
from projref.paths import PathResolver
from projref.resolution import ProjectResolver
from projref.walker import ReferenceGraphWalker
from projref.workspace import open_workspace

logger = logging.getLogger(__name__)


_PHASE_LABELS = {
    "workspace": "Opening workspace",
    "index": "Indexing project files",
    "mapping": "Loading package map",
    "convert": "Converting package references",
}


def run_conversion(
    config: ConversionConfig,
    progress_callback=None,
) -> ConversionResult:
    """Run the conversion phases and return the result.

    Args:
        config: Conversion configuration.
        progress_callback: Optional callable(phase_name, label) invoked
            when each phase starts. Used by the CLI for Rich progress.
    """
    timings: dict[str, float] = {}
    total_start = time.monotonic()
    ignore = config.ignore_set()
    paths = PathResolver(verify_base_exists=config.verify_paths)
    index = ProjectIndex(extensions=config.project_extensions, ignore=ignore)
    graph = ReferenceGraph()
    state: dict = {}

    def open_phase() -> None:
        state["workspace"] = open_workspace(
            config.workspace_path,
            folder_name=config.folder_name,
            extensions=config.project_extensions,
            ignore=ignore,
        )

    def index_phase() -> None:
        if config.use_index:
            index.build_index(state["workspace"].root_dir)

    def mapping_phase() -> None:
        mapping = MappingStore(state["workspace"].root_dir, path_resolver=paths, file_name=config.map_file_name)
        mapping.load_or_create()
        state["mapping"] = mapping

    def convert_phase() -> None:
        workspace = state["workspace"]
        resolver = ProjectResolver(
            workspace.root_dir,
            state["mapping"],
            index=index if config.use_index else None,
            path_resolver=paths,
            max_parent_levels=config.max_parent_levels,
            extensions=config.project_extensions,
            ignore=ignore,
            workspace_projects=workspace.enumerate,
        )
        walker = ReferenceGraphWalker(
            workspace,
            workspace,
            state["mapping"],
            resolver,
            path_resolver=paths,
            graph=graph,
        )
        walker.run()
        state["resolver"] = resolver
        state["walker"] = walker

    phases = [
        ("workspace", open_phase),
        ("index", index_phase),
        ("mapping", mapping_phase),
        ("convert", convert_phase),
    ]

    for name, phase_fn in phases:
        if progress_callback:
            progress_callback(name, _PHASE_LABELS.get(name, name))
        start = time.monotonic()
        phase_fn()
        timings[name] = time.monotonic() - start

    total_ms = (time.monotonic() - total_start) * 1000

    workspace = state["workspace"]
    cycles = graph.cycles()
    for cycle in cycles:
        logger.warning(f"Project reference cycle: {' -> '.join(cycle)}")

    return ConversionResult(
        workspace=workspace.path,
        root_dir=workspace.root_dir,
        map_file=state["mapping"].path,
        processed=graph.processed_projects(),
        conversions=list(state["walker"].conversions),
        unresolved=graph.unresolved(),
        registered=graph.registered_projects(),
        cycles=cycles,
        index_stats=index.get_stats() if config.use_index else None,
        resolver_stats=dict(state["resolver"].stats),
        timings=timings,
        metadata={"duration_ms": round(total_ms, 1)},
    )
