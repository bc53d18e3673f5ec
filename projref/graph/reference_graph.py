"""Record of a conversion run backed by networkx.DiGraph."""

from __future__ import annotations

import networkx as nx

from projref.config import ConvertedReference


class ReferenceGraph:
    """Projects and packages as nodes, what happened to each reference as edges.

    Edge types:
        CONVERTED: project -> project, a package reference was replaced
        UNRESOLVED: project -> package, left as a package reference
        REFERENCES: project -> project, found while registering sub-projects
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    # --- Node addition ---

    def add_project(self, path: str, processed: bool = False, registered: bool = False) -> None:
        node = f"project:{path}"
        if node in self.graph:
            attrs = self.graph.nodes[node]
            attrs["processed"] = attrs.get("processed", False) or processed
            attrs["registered"] = attrs.get("registered", False) or registered
        else:
            self.graph.add_node(node, node_type="project", path=path, processed=processed, registered=registered)

    def add_package(self, package_id: str) -> None:
        self.graph.add_node(f"package:{package_id}", node_type="package", package_id=package_id)

    # --- Edge addition ---

    def add_conversion(self, ref: ConvertedReference) -> None:
        self.add_project(ref.project)
        self.add_project(ref.target)
        self.graph.add_edge(
            f"project:{ref.project}",
            f"project:{ref.target}",
            edge_type="CONVERTED",
            package_id=ref.package_id,
            relative_path=ref.relative_path,
            strategy=ref.strategy,
        )

    def add_unresolved(self, project: str, package_id: str, version: str = "") -> None:
        self.add_project(project)
        self.add_package(package_id)
        self.graph.add_edge(
            f"project:{project}",
            f"package:{package_id}",
            edge_type="UNRESOLVED",
            version=version,
        )

    def add_project_reference(self, from_project: str, to_project: str) -> None:
        self.add_project(from_project)
        self.add_project(to_project)
        if not self.graph.has_edge(f"project:{from_project}", f"project:{to_project}"):
            self.graph.add_edge(
                f"project:{from_project}",
                f"project:{to_project}",
                edge_type="REFERENCES",
            )

    # --- Queries ---

    def _edges(self, edge_type: str) -> list[tuple[str, str, dict]]:
        return [(u, v, d) for u, v, d in self.graph.edges(data=True) if d.get("edge_type") == edge_type]

    def processed_projects(self) -> list[str]:
        return [d["path"] for _, d in self.graph.nodes(data=True) if d.get("processed")]

    def registered_projects(self) -> list[str]:
        return [d["path"] for _, d in self.graph.nodes(data=True) if d.get("registered")]

    def conversions(self) -> list[dict]:
        return [
            {
                "project": self.graph.nodes[u]["path"],
                "target": self.graph.nodes[v]["path"],
                "package_id": d["package_id"],
                "relative_path": d["relative_path"],
                "strategy": d["strategy"],
            }
            for u, v, d in self._edges("CONVERTED")
        ]

    def unresolved(self) -> dict[str, list[str]]:
        """project path -> package ids left as package references."""
        result: dict[str, list[str]] = {}
        for u, v, _ in self._edges("UNRESOLVED"):
            result.setdefault(self.graph.nodes[u]["path"], []).append(self.graph.nodes[v]["package_id"])
        return result

    def dependents(self, project: str) -> list[str]:
        """Projects that now reference ``project`` directly."""
        node = f"project:{project}"
        if node not in self.graph:
            return []
        return [
            self.graph.nodes[u]["path"]
            for u in self.graph.predecessors(node)
            if self.graph.edges[u, node].get("edge_type") in ("CONVERTED", "REFERENCES")
        ]

    def cycles(self) -> list[list[str]]:
        """Reference cycles among projects, each as a list of project paths."""
        project_graph = nx.DiGraph()
        for u, v, _ in self._edges("CONVERTED") + self._edges("REFERENCES"):
            project_graph.add_edge(self.graph.nodes[u]["path"], self.graph.nodes[v]["path"])
        return [sorted(cycle) for cycle in nx.simple_cycles(project_graph)]
