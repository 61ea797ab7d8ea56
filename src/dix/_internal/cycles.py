from __future__ import annotations

from dataclasses import dataclass

from dix._internal.providers import ProvidersRegistry, TypeKey, flatten_dependency


@dataclass(slots=True)
class CycleDetector:
    """Finds cycles in the type graph derived from registered providers.

    Each provided type has an edge to every type its providers consume. Record
    inputs contribute the types of their fields; listed and keyed inputs
    contribute their element type.
    """

    registry: ProvidersRegistry

    def find_cycle(self) -> list[TypeKey]:
        """Return the members of the first cycle found, or an empty list.

        Members appear once each, in traversal order starting from the type the
        search re-entered.
        """
        graph = self.build_graph()
        visited: set[TypeKey] = set()
        for start in graph:
            if start in visited:
                continue
            cycle = self._visit(start, graph=graph, visited=visited, path=[], on_path=set())
            if cycle:
                return cycle
        return []

    def build_graph(self) -> dict[TypeKey, list[TypeKey]]:
        """Return the adjacency list of provided types in registration order."""
        graph: dict[TypeKey, list[TypeKey]] = {}
        for provides in self.registry.types():
            edges: dict[TypeKey, None] = {}
            for node in self.registry.get_by_type(provides):
                for dependency in node.inputs:
                    edges.update(dict.fromkeys(flatten_dependency(dependency)))
            graph[provides] = list(edges)
        return graph

    def _visit(
        self,
        current: TypeKey,
        *,
        graph: dict[TypeKey, list[TypeKey]],
        visited: set[TypeKey],
        path: list[TypeKey],
        on_path: set[TypeKey],
    ) -> list[TypeKey]:
        visited.add(current)
        path.append(current)
        on_path.add(current)
        for neighbour in graph.get(current, ()):
            if neighbour in on_path:
                return path[path.index(neighbour) :]
            if neighbour in visited:
                continue
            cycle = self._visit(
                neighbour,
                graph=graph,
                visited=visited,
                path=path,
                on_path=on_path,
            )
            if cycle:
                return cycle
        path.pop()
        on_path.discard(current)
        return []


__all__ = ["CycleDetector"]
