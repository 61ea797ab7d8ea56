from __future__ import annotations

from dataclasses import dataclass, field
from textwrap import indent

from dix._internal.providers import ProvidersRegistry, TypeKey, flatten_dependency
from dix._internal.reflection import type_name
from dix._internal.resolver import ObjectStore

_INDENT = " " * 4
_GRAPH_ATTRIBUTES = """\
layout=dot;
rankdir=LR;
overlap=false;
splines=true;
nodesep=0.5;
ranksep=1.0;
concentrate=true;
node [shape=box, style=filled, fillcolor="#F9F9F9", color="#666666", fontsize=8, fontname="Arial"];
edge [arrowhead=vee, arrowsize=0.4, color="#888888", penwidth=0.5];"""


@dataclass(frozen=True, slots=True)
class Graph:
    """DOT renderings of a container's providers and stored objects."""

    providers: str
    """Edges from each input type to its provider and from each provider to its output types."""

    objects: str
    """One edge per stored ``(type, group, value)`` triple."""


@dataclass(slots=True)
class DotRenderer:
    """Accumulates DOT statements with subgraph indentation."""

    _lines: list[str] = field(default_factory=list)
    _depth: int = 0

    def write(self, statement: str) -> None:
        self._lines.append(indent(statement, _INDENT * self._depth))

    def edge(self, source: str, target: str) -> None:
        self.write(f"{quote(source)} -> {quote(target)};")

    def begin_graph(self) -> None:
        self.write("digraph G {")
        self._depth += 1

    def begin_subgraph(self, name: str, label: str) -> None:
        self.write(f"subgraph {name} {{")
        self._depth += 1
        self.write(f"label={quote(label)};")

    def end(self) -> None:
        self._depth -= 1
        self.write("}")

    def render(self) -> str:
        return "\n".join(self._lines) + "\n"


def quote(identifier: str) -> str:
    """Return a DOT double-quoted identifier.

    Args:
        identifier: Type, provider or group label.

    """
    escaped = identifier.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def render_providers(registry: ProvidersRegistry) -> str:
    """Render the provider graph of a registry as DOT text.

    Args:
        registry: Registry whose nodes are rendered in registration order.

    """
    renderer = DotRenderer()
    renderer.begin_graph()
    renderer.write(_GRAPH_ATTRIBUTES)
    renderer.begin_subgraph("cluster_providers", "providers")
    for node in registry.values():
        for provides in node.output_types:
            renderer.edge(node.name, type_name(provides))
        input_types: dict[str, None] = {}
        for dependency in node.inputs:
            input_types.update(
                dict.fromkeys(type_name(consumed) for consumed in flatten_dependency(dependency)),
            )
        for input_type in input_types:
            renderer.edge(input_type, node.name)
    renderer.end()
    renderer.end()
    return renderer.render()


def render_objects(store: ObjectStore) -> str:
    """Render the stored objects as DOT text.

    Args:
        store: Object store whose values are rendered in insertion order.

    """
    renderer = DotRenderer()
    renderer.begin_graph()
    renderer.begin_subgraph("cluster_objects", "objects")
    positions: dict[tuple[TypeKey, str], int] = {}
    for provides, group, value in store.items():
        position = positions.get((provides, group), 0)
        positions[(provides, group)] = position + 1
        renderer.edge(
            type_name(provides),
            f"{group} -> {type(value).__qualname__} #{position}",
        )
    renderer.end()
    renderer.end()
    return renderer.render()


__all__ = ["DotRenderer", "Graph", "quote", "render_objects", "render_providers"]
