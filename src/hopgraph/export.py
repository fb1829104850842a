"""
Export of rendered traceroute graphs.

- JSON: the node/edge dicts the rendering layer consumes directly
- DOT: Graphviz text with one cluster per ASN, timeout hops drawn as gray
  ``*`` nodes and probe (origin) hops filled

DOT output does not use the computed coordinates; Graphviz lays the graph
out itself with ``rankdir=LR``.
"""

import json
from pathlib import Path
from typing import List, Optional

from .models import RenderedGraph

PROBE_COLOR = "lightblue"
TIMEOUT_COLOR = "gray"
HIGHLIGHT_COLOR = "red"


def to_json(graph: RenderedGraph, indent: int = 2) -> str:
    return json.dumps(graph.to_dict(), indent=indent)


def _esc(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


def to_dot(graph: RenderedGraph, title: str = "") -> str:
    """
    Render a graph as Graphviz DOT text.

    Args:
        graph: The rendered graph.
        title: Graph label; defaults to the merged probe id.
    """
    lines: List[str] = [
        "digraph traceroute {",
        f'  label="{_esc(title or graph.probe_id)}";',
        "  labelloc=t;",
        "  rankdir=LR;",
        "  node [shape=box];",
    ]

    for index, group in enumerate(graph.groups):
        lines.append(f"  subgraph cluster_{index} {{")
        lines.append(f'    label="{_esc(group.label)}";')
        members = [
            node.id
            for node in graph.nodes
            if node.node_type == "hop" and node.id in group.member_ids
        ]
        for member in members:
            lines.append(f'    "{_esc(member)}";')
        lines.append("  }")

    for node in graph.nodes:
        if node.node_type != "hop" or node.record is None:
            continue
        attrs = [f'label="{_esc(node.label)}"']
        if node.record.is_timeout:
            attrs.append(f'color="{TIMEOUT_COLOR}"')
        elif node.record.is_origin:
            attrs.append("style=filled")
            attrs.append(f'fillcolor="{PROBE_COLOR}"')
        elif node.style:
            attrs.append("style=filled")
            attrs.append(f'fillcolor="{_esc(node.style)}"')
        lines.append(f'  "{_esc(node.id)}" [{", ".join(attrs)}];')

    for styled in graph.edges:
        attrs = [
            f'label="{_esc(styled.label)}"',
            f"penwidth={styled.stroke_width:g}",
        ]
        if styled.edge.highlighted:
            attrs.append(f'color="{HIGHLIGHT_COLOR}"')
        lines.append(
            f'  "{_esc(styled.edge.source_id)}" -> "{_esc(styled.edge.target_id)}" '
            f"[{', '.join(attrs)}];"
        )

    lines.append("}")
    return "\n".join(lines) + "\n"


def save(graph: RenderedGraph, filename: str, fmt: Optional[str] = None) -> None:
    """
    Write a graph to ``filename``.

    ``fmt`` is "json" or "dot"; when omitted, .dot/.gv files get DOT and
    everything else JSON.
    """
    path = Path(filename)
    if fmt is None:
        fmt = "dot" if path.suffix.lower() in (".dot", ".gv") else "json"
    if fmt == "dot":
        path.write_text(to_dot(graph), encoding="utf-8")
    else:
        path.write_text(to_json(graph), encoding="utf-8")
