"""Invocation call graphs built from host frames."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import networkx as nx

try:
    import matplotlib.pyplot as plt
except ModuleNotFoundError:  # pragma: no cover
    plt = None

try:
    import pydot
except ModuleNotFoundError:  # pragma: no cover
    pydot = None

from ..constants import GRADE_COLORS, SYSTEM_PROGRAM_ID
from .host import Frame


def _frame_label(frame: Frame) -> str:
    if frame.program_id == SYSTEM_PROGRAM_ID:
        name, mode = "system", "create_account"
    else:
        name, mode = frame.program_id.short(), ("init" if frame.data else "resume")
    return f"{name} {mode}\n[h={frame.height} {frame.status}]"


def _frame_color(frame: Frame) -> str:
    if frame.status == "failed":
        return GRADE_COLORS["failed"]
    return GRADE_COLORS.get(frame.grade or "pure", "#B0BEC5")


def build_call_graph(frames: Iterable[Frame]) -> nx.DiGraph:
    """Directed graph of invocation frames; edges point caller → callee."""

    graph = nx.DiGraph()
    for frame in frames:
        graph.add_node(
            frame.frame_id,
            label=_frame_label(frame),
            color=_frame_color(frame),
            program=frame.program_id.hex(),
            height=frame.height,
            status=frame.status,
            error=frame.error,
            logs=list(frame.logs),
        )
        if frame.parent_id is not None:
            graph.add_edge(frame.parent_id, frame.frame_id)
    return graph


def max_height(frames: Iterable[Frame]) -> int:
    return max((frame.height for frame in frames), default=0)


def self_invocation_chain(graph: nx.DiGraph, program_id: bytes) -> list[int]:
    """Frame ids of the longest caller → callee path, skipping other programs."""

    if graph.number_of_nodes() == 0:
        return []
    target = bytes(program_id).hex()
    path = nx.dag_longest_path(graph)
    return [node for node in path if graph.nodes[node]["program"] == target]


def export_graphviz(frames, output_path):
    """Export the invocation tree as a Graphviz SVG."""

    if pydot is None:
        raise RuntimeError("Graphviz export requires pydot to be installed")

    graph = build_call_graph(frames)
    dot = pydot.Dot(
        "fibra_invocations",
        graph_type="digraph",
        rankdir="TB",
        fontname="Helvetica",
    )
    for node_id, attrs in graph.nodes(data=True):
        label = attrs["label"].replace("\n", "\\n")
        dot.add_node(
            pydot.Node(
                str(node_id),
                label=label,
                shape="box",
                style="filled",
                fillcolor=attrs["color"],
                color="#34495e",
                fontname="Helvetica",
            )
        )
    for src, dst in graph.edges():
        dot.add_edge(pydot.Edge(str(src), str(dst), color="#7f8c8d", arrowsize="0.8"))

    output_path = Path(output_path)
    if output_path.parent and not output_path.parent.exists():
        output_path.parent.mkdir(parents=True, exist_ok=True)

    dot.write_svg(str(output_path))
    print(f"  ✓ Invocation graph exported → {output_path}")


def visualize_calls(frames):
    """Draw the invocation tree with matplotlib, one row per stack height."""

    if plt is None:
        raise RuntimeError("Visualization requires matplotlib to be installed")

    graph = build_call_graph(frames)
    positions = {}
    per_height: dict[int, int] = {}
    for node_id, attrs in graph.nodes(data=True):
        height = attrs["height"]
        column = per_height.get(height, 0)
        per_height[height] = column + 1
        positions[node_id] = (column, -height)

    nx.draw(
        graph,
        positions,
        labels={n: a["label"] for n, a in graph.nodes(data=True)},
        node_color=[a["color"] for _, a in graph.nodes(data=True)],
        node_size=2600,
        font_size=7,
        node_shape="s",
    )
    plt.title("fibra invocation stack")
    plt.show()


__all__ = [
    "build_call_graph",
    "export_graphviz",
    "max_height",
    "self_invocation_chain",
    "visualize_calls",
]
