"""Sankey diagram: derive nodes and links from flow rows and draw them with Plotly.

Node and link placement is left to Plotly's Sankey trace.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import plotly.graph_objects as go  # type: ignore[import-untyped]
from plotly.colors import hex_to_rgb, qualitative  # type: ignore[import-untyped]

from sankey_proxy.models.data_models import FlowRecord

NO_DATA_MESSAGE = "No data available. Please adjust your filters."
DEFAULT_CATEGORY = "default"

WIDTH = 1200
HEIGHT = 600
MARGIN = {"t": 20, "r": 150, "b": 20, "l": 150}
NODE_THICKNESS = 15
NODE_PADDING = 10
LINK_OPACITY = 0.5
LINK_HOVER_OPACITY = 0.8


class CategoryColorMap:
    """Ordinal color scale: each new key takes the next palette color, cycling."""

    def __init__(self, palette: Sequence[str] | None = None):
        self.palette = list(palette or qualitative.D3)
        self._assigned: dict[str, str] = {}

    def __call__(self, key: str) -> str:
        if key not in self._assigned:
            self._assigned[key] = self.palette[len(self._assigned) % len(self.palette)]
        return self._assigned[key]


def _rgba(hex_color: str, alpha: float) -> str:
    r, g, b = hex_to_rgb(hex_color)
    return f"rgba({r}, {g}, {b}, {alpha})"


@dataclass
class SankeyLink:
    source: int
    target: int
    value: float
    category: str
    color: str


@dataclass
class SankeyGraph:
    nodes: list[str] = field(default_factory=list)
    links: list[SankeyLink] = field(default_factory=list)

    def index_of(self, label: str) -> int | None:
        try:
            return self.nodes.index(label)
        except ValueError:
            return None


def build_sankey_graph(
    records: Sequence[FlowRecord],
    color_map: CategoryColorMap | None = None,
) -> SankeyGraph:
    """Index distinct labels in first-seen order and map each record onto a link."""
    color_map = color_map or CategoryColorMap()
    index: dict[str, int] = {}
    for record in records:
        for label in (record.source, record.target):
            if label not in index:
                index[label] = len(index)

    links: list[SankeyLink] = []
    for record in records:
        if record.value < 0:
            raise ValueError(f"Negative flow value {record.value} for {record.source} -> {record.target}")
        category = record.split_category or DEFAULT_CATEGORY
        links.append(
            SankeyLink(
                source=index[record.source],
                target=index[record.target],
                value=record.value,
                category=category,
                color=color_map(category),
            )
        )
    return SankeyGraph(nodes=list(index), links=links)


def build_figure(graph: SankeyGraph) -> go.Figure:
    node_colors = CategoryColorMap()
    fig = go.Figure(
        go.Sankey(
            arrangement="snap",
            node={
                "label": graph.nodes,
                "pad": NODE_PADDING,
                "thickness": NODE_THICKNESS,
                "line": {"color": "#000", "width": 1},
                "color": [node_colors(str(i)) for i in range(len(graph.nodes))],
                "hovertemplate": "%{label}<br>Value: %{value}<extra></extra>",
            },
            link={
                "source": [link.source for link in graph.links],
                "target": [link.target for link in graph.links],
                "value": [link.value for link in graph.links],
                "label": [link.category for link in graph.links],
                "color": [_rgba(link.color, LINK_OPACITY) for link in graph.links],
                "hovercolor": [_rgba(link.color, LINK_HOVER_OPACITY) for link in graph.links],
                "hovertemplate": "%{source.label} → %{target.label}<br>Value: %{value}<extra></extra>",
            },
        )
    )
    fig.update_layout(width=WIDTH, height=HEIGHT, margin=MARGIN, font={"size": 12, "color": "#333"})
    return fig


class SankeyDiagram:
    """Draws flow rows onto a Streamlit container and reports node clicks.

    ``surface`` is anything exposing Streamlit's ``empty()`` container API.
    """

    def __init__(self, surface: Any, on_node_click: Callable[[str], None] | None = None):
        self.placeholder = surface.empty()
        self.on_node_click = on_node_click
        self.graph = SankeyGraph()

    def render(self, records: Sequence[FlowRecord]) -> go.Figure | None:
        # Full redraw; prior geometry is dropped first
        self.placeholder.empty()
        if not records:
            self.graph = SankeyGraph()
            self.placeholder.info(NO_DATA_MESSAGE)
            return None

        self.graph = build_sankey_graph(records)
        fig = build_figure(self.graph)
        self.placeholder.plotly_chart(fig, width="stretch")
        return fig

    def click_node(self, label: str) -> bool:
        """Report a click on a rendered node; returns False for unknown labels."""
        if self.graph.index_of(label) is None:
            return False
        if self.on_node_click is not None:
            self.on_node_click(label)
        return True
