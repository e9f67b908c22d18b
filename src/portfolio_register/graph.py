"""Dependency graph builder.

Builds a lane-based directed graph from each application's downstream ids.
The graph is rebuilt from scratch on every call. Edges whose target is not in
scope (deleted, or filtered out by the domain scope) are dropped.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from .classifier import classify
from .config import GraphConfig, get_config
from .schema import (
    AppTier,
    Application,
    EnrichedApplication,
    PiiRisk,
    SCOPE_ALL,
    TIER_ORDER,
    UNASSIGNED,
)


@dataclass
class GraphNode:
    """A positioned application node.

    Carries the attributes the security, tech-debt and cost lenses need.
    """
    id: str
    name: str
    code: str
    tier: AppTier
    lane: int
    row: int
    x: float
    y: float
    capability: str
    domain: str
    disposition: str
    pii_risk: PiiRisk
    technical_debt: str
    cost_total: float
    lifecycle_status: str


@dataclass
class GraphEdge:
    """A directed dependency from source to target.

    Risk is read from the endpoint nodes, never stored on the edge.
    """
    source: GraphNode
    target: GraphNode

    @property
    def id(self) -> str:
        return f"{self.source.id}-{self.target.id}"

    @property
    def is_high_risk(self) -> bool:
        return self.source.pii_risk == PiiRisk.HIGH or self.target.pii_risk == PiiRisk.HIGH


@dataclass
class DependencyGraph:
    """View-ready dependency graph."""
    scope: str
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    lane_heights: dict[str, int] = field(default_factory=dict)

    def node(self, node_id: str) -> Optional[GraphNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def high_risk_edges(self) -> list[GraphEdge]:
        return [e for e in self.edges if e.is_high_risk]

    def lane(self, tier: AppTier) -> list[GraphNode]:
        """Nodes of one lane, top to bottom."""
        return [n for n in self.nodes if n.tier == tier]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for a renderer; edge risk is resolved here."""
        return {
            "scope": self.scope,
            "lanes": [tier.value for tier in TIER_ORDER],
            "lane_heights": dict(self.lane_heights),
            "nodes": [
                {
                    "id": n.id,
                    "name": n.name,
                    "code": n.code,
                    "tier": n.tier.value,
                    "lane": n.lane,
                    "x": n.x,
                    "y": n.y,
                    "capability": n.capability,
                    "domain": n.domain,
                    "disposition": n.disposition,
                    "pii_risk": n.pii_risk.value,
                    "technical_debt": n.technical_debt,
                    "cost_total": n.cost_total,
                    "lifecycle_status": n.lifecycle_status,
                }
                for n in self.nodes
            ],
            "edges": [
                {
                    "id": e.id,
                    "source": e.source.id,
                    "target": e.target.id,
                    "high_risk": e.is_high_risk,
                }
                for e in self.edges
            ],
        }


def filter_scope(apps: Iterable[Application], scope: str = SCOPE_ALL) -> list[Application]:
    """Keep applications whose domain equals scope; "ALL" keeps everything."""
    if scope == SCOPE_ALL:
        return list(apps)
    return [a for a in apps if (a.domain or UNASSIGNED) == scope]


def build_graph(
    apps: Iterable[Union[Application, EnrichedApplication]],
    scope: str = SCOPE_ALL,
    layout: Optional[GraphConfig] = None,
) -> DependencyGraph:
    """Build the dependency graph for the applications in scope.

    Args:
        apps: Applications or enriched applications, in display order.
        scope: A domain name, or "ALL".
        layout: Lane positions and spacing; defaults to the loaded config.

    Returns:
        DependencyGraph with positioned nodes and in-scope edges only.
    """
    layout = layout or get_config().graph

    dispositions = {}
    plain = []
    for item in apps:
        if isinstance(item, EnrichedApplication):
            dispositions[item.application.id] = item.disposition.label.value
            plain.append(item.application)
        else:
            plain.append(item)

    in_scope = filter_scope(plain, scope)
    lane_counts = {tier.value: 0 for tier in TIER_ORDER}
    graph = DependencyGraph(scope=scope)
    by_id: dict[str, GraphNode] = {}

    for app in in_scope:
        tier = AppTier(app.tier)
        row = lane_counts[tier.value]
        lane_counts[tier.value] += 1
        disposition = dispositions.get(app.id) or classify(app.value, app.health).label.value
        node = GraphNode(
            id=app.id,
            name=app.name,
            code=app.code,
            tier=tier,
            lane=TIER_ORDER.index(tier),
            row=row,
            x=layout.lane_x.get(tier.value, 0),
            y=row * layout.y_spacing + layout.y_offset,
            capability=app.capability_id or UNASSIGNED,
            domain=app.domain or UNASSIGNED,
            disposition=disposition,
            pii_risk=app.security.pii_risk,
            technical_debt=app.technical_debt.value,
            cost_total=app.costs.total,
            lifecycle_status=app.lifecycle.status.value,
        )
        graph.nodes.append(node)
        by_id.setdefault(app.id, node)

    seen = set()
    for app in in_scope:
        source = by_id[app.id]
        for target_id in app.downstream_ids:
            target = by_id.get(target_id)
            if target is None or (source.id, target.id) in seen:
                continue
            seen.add((source.id, target.id))
            graph.edges.append(GraphEdge(source=source, target=target))

    graph.lane_heights = lane_counts
    return graph
