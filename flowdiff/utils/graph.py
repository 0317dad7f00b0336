# flowdiff/utils/graph.py
from typing import Dict, Any, List

import networkx as nx

from flowdiff.model.document import WorkflowDocument


def build_graph(document: WorkflowDocument) -> nx.MultiDiGraph:
    """
    Build a directed multigraph keyed by node name.

    Every edge of the connection map becomes one graph edge carrying its port
    coordinates, so parallel connections between two nodes are all kept.
    Endpoints that do not name a node are still added, flagged with
    ``missing=True``.
    """
    G = nx.MultiDiGraph()
    for n in document.nodes:
        G.add_node(n.name, id=n.id, type=n.type, missing=False)

    # connections[<src>][<output port>][<slot>] -> [{node, type, index}, ...]
    for src, ports in document.connections.items():
        if src not in G:
            G.add_node(src, missing=True)
        for port, slots in ports.items():
            for slot_idx, slot in enumerate(slots):
                for e in slot:
                    if e.node not in G:
                        G.add_node(e.node, missing=True)
                    G.add_edge(
                        src,
                        e.node,
                        source_output=port,
                        source_index=slot_idx,
                        target_input=e.type,
                        target_index=e.index,
                    )
    return G


def missing_nodes(G: nx.MultiDiGraph) -> List[str]:
    return sorted(n for n, missing in G.nodes(data="missing") if missing)


def isolated_nodes(G: nx.MultiDiGraph) -> List[str]:
    """Real nodes with no incoming and no outgoing connection."""
    return sorted(
        n for n in nx.isolates(G) if not G.nodes[n].get("missing")
    )


def graph_summary(document: WorkflowDocument) -> Dict[str, Any]:
    """
    Compact structural summary used in CLI reports. Cycles are reported,
    never rejected.
    """
    G = build_graph(document)
    missing = missing_nodes(G)
    dangling = sum(1 for u, v in G.edges() if u in missing or v in missing)
    real = G.subgraph(n for n in G.nodes if n not in missing)
    return {
        "n_nodes": real.number_of_nodes(),
        "n_edges": G.number_of_edges(),
        "dangling_edges": dangling,
        "missing_nodes": missing,
        "isolated_nodes": isolated_nodes(G),
        "has_cycle": not nx.is_directed_acyclic_graph(real),
        "weak_components": nx.number_weakly_connected_components(real) if real.number_of_nodes() else 0,
    }
