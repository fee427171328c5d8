from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from sleuth.core.models import LAMPORTS_PER_SOL, Cluster, Edge, Flow, Graph, Node


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def to_whole(lamports: int) -> str:
    return f"{Decimal(lamports) / Decimal(LAMPORTS_PER_SOL):.9f}"


def flow_to_dict(f: Flow) -> Dict[str, Any]:
    return {
        "signature": f.signature,
        "timestamp": f.timestamp,
        "from": f.from_address,
        "to": f.to_address,
        "amount": f.amount,
        "amount_whole": _dec_to_str(f.amount_whole),
        "type": f.transfer_type.value,
        "status": f.status.value,
    }


def node_to_dict(n: Node) -> Dict[str, Any]:
    return {
        "id": n.address,
        "label": n.label,
        "type": n.kind.value,
        "depth": n.depth,
        "total_received": n.total_received,
        "total_sent": n.total_sent,
        "transaction_count": n.transaction_count,
        "first_seen": n.first_seen,
        "last_seen": n.last_seen,
        "risk_score": n.risk_score,
        "tags": sorted(n.tags),
        "counterparties": list(n.counterparties),
    }


def edge_to_dict(e: Edge) -> Dict[str, Any]:
    return {
        "id": e.id,
        "source": e.source,
        "target": e.target,
        "weight": e.weight,
        "transaction_count": e.transaction_count,
        "direction": e.direction.value,
        "transactions": [flow_to_dict(f) for f in e.flows],
    }


def cluster_to_dict(c: Cluster) -> Dict[str, Any]:
    return {
        "cluster_id": c.cluster_id,
        "addresses": list(c.addresses),
        "total_volume": c.total_volume,
        "transaction_count": c.transaction_count,
        "pattern": c.pattern.value,
        "risk_level": c.risk_level.value,
    }


def graph_to_dict(g: Graph, clusters: List[Cluster] | None = None) -> Dict[str, Any]:
    meta = g.metadata
    out: Dict[str, Any] = {
        "nodes": [node_to_dict(n) for n in g.nodes.values()],
        "edges": [edge_to_dict(e) for e in g.edges],
        "metadata": None,
    }
    if meta is not None:
        out["metadata"] = {
            "target_address": meta.seed_address,
            "depth": meta.depth,
            "total_nodes": meta.node_count,
            "total_edges": meta.edge_count,
            "total_volume": meta.total_volume,
            "analysis_date": meta.generated_at,
        }
    if clusters is not None:
        out["clusters"] = [cluster_to_dict(c) for c in clusters]
    return out
