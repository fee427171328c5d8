from __future__ import annotations

from typing import Dict, List, Optional

from sleuth.core.enums import EdgeDirection
from sleuth.core.models import Edge, Flow, Node


class EdgeAggregator:
    """
    Folds flows into one weighted edge per unordered address pair.

    The first flow between a pair fixes the edge's (source, target)
    orientation. Traffic in the opposite direction accumulates on the same
    edge and promotes it to bidirectional. Every flow is kept on its edge
    for transaction-level export, so memory grows with pair activity.
    """

    def __init__(self, edges: Optional[Dict[str, Edge]] = None) -> None:
        self.edges: Dict[str, Edge] = edges if edges is not None else {}

    @staticmethod
    def edge_id(from_address: str, to_address: str) -> str:
        return f"{from_address}-{to_address}"

    def upsert_edge(self, from_address: str, to_address: str, amount: int, flow: Optional[Flow] = None) -> Edge:
        forward = self.edges.get(self.edge_id(from_address, to_address))
        if forward is not None:
            return self._accumulate(forward, amount, flow)

        reverse = self.edges.get(self.edge_id(to_address, from_address))
        if reverse is not None:
            reverse.direction = EdgeDirection.BIDIRECTIONAL
            return self._accumulate(reverse, amount, flow)

        edge = Edge(
            id=self.edge_id(from_address, to_address),
            source=from_address,
            target=to_address,
            weight=amount,
            transaction_count=1,
            direction=EdgeDirection.UNIDIRECTIONAL,
            flows=[flow] if flow is not None else [],
        )
        self.edges[edge.id] = edge
        return edge

    def add_flow(self, flow: Flow) -> Edge:
        return self.upsert_edge(flow.from_address, flow.to_address, flow.amount, flow)

    def total_volume(self) -> int:
        return sum(e.weight for e in self.edges.values())

    def as_list(self) -> List[Edge]:
        return list(self.edges.values())

    @staticmethod
    def _accumulate(edge: Edge, amount: int, flow: Optional[Flow]) -> Edge:
        edge.weight += amount
        edge.transaction_count += 1
        if flow is not None:
            edge.flows.append(flow)
        return edge


class NodeAggregator:
    """Running per-address totals. Nodes are created on first reference and never removed."""

    def __init__(self, nodes: Optional[Dict[str, Node]] = None) -> None:
        self.nodes: Dict[str, Node] = nodes if nodes is not None else {}

    def ensure(self, address: str, depth: Optional[int] = None) -> Node:
        node = self.nodes.get(address)
        if node is None:
            node = Node(address=address)
            self.nodes[address] = node
        if depth is not None and node.depth is None:
            node.depth = depth
        return node

    def record_flow(self, flow: Flow) -> None:
        sender = self.ensure(flow.from_address)
        receiver = self.ensure(flow.to_address)

        sender.total_sent += flow.amount
        sender.transaction_count += 1
        sender.seen_at(flow.timestamp)
        sender.add_counterparty(receiver.address)

        receiver.total_received += flow.amount
        if receiver is not sender:
            receiver.transaction_count += 1
            receiver.seen_at(flow.timestamp)
        receiver.add_counterparty(sender.address)

    def count_at_depth(self, depth: int) -> int:
        return sum(1 for n in self.nodes.values() if n.depth == depth)
