from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from sleuth.core.enums import (
    ClusterPattern,
    EdgeDirection,
    FlowStatus,
    NodeKind,
    RiskLevel,
    TransferType,
)


LAMPORTS_PER_SOL = 10 ** 9



# Configuration model

@dataclass(frozen=True)
class CrawlPolicy:
    """
    Run configuration for one crawl.

    The same builder serves every run mode; modes only differ by the
    numbers below (see `CrawlPolicy.preset`).
    """

    address: str
    max_depth: int = 3
    window_size: int = 100

    # soft cap on crawled addresses per depth; the last entry covers deeper hops
    depth_quotas: Tuple[int, ...] = (1, 10, 20, 30)
    next_hop_cap: int = 10
    branch_cap: int = 5
    call_delay_sec: float = 0.1

    noise_threshold: int = 1000
    dedupe_flows: bool = True
    mode: str = "forensic"

    def __post_init__(self) -> None:
        if not self.address:
            raise ValueError("address must not be empty")
        for name in ("max_depth", "window_size", "next_hop_cap", "branch_cap"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.call_delay_sec < 0:
            raise ValueError(f"call_delay_sec must be >= 0, got {self.call_delay_sec}")

    def quota_for(self, depth: int) -> int:
        if not self.depth_quotas:
            return 0
        if depth < len(self.depth_quotas):
            return self.depth_quotas[depth]
        return self.depth_quotas[-1]

    @classmethod
    def preset(cls, mode: str, address: str, **overrides) -> "CrawlPolicy":
        presets = {
            "trace": dict(max_depth=0, window_size=1000),
            "audit": dict(max_depth=3),
            "forensic": dict(max_depth=3),
        }
        if mode not in presets:
            raise ValueError(f"Unknown mode: {mode}")
        base = cls(address=address, mode=mode, **presets[mode])
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(base, **overrides) if overrides else base



# Flow models

@dataclass(frozen=True)
class Flow:

    signature: str
    timestamp: int
    from_address: str
    to_address: str

    amount: int                 # minimal units
    amount_whole: Decimal
    transfer_type: TransferType
    status: FlowStatus

    def touches(self, address: str) -> bool:
        return self.from_address == address or self.to_address == address


@dataclass(frozen=True)
class TracedFlow:
    """A flow together with where in the crawl it was observed."""

    flow: Flow
    depth: int
    path: Tuple[str, ...]



# Graph models

@dataclass
class Node:

    address: str
    total_received: int = 0
    total_sent: int = 0
    transaction_count: int = 0
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None

    # hop distance of the first crawl; None for addresses only seen as counterparties
    depth: Optional[int] = None

    risk_score: int = 0
    tags: Set[str] = field(default_factory=set)
    counterparties: Dict[str, None] = field(default_factory=dict)

    @property
    def net_flow(self) -> int:
        return self.total_received - self.total_sent

    @property
    def volume(self) -> int:
        return self.total_received + self.total_sent

    @property
    def kind(self) -> NodeKind:
        return NodeKind.TARGET if self.depth == 0 else NodeKind.COUNTERPARTY

    @property
    def is_endpoint(self) -> bool:
        return self.depth is not None and self.depth > 0 and self.total_sent == 0

    @property
    def label(self) -> str:
        if len(self.address) <= 16:
            return self.address
        return f"{self.address[:8]}...{self.address[-6:]}"

    def seen_at(self, timestamp: int) -> None:
        if self.first_seen is None or timestamp < self.first_seen:
            self.first_seen = timestamp
        if self.last_seen is None or timestamp > self.last_seen:
            self.last_seen = timestamp

    def add_counterparty(self, address: str) -> None:
        if address != self.address:
            self.counterparties.setdefault(address, None)


@dataclass
class Edge:

    id: str
    source: str
    target: str

    weight: int = 0
    transaction_count: int = 0
    direction: EdgeDirection = EdgeDirection.UNIDIRECTIONAL
    flows: List[Flow] = field(default_factory=list)

    @property
    def avg_amount(self) -> Decimal:
        if not self.transaction_count:
            return Decimal("0")
        return Decimal(self.weight) / Decimal(self.transaction_count)


@dataclass
class Cluster:

    cluster_id: str
    addresses: List[str]
    total_volume: int
    transaction_count: int
    pattern: ClusterPattern
    risk_level: RiskLevel


@dataclass(frozen=True)
class GraphMetadata:

    seed_address: str
    depth: int
    node_count: int
    edge_count: int
    total_volume: int
    generated_at: str


@dataclass
class Graph:

    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)
    metadata: Optional[GraphMetadata] = None
