from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from sleuth.core.models import Cluster, CrawlPolicy, Graph, GraphMetadata
from sleuth.ports.transaction_history_port import TransactionHistoryPort
from sleuth.services.cluster_detector import ClusterDetector
from sleuth.services.graph_builder import CrawlState, GraphBuilder, ProgressFn
from sleuth.services.risk_scorer import RiskScorer


@dataclass
class ForensicReport:

    policy: CrawlPolicy
    graph: Graph
    clusters: List[Cluster]
    state: CrawlState
    as_of: int


class ForensicService:
    """
    Builds an investigator-friendly forensic graph from a seed address.

    - Crawl: depth/branch limited, one address at a time
    - Analysis: pattern clusters, per-address risk score and tags
    - Ignores: persistence, live monitoring, rendering
    """

    def __init__(
        self,
        history: TransactionHistoryPort,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[ProgressFn] = None,
        detector: Optional[ClusterDetector] = None,
        scorer: Optional[RiskScorer] = None,
    ) -> None:
        self.builder = GraphBuilder(history, sleep=sleep, on_progress=on_progress)
        self.detector = detector or ClusterDetector()
        self.scorer = scorer or RiskScorer()

    def analyze(
        self,
        policy: CrawlPolicy,
        as_of: Optional[int] = None,
        state: Optional[CrawlState] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ForensicReport:
        as_of = int(as_of) if as_of is not None else int(time.time())

        state = self.builder.crawl(policy, state=state, should_stop=should_stop)

        edges = state.edges.as_list()
        clusters = self.detector.detect(edges, state.nodes.nodes)
        self.scorer.score(state.nodes.nodes, clusters, as_of)

        graph = Graph(
            nodes=dict(state.nodes.nodes),
            edges=edges,
            metadata=GraphMetadata(
                seed_address=state.seed,
                depth=policy.max_depth,
                node_count=len(state.nodes.nodes),
                edge_count=len(edges),
                total_volume=state.edges.total_volume(),
                generated_at=dt.datetime.fromtimestamp(as_of, tz=dt.timezone.utc).isoformat(),
            ),
        )
        return ForensicReport(policy=policy, graph=graph, clusters=clusters, state=state, as_of=as_of)
