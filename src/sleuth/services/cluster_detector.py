from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping

from sleuth.core.enums import ClusterPattern, EdgeDirection, RiskLevel
from sleuth.core.models import LAMPORTS_PER_SOL, Cluster, Edge, Node

log = logging.getLogger("sleuth.cluster_detector")


class ClusterDetector:
    """
    Labels each edge with a behavioral pattern and groups every address
    touching edges of the same pattern into one cluster per pattern.

    Grouping is by pattern category across the whole graph, not by connected
    component, so two unrelated mixing pairs land in the same cluster.
    """

    MIXING_MIN_TX = 50
    MIXING_MAX_AVG = Decimal(LAMPORTS_PER_SOL)             # 1 whole unit
    ACCUMULATION_MAX_TX = 5
    ACCUMULATION_MIN_AVG = Decimal(10 * LAMPORTS_PER_SOL)
    DISTRIBUTION_MIN_TX = 20

    MIN_CLUSTER_SIZE = 3

    CRITICAL_MIXING_TX = 100
    HIGH_ACCUMULATION_VOLUME = 100 * LAMPORTS_PER_SOL
    MEDIUM_DISTRIBUTION_TX = 50

    def classify_edge(self, edge: Edge) -> ClusterPattern:
        avg_amount = edge.avg_amount
        frequency = edge.transaction_count

        if frequency > self.MIXING_MIN_TX and avg_amount < self.MIXING_MAX_AVG:
            return ClusterPattern.MIXING
        if frequency < self.ACCUMULATION_MAX_TX and avg_amount > self.ACCUMULATION_MIN_AVG:
            return ClusterPattern.ACCUMULATION
        if frequency > self.DISTRIBUTION_MIN_TX and edge.direction == EdgeDirection.UNIDIRECTIONAL:
            return ClusterPattern.DISTRIBUTION
        return ClusterPattern.NORMAL

    def assess_risk(self, pattern: ClusterPattern, total_volume: int, transaction_count: int) -> RiskLevel:
        if pattern == ClusterPattern.MIXING and transaction_count > self.CRITICAL_MIXING_TX:
            return RiskLevel.CRITICAL
        if pattern == ClusterPattern.ACCUMULATION and total_volume > self.HIGH_ACCUMULATION_VOLUME:
            return RiskLevel.HIGH
        if pattern == ClusterPattern.DISTRIBUTION and transaction_count > self.MEDIUM_DISTRIBUTION_TX:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def detect(self, edges: Iterable[Edge], nodes: Mapping[str, Node]) -> List[Cluster]:
        # pattern -> ordered unique members, in first-seen order
        groups: Dict[ClusterPattern, Dict[str, None]] = {}
        for e in edges:
            members = groups.setdefault(self.classify_edge(e), {})
            members.setdefault(e.source, None)
            members.setdefault(e.target, None)

        clusters: List[Cluster] = []
        for pattern, members in groups.items():
            addresses = list(members)
            if len(addresses) < self.MIN_CLUSTER_SIZE:
                continue

            total_volume = sum(nodes[a].volume for a in addresses if a in nodes)
            tx_count = sum(nodes[a].transaction_count for a in addresses if a in nodes)
            clusters.append(
                Cluster(
                    cluster_id=f"CLUSTER_{len(clusters) + 1}",
                    addresses=addresses,
                    total_volume=total_volume,
                    transaction_count=tx_count,
                    pattern=pattern,
                    risk_level=self.assess_risk(pattern, total_volume, tx_count),
                )
            )

        log.info("detected %d cluster(s) across %d pattern group(s)", len(clusters), len(groups))
        return clusters
