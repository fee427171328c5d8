from __future__ import annotations

from typing import Iterable, Mapping, Set, Tuple

from sleuth.core.enums import RiskLevel, RiskTag
from sleuth.core.models import LAMPORTS_PER_SOL, Cluster, Node


SECONDS_PER_DAY = 24 * 3600


class RiskScorer:
    """
    Heuristic 0-100 risk score per address.

    Every signal only ever adds points, so the score is non-decreasing in
    each signal. `as_of` is the instant "recent activity" is measured from;
    pass the same value to get the same scores.
    """

    HIGH_VOLUME = 100 * LAMPORTS_PER_SOL
    HIGH_ACTIVITY_TX = 100
    IMBALANCE = 50 * LAMPORTS_PER_SOL
    RECENT_DAYS = 7
    HIGH_RISK_SCORE = 70

    W_VOLUME = 30
    W_ACTIVITY = 20
    W_IMBALANCE = 25
    W_RECENT = 15
    W_CLUSTER = 10

    RISKY_CLUSTER_LEVELS = (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def score_node(self, node: Node, in_risky_cluster: bool, as_of: int) -> Tuple[int, Set[str]]:
        score = 0
        tags: Set[str] = set()

        if node.volume > self.HIGH_VOLUME:
            score += self.W_VOLUME

        if node.transaction_count > self.HIGH_ACTIVITY_TX:
            score += self.W_ACTIVITY
            tags.add(RiskTag.HIGH_ACTIVITY.value)

        if abs(node.net_flow) > self.IMBALANCE:
            score += self.W_IMBALANCE
            tags.add(RiskTag.IMBALANCED_FLOW.value)

        if node.last_seen is not None:
            if (as_of - node.last_seen) < self.RECENT_DAYS * SECONDS_PER_DAY:
                score += self.W_RECENT

        if in_risky_cluster:
            score += self.W_CLUSTER
            tags.add(RiskTag.CLUSTER_MEMBER.value)

        score = max(0, min(score, 100))
        if score >= self.HIGH_RISK_SCORE:
            tags.add(RiskTag.HIGH_RISK.value)
        return score, tags

    def score(self, nodes: Mapping[str, Node], clusters: Iterable[Cluster], as_of: int) -> None:
        """Overwrite risk_score and tags on every node."""
        risky: Set[str] = set()
        for c in clusters:
            if c.risk_level in self.RISKY_CLUSTER_LEVELS:
                risky.update(c.addresses)

        for node in nodes.values():
            node.risk_score, node.tags = self.score_node(node, node.address in risky, int(as_of))
