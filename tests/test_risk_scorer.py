import itertools
import unittest

from sleuth.core.enums import ClusterPattern, RiskLevel
from sleuth.core.models import Cluster, Node
from sleuth.services.risk_scorer import RiskScorer

SOL = 10 ** 9
DAY = 24 * 3600
AS_OF = 1_700_000_000


def _node(volume=False, activity=False, imbalance=False, recent=False, address="N"):
    node = Node(address=address)
    if volume:
        # balanced, so it does not also trip the imbalance signal
        node.total_received = 60 * SOL
        node.total_sent = 60 * SOL
    if imbalance:
        node.total_received += 51 * SOL
    node.transaction_count = 101 if activity else 3
    node.last_seen = AS_OF - (1 * DAY if recent else 30 * DAY)
    return node


def _cluster(level, addresses):
    return Cluster(
        cluster_id="CLUSTER_1",
        addresses=list(addresses),
        total_volume=0,
        transaction_count=0,
        pattern=ClusterPattern.MIXING,
        risk_level=level,
    )


class RiskScorerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scorer = RiskScorer()

    def test_quiet_node_scores_zero(self) -> None:
        score, tags = self.scorer.score_node(_node(), False, AS_OF)

        self.assertEqual(score, 0)
        self.assertEqual(tags, set())

    def test_every_signal_reaches_hundred(self) -> None:
        node = _node(volume=True, activity=True, imbalance=True, recent=True)

        score, tags = self.scorer.score_node(node, True, AS_OF)

        self.assertEqual(score, 100)
        self.assertEqual(tags, {"HIGH_RISK", "HIGH_ACTIVITY", "IMBALANCED_FLOW", "CLUSTER_MEMBER"})

    def test_high_risk_tag_at_seventy(self) -> None:
        node = _node(volume=True, imbalance=True, recent=True)

        score, tags = self.scorer.score_node(node, False, AS_OF)

        self.assertEqual(score, 70)
        self.assertIn("HIGH_RISK", tags)
        self.assertNotIn("CLUSTER_MEMBER", tags)

    def test_recency_is_measured_from_as_of(self) -> None:
        node = Node(address="N", last_seen=AS_OF - 6 * DAY)

        self.assertEqual(self.scorer.score_node(node, False, AS_OF)[0], 15)
        self.assertEqual(self.scorer.score_node(node, False, AS_OF + 2 * DAY)[0], 0)

    def test_never_seen_gets_no_recency_points(self) -> None:
        self.assertEqual(self.scorer.score_node(Node(address="N"), False, AS_OF)[0], 0)

    def test_score_is_bounded_and_monotone_per_signal(self) -> None:
        names = ("volume", "activity", "imbalance", "recent", "cluster")
        for combo in itertools.product((False, True), repeat=len(names)):
            flags = dict(zip(names, combo))
            in_cluster = flags.pop("cluster")
            base, _ = self.scorer.score_node(_node(**flags), in_cluster, AS_OF)
            self.assertGreaterEqual(base, 0)
            self.assertLessEqual(base, 100)

            for name in names:
                if name == "cluster":
                    raised, _ = self.scorer.score_node(_node(**flags), True, AS_OF)
                else:
                    raised, _ = self.scorer.score_node(_node(**dict(flags, **{name: True})), in_cluster, AS_OF)
                self.assertGreaterEqual(raised, base, f"{name} lowered score for {combo}")

    def test_only_high_or_critical_clusters_count(self) -> None:
        nodes = {"A": _node(address="A"), "B": _node(address="B"), "C": _node(address="C")}
        clusters = [
            _cluster(RiskLevel.CRITICAL, ["A"]),
            _cluster(RiskLevel.MEDIUM, ["B"]),
        ]

        self.scorer.score(nodes, clusters, AS_OF)

        self.assertEqual(nodes["A"].risk_score, 10)
        self.assertEqual(nodes["A"].tags, {"CLUSTER_MEMBER"})
        self.assertEqual(nodes["B"].risk_score, 0)
        self.assertEqual(nodes["C"].tags, set())

    def test_rescoring_is_idempotent(self) -> None:
        nodes = {"A": _node(activity=True, address="A")}

        self.scorer.score(nodes, [], AS_OF)
        self.scorer.score(nodes, [], AS_OF)

        self.assertEqual(nodes["A"].risk_score, 20)
        self.assertEqual(nodes["A"].tags, {"HIGH_ACTIVITY"})


if __name__ == "__main__":
    unittest.main()
