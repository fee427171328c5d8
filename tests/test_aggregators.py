import unittest
from decimal import Decimal

from sleuth.core.enums import EdgeDirection, FlowStatus, TransferType
from sleuth.core.models import Flow
from sleuth.services.aggregators import EdgeAggregator, NodeAggregator


def _flow(src, dst, amount, ts=1000, sig="sig"):
    return Flow(
        signature=sig,
        timestamp=ts,
        from_address=src,
        to_address=dst,
        amount=amount,
        amount_whole=Decimal(amount) / Decimal(10 ** 9),
        transfer_type=TransferType.NATIVE,
        status=FlowStatus.SUCCESS,
    )


class EdgeAggregatorTests(unittest.TestCase):
    def test_same_direction_accumulates(self) -> None:
        agg = EdgeAggregator()

        agg.upsert_edge("A", "B", 100, _flow("A", "B", 100))
        agg.upsert_edge("A", "B", 250, _flow("A", "B", 250))

        self.assertEqual(len(agg.edges), 1)
        edge = agg.edges["A-B"]
        self.assertEqual(edge.weight, 350)
        self.assertEqual(edge.transaction_count, 2)
        self.assertEqual(edge.direction, EdgeDirection.UNIDIRECTIONAL)
        self.assertEqual(len(edge.flows), 2)

    def test_reverse_flow_promotes_existing_edge(self) -> None:
        agg = EdgeAggregator()

        agg.upsert_edge("A", "B", 100)
        agg.upsert_edge("B", "A", 40)

        self.assertEqual(list(agg.edges), ["A-B"])
        edge = agg.edges["A-B"]
        self.assertEqual(edge.source, "A")
        self.assertEqual(edge.target, "B")
        self.assertEqual(edge.weight, 140)
        self.assertEqual(edge.transaction_count, 2)
        self.assertEqual(edge.direction, EdgeDirection.BIDIRECTIONAL)

    def test_two_large_flows_between_pair(self) -> None:
        agg = EdgeAggregator()

        agg.add_flow(_flow("P", "Q", 5_000_000_000, sig="s1"))
        agg.add_flow(_flow("P", "Q", 5_000_000_000, sig="s2"))

        edge = agg.edges["P-Q"]
        self.assertEqual(edge.weight, 10_000_000_000)
        self.assertEqual(edge.transaction_count, 2)
        self.assertEqual([f.signature for f in edge.flows], ["s1", "s2"])

    def test_total_volume_sums_weights(self) -> None:
        agg = EdgeAggregator()
        agg.upsert_edge("A", "B", 1)
        agg.upsert_edge("C", "D", 2)
        agg.upsert_edge("D", "C", 3)

        self.assertEqual(agg.total_volume(), 6)
        self.assertEqual(len(agg.as_list()), 2)


class NodeAggregatorTests(unittest.TestCase):
    def test_record_flow_updates_both_sides(self) -> None:
        agg = NodeAggregator()

        agg.record_flow(_flow("A", "B", 10, ts=200))
        agg.record_flow(_flow("B", "A", 4, ts=100))

        a, b = agg.nodes["A"], agg.nodes["B"]
        self.assertEqual((a.total_sent, a.total_received, a.transaction_count), (10, 4, 2))
        self.assertEqual((b.total_sent, b.total_received, b.transaction_count), (4, 10, 2))
        self.assertEqual((a.first_seen, a.last_seen), (100, 200))
        self.assertEqual(list(a.counterparties), ["B"])
        self.assertEqual(a.net_flow, -6)

    def test_depth_is_set_once(self) -> None:
        agg = NodeAggregator()

        agg.ensure("A")
        self.assertIsNone(agg.nodes["A"].depth)

        agg.ensure("A", depth=2)
        agg.ensure("A", depth=1)
        self.assertEqual(agg.nodes["A"].depth, 2)

    def test_count_at_depth(self) -> None:
        agg = NodeAggregator()
        agg.ensure("S", depth=0)
        agg.ensure("A", depth=1)
        agg.ensure("B", depth=1)
        agg.ensure("C")

        self.assertEqual(agg.count_at_depth(0), 1)
        self.assertEqual(agg.count_at_depth(1), 2)
        self.assertEqual(agg.count_at_depth(2), 0)

    def test_endpoint_and_label(self) -> None:
        agg = NodeAggregator()
        addr = "3nMNd89AxwHUa1AFvQGqohRkxFEQsTsgiEyEyqXFHyyH"
        agg.ensure(addr, depth=1)
        agg.record_flow(_flow("X", addr, 50))

        node = agg.nodes[addr]
        self.assertTrue(node.is_endpoint)
        self.assertEqual(node.label, "3nMNd89A...XFHyyH")
        self.assertFalse(agg.nodes["X"].is_endpoint)


if __name__ == "__main__":
    unittest.main()
