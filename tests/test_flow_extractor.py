import unittest
from decimal import Decimal

from sleuth.core.enums import FlowStatus, TransferType
from sleuth.services.flow_extractor import extract_flows


def _native(src, dst, amount):
    return {"fromUserAccount": src, "toUserAccount": dst, "amount": amount}


def _raw(accounts, pre, post, err=None, signature="sigRaw", block_time=1700000000):
    return {
        "blockTime": block_time,
        "transaction": {"signatures": [signature], "message": {"accountKeys": accounts}},
        "meta": {"preBalances": pre, "postBalances": post, "err": err},
    }


class EnrichedExtractionTests(unittest.TestCase):
    def test_native_transfers_map_one_to_one(self) -> None:
        tx = {
            "signature": "sig1",
            "timestamp": 1700000000,
            "nativeTransfers": [_native("A", "B", 10), _native("B", "C", 20), _native("C", "A", 30)],
        }

        flows = extract_flows(tx, "A")

        self.assertEqual(len(flows), 3)
        self.assertTrue(all(f.transfer_type == TransferType.NATIVE for f in flows))
        self.assertEqual(sum(f.amount for f in flows), 60)
        self.assertEqual(flows[1].from_address, "B")
        self.assertEqual(flows[1].to_address, "C")
        self.assertEqual(flows[0].signature, "sig1")
        self.assertEqual(flows[0].timestamp, 1700000000)
        self.assertEqual(flows[0].status, FlowStatus.SUCCESS)

    def test_token_amount_scaled_to_minimal_units(self) -> None:
        tx = {
            "signature": "sig2",
            "timestamp": 1,
            "tokenTransfers": [{"fromUserAccount": "A", "toUserAccount": "B", "tokenAmount": 1.5}],
        }

        flows = extract_flows(tx, "A")

        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].transfer_type, TransferType.TOKEN)
        self.assertEqual(flows[0].amount, 1_500_000_000)
        self.assertEqual(flows[0].amount_whole, Decimal("1.5"))

    def test_transaction_error_marks_flows_failed(self) -> None:
        tx = {
            "signature": "sig3",
            "timestamp": 1,
            "transactionError": {"InstructionError": [0, "Custom"]},
            "nativeTransfers": [_native("A", "B", 5000)],
        }

        flows = extract_flows(tx, "A")

        self.assertEqual(flows[0].status, FlowStatus.FAILED)

    def test_transfers_without_both_endpoints_are_skipped(self) -> None:
        tx = {
            "signature": "sig4",
            "timestamp": 1,
            "tokenTransfers": [
                {"fromUserAccount": "", "toUserAccount": "B", "tokenAmount": 3},
                {"fromUserAccount": "A", "toUserAccount": "B", "tokenAmount": 2},
            ],
        }

        flows = extract_flows(tx, "B")

        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].from_address, "A")

    def test_partial_record_keeps_parsed_flows(self) -> None:
        tx = {
            "signature": "sig5",
            "timestamp": 1,
            "nativeTransfers": [_native("A", "B", 7), None],
        }

        flows = extract_flows(tx, "A")

        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].amount, 7)

    def test_unparseable_record_yields_nothing(self) -> None:
        self.assertEqual(extract_flows(None, "A"), [])
        self.assertEqual(extract_flows({"transaction": "garbage"}, "A"), [])

    def test_string_timestamps_do_not_drop_transfers(self) -> None:
        cases = {
            "2023-11-14T22:13:20Z": 1700000000,
            "2023-11-14T22:13:20": 1700000000,
            "1700000000": 1700000000,
            "yesterday": 0,
        }
        for value, expected in cases.items():
            with self.subTest(timestamp=value):
                tx = {"signature": "sigTs", "timestamp": value, "nativeTransfers": [_native("A", "B", 5)]}

                flows = extract_flows(tx, "A")

                self.assertEqual(len(flows), 1)
                self.assertEqual(flows[0].timestamp, expected)


class BalanceFallbackTests(unittest.TestCase):
    def test_each_debit_pairs_with_each_credit(self) -> None:
        tx = _raw(
            ["A", "B", "C"],
            pre=[10_000_000, 0, 0],
            post=[4_000_000, 3_000_000, 2_995_000],
        )

        flows = extract_flows(tx, "A")

        # over-approximation: both credits receive the full debit
        self.assertEqual([(f.from_address, f.to_address) for f in flows], [("A", "B"), ("A", "C")])
        self.assertTrue(all(f.amount == 6_000_000 for f in flows))
        self.assertEqual(flows[0].signature, "sigRaw")
        self.assertEqual(flows[0].timestamp, 1700000000)

    def test_many_debits_times_many_credits(self) -> None:
        tx = _raw(
            ["A", "B", "C", "D"],
            pre=[5_000_000, 5_000_000, 0, 0],
            post=[0, 0, 5_000_000, 5_000_000],
        )

        flows = extract_flows(tx, "A")

        self.assertEqual(len(flows), 4)

    def test_fee_sized_changes_are_ignored(self) -> None:
        tx = _raw(["A", "B"], pre=[1_000_000, 5], post=[999_500, 5])

        self.assertEqual(extract_flows(tx, "A"), [])

    def test_threshold_is_exclusive(self) -> None:
        tx = _raw(["A", "B"], pre=[1_000_000, 0], post=[999_000, 1000])

        self.assertEqual(extract_flows(tx, "A"), [])
        self.assertEqual(len(extract_flows(tx, "A", noise_threshold=999)), 1)

    def test_pubkey_objects_and_failed_status(self) -> None:
        tx = _raw(
            [{"pubkey": "A", "signer": True}, {"pubkey": "B", "signer": False}],
            pre=[2_000_000, 0],
            post=[0, 2_000_000],
            err={"InsufficientFunds": None},
        )

        flows = extract_flows(tx, "B")

        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].from_address, "A")
        self.assertEqual(flows[0].to_address, "B")
        self.assertEqual(flows[0].status, FlowStatus.FAILED)
        self.assertEqual(flows[0].amount_whole, Decimal("0.002"))

    def test_enriched_flows_take_precedence(self) -> None:
        tx = _raw(["A", "B"], pre=[2_000_000, 0], post=[0, 2_000_000])
        tx["nativeTransfers"] = [_native("A", "B", 1_999_000)]

        flows = extract_flows(tx, "A")

        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].amount, 1_999_000)


if __name__ == "__main__":
    unittest.main()
