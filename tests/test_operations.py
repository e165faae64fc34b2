"""Test operation merging and pending-operation reconciliation."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import TestCase

import xrpsync.constants as C
from xrpsync.models import Operation
from xrpsync.operations import add_pending_operation, merge_operations, reconcile_pending, tx_to_operation
from tests.fakes import GENESIS_ADDRESS, OTHER_ADDRESS, ltx

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def op(tx_hash: str, *, day: int = 0, seq: int | None = 1, value: int = 10) -> Operation:
    return Operation(
        id=f"acc-{tx_hash}-OUT",
        hash=tx_hash,
        account_id="acc",
        type=C.OperationType.OUT,
        value=Decimal(value),
        fee=Decimal(1),
        senders=(GENESIS_ADDRESS,),
        recipients=(OTHER_ADDRESS,),
        date=T0 + timedelta(days=day),
        transaction_sequence_number=seq,
    )


class TestMergeOperations(TestCase):
    def test_sorted_by_date_descending(self):
        merged = merge_operations([op("A", day=1)], [op("B", day=3), op("C", day=2)])
        self.assertEqual([o.hash for o in merged], ["B", "C", "A"])

    def test_existing_entry_wins_on_duplicate_id(self):
        existing = op("A", value=10)
        fetched = replace(existing, value=Decimal(999))
        merged = merge_operations([existing], [fetched])
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].value, Decimal(10))

    def test_duplicates_within_fetched_are_collapsed(self):
        merged = merge_operations([], [op("A"), op("A")])
        self.assertEqual(len(merged), 1)

    def test_idempotent(self):
        a = [op("A", day=1), op("B", day=5)]
        b = [op("B", day=5), op("C", day=3), op("D", day=0)]
        once = merge_operations(a, b)
        self.assertEqual(merge_operations(once, b), once)
        self.assertEqual(len({o.id for o in once}), len(once))


class TestReconcilePending(TestCase):
    def test_drops_confirmed_hash(self):
        confirmed = merge_operations([], [op("A", seq=5)])
        pending = [op("A", seq=6), op("B", seq=7)]
        self.assertEqual([o.hash for o in reconcile_pending(pending, confirmed)], ["B"])

    def test_drops_superseded_sequence(self):
        confirmed = merge_operations([], [op("X", day=2, seq=10), op("Y", day=1, seq=12)])
        # newest confirmed (X) has seq 10
        pending = [op("P1", seq=9), op("P2", seq=10), op("P3", seq=11)]
        self.assertEqual([o.hash for o in reconcile_pending(pending, confirmed)], ["P3"])

    def test_keeps_pending_when_nothing_confirmed(self):
        pending = [op("P1", seq=3)]
        self.assertEqual(reconcile_pending(pending, ()), tuple(pending))

    def test_never_keeps_a_confirmed_hash_or_lower_sequence(self):
        confirmed = merge_operations([], [op("A", day=3, seq=20), op("B", day=2, seq=15)])
        pending = [op("A", seq=30), op("B", seq=31), op("C", seq=20), op("D", seq=21), op("E", seq=None)]
        kept = reconcile_pending(pending, confirmed)
        for o in kept:
            self.assertNotIn(o.hash, {"A", "B"})
            self.assertGreater(o.transaction_sequence_number, 20)
        self.assertEqual([o.hash for o in kept], ["D"])


class TestAddPendingOperation(TestCase):
    def test_new_operation_first_and_same_sequence_replaced(self):
        pending = (op("OLD", seq=4), op("KEEP", seq=3))
        out = add_pending_operation(pending, op("NEW", seq=4))
        self.assertEqual([o.hash for o in out], ["NEW", "KEEP"])


class TestTxToOperation(TestCase):
    def test_outgoing_value_includes_fee(self):
        o = tx_to_operation("acc", GENESIS_ADDRESS, ltx("H1", GENESIS_ADDRESS, OTHER_ADDRESS, 1000, fee=12, seq=7))
        self.assertEqual(o.type, C.OperationType.OUT)
        self.assertEqual(o.value, Decimal(1012))
        self.assertEqual(o.id, "acc-H1-OUT")
        self.assertEqual(o.transaction_sequence_number, 7)
        self.assertEqual(o.block_height, 150)

    def test_incoming_value_is_delivered_amount(self):
        o = tx_to_operation("acc", GENESIS_ADDRESS, ltx("H2", OTHER_ADDRESS, GENESIS_ADDRESS, 500, fee=12))
        self.assertEqual(o.type, C.OperationType.IN)
        self.assertEqual(o.value, Decimal(500))
        self.assertEqual(o.id, "acc-H2-IN")
