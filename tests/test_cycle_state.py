from __future__ import annotations

import unittest
from types import SimpleNamespace

from chain_fakes import RecordingSink, TempDatabaseMixin
from database import db
from trading import events
from trading.cycle_state import (
    AccountStatus,
    CycleStateMachine,
    can_transition,
    has_reached_cap,
    is_eligible,
    is_fatal_sentinel,
)
from trading.errors import ErrorKind
from trading.results import Err, Ok


class CyclePredicateTests(unittest.TestCase):
    def test_unlimited_cycle_is_always_eligible(self) -> None:
        for current in (0, 1, 50, 10_000):
            self.assertTrue(is_eligible(SimpleNamespace(is_active=True, cycle=0, current_cycle=current)))

    def test_capped_cycle_eligibility(self) -> None:
        self.assertTrue(is_eligible(SimpleNamespace(is_active=True, cycle=3, current_cycle=2)))
        self.assertFalse(is_eligible(SimpleNamespace(is_active=True, cycle=3, current_cycle=3)))
        self.assertFalse(is_eligible(SimpleNamespace(is_active=False, cycle=0, current_cycle=0)))

    def test_cap_and_sentinel(self) -> None:
        self.assertFalse(has_reached_cap(0, 99))
        self.assertTrue(has_reached_cap(2, 2))
        self.assertTrue(is_fatal_sentinel(1, 1))
        self.assertFalse(is_fatal_sentinel(1, 0))

    def test_status_transitions(self) -> None:
        self.assertTrue(can_transition("pending", AccountStatus.PLACING))
        self.assertTrue(can_transition("placing", AccountStatus.FAILED))
        self.assertTrue(can_transition("failed", AccountStatus.PLACING))
        self.assertFalse(can_transition("pending", AccountStatus.FAILED))


class CycleStateMachineTests(TempDatabaseMixin, unittest.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sink = RecordingSink()
        self.machine = CycleStateMachine(db, self.sink)

    def _account(self, **fields: object):
        base = {"is_active": True, "cycle": 0, "current_cycle": 0}
        base.update(fields)
        return db.create_account(address="0x4444444444444444444444444444444444444444", private_key="v1:x", **base)

    def test_success_returns_to_pending(self) -> None:
        account = self._account()
        self.machine.begin_attempt(account.id)
        self.assertEqual(db.get_account(account.id).status, "placing")
        updated = self.machine.complete_attempt(account.id, Ok("0xtx"))
        self.assertEqual(updated.status, "pending")
        self.assertEqual(len(self.sink.of_kind(events.ACCOUNT_STATUS)), 2)

    def test_ordinary_failure_keeps_counters(self) -> None:
        account = self._account(cycle=3, current_cycle=1)
        self.machine.begin_attempt(account.id)
        updated = self.machine.complete_attempt(account.id, Err(ErrorKind.TRANSACTION_FAILED, "reverted"))
        self.assertEqual(updated.status, "failed")
        self.assertEqual((updated.cycle, updated.current_cycle), (3, 1))

    def test_fatal_amount_failure_forces_sentinel(self) -> None:
        for kind in (ErrorKind.INVALID_AMOUNT, ErrorKind.INSUFFICIENT_FUNDS):
            with self.subTest(kind=kind):
                account = self._account(cycle=0, current_cycle=4)
                self.machine.begin_attempt(account.id)
                self.machine.complete_attempt(account.id, Err(kind, "no balance"))
                counted = self.machine.count_attempt(account.id)
                self.assertEqual((counted.cycle, counted.current_cycle), (1, 1))
                self.assertEqual(counted.status, "failed")
                self.assertFalse(is_eligible(counted))

    def test_count_attempt_increments(self) -> None:
        account = self._account(cycle=3, current_cycle=1)
        self.assertEqual(self.machine.count_attempt(account.id).current_cycle, 2)

    def test_single_cycle_account_after_one_run_is_not_incremented(self) -> None:
        account = self._account(cycle=1, current_cycle=1)
        self.assertEqual(self.machine.count_attempt(account.id).current_cycle, 1)

    def test_missing_account_is_ignored(self) -> None:
        self.assertIsNone(self.machine.begin_attempt(999))
        self.assertIsNone(self.machine.count_attempt(999))


if __name__ == "__main__":
    unittest.main()
