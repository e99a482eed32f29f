from __future__ import annotations

import unittest

from chain_fakes import TempDatabaseMixin
from database import db


def _create(address: str, **fields: object):
    return db.create_account(address=address, private_key="v1:x", **fields)


class DatabaseTests(TempDatabaseMixin, unittest.TestCase):
    def test_eligible_query_filters_inactive_and_capped(self) -> None:
        unlimited = _create("0x01", is_active=True, cycle=0, current_cycle=7, sort_order=2)
        running = _create("0x02", is_active=True, cycle=3, current_cycle=2, sort_order=1)
        _create("0x03", is_active=True, cycle=2, current_cycle=2, sort_order=0)
        _create("0x04", is_active=False, cycle=0, sort_order=3)

        self.assertEqual([a.id for a in db.list_eligible_accounts()], [running.id, unlimited.id])

    def test_address_lookup_is_case_insensitive(self) -> None:
        account = _create("0xAbCdEf0000000000000000000000000000000001")
        found = db.get_account_by_address("0xabcdef0000000000000000000000000000000001")
        self.assertEqual(found.id, account.id)

    def test_update_rejects_unknown_fields(self) -> None:
        account = _create("0x01")
        with self.assertRaises(ValueError):
            db.update_account(account.id, balance=1)
        with self.assertRaises(ValueError):
            db.update_all_accounts(is_running=True)

    def test_update_missing_account_returns_none(self) -> None:
        self.assertIsNone(db.update_account(42, status="failed"))
        self.assertFalse(db.delete_account(42))

    def test_bulk_and_active_only_updates(self) -> None:
        a = _create("0x01", is_active=True, current_cycle=3)
        b = _create("0x02", is_active=False, current_cycle=3)

        self.assertEqual(db.update_all_accounts(only_active=True, current_cycle=0), 1)
        self.assertEqual(db.get_account(a.id).current_cycle, 0)
        self.assertEqual(db.get_account(b.id).current_cycle, 3)

        self.assertEqual(db.bulk_update_accounts({a.id: {"type": "sell"}, b.id: {"type": "buy", "cycle": 2}}), 2)
        self.assertEqual(db.get_account(a.id).type, "sell")
        self.assertEqual(db.get_account(b.id).cycle, 2)

    def test_logs_are_returned_oldest_first_within_limit(self) -> None:
        for i in range(5):
            db.add_log(f"line {i}")
        self.assertEqual([row.message for row in db.list_logs(limit=3)], ["line 2", "line 3", "line 4"])
        self.assertEqual(db.clear_logs(), 5)
        self.assertEqual(db.list_logs(), [])

    def test_settings_upsert(self) -> None:
        self.assertEqual(db.get_setting("slippage", 10), 10)
        db.put_setting("slippage", 2.5)
        db.put_setting("slippage", 3.5)
        db.put_setting("runMode", "concurrent")
        self.assertEqual(db.get_setting("slippage"), 3.5)
        self.assertEqual(db.get_settings(), {"slippage": 3.5, "runMode": "concurrent"})

    def test_next_sort_order(self) -> None:
        self.assertEqual(db.next_sort_order(), 0)
        _create("0x01", sort_order=4)
        self.assertEqual(db.next_sort_order(), 5)


if __name__ == "__main__":
    unittest.main()
