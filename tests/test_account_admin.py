from __future__ import annotations

import unittest

from chain_fakes import TempDatabaseMixin
from database import db
from trading.account_admin import AccountAdmin, AccountAdminError, cycles_for_percent
from trading.errors import InvalidKeyMaterialError

KEY_A = "0x" + "11" * 32
KEY_B = "22" * 32
SEED = "test test test test test test test test test test test junk"
SEED_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def _fake_encrypt(plaintext: str) -> str:
    return "enc:" + plaintext


class CyclesForPercentTests(unittest.TestCase):
    def test_presets(self) -> None:
        self.assertEqual(cycles_for_percent(100), 1)
        self.assertEqual(cycles_for_percent(75), 1)
        self.assertEqual(cycles_for_percent(50), 2)
        self.assertEqual(cycles_for_percent(25), 3)
        self.assertEqual(cycles_for_percent(10), 3)


class AccountAdminTests(TempDatabaseMixin, unittest.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = AccountAdmin(db, encrypt=_fake_encrypt)

    def test_import_private_key_encrypts_and_orders(self) -> None:
        first = self.admin.add_from_private_key(KEY_A)
        second = self.admin.add_from_private_key(KEY_B, name="second")

        self.assertEqual(first.private_key, "enc:" + KEY_A)
        self.assertEqual(second.private_key, "enc:0x" + KEY_B)
        self.assertEqual(first.name, f"Wallet {first.address[-4:]}")
        self.assertEqual((first.sort_order, second.sort_order), (0, 1))

    def test_import_seed_derives_first_account(self) -> None:
        account = self.admin.add_from_seed(SEED)
        self.assertEqual(account.address, SEED_ADDRESS)

    def test_duplicate_address_is_rejected(self) -> None:
        self.admin.add_from_private_key(KEY_A)
        with self.assertRaises(AccountAdminError):
            self.admin.add_from_private_key(KEY_A[2:])

    def test_bad_key_material_is_rejected(self) -> None:
        with self.assertRaises(InvalidKeyMaterialError):
            self.admin.add_from_private_key("not-a-key")

    def test_set_amount_assigns_cycle_cap(self) -> None:
        account = self.admin.add_from_private_key(KEY_A)
        updated = self.admin.set_amount(account.id, 50, "percent")
        self.assertEqual((updated.amount_in, updated.unit, updated.cycle), (50.0, "percent", 2))
        updated = self.admin.set_amount(account.id, 0.05, "value")
        self.assertEqual((updated.unit, updated.cycle), ("value", 0))
        with self.assertRaises(AccountAdminError):
            self.admin.set_amount(account.id, 120, "percent")
        with self.assertRaises(AccountAdminError):
            self.admin.set_amount(account.id, 0, "value")

    def test_toggle_side_and_wait(self) -> None:
        account = self.admin.add_from_private_key(KEY_A)
        self.assertTrue(self.admin.toggle_active(account.id).is_active)
        self.assertEqual(self.admin.set_side(account.id, "SELL").type, "sell")
        with self.assertRaises(AccountAdminError):
            self.admin.set_side(account.id, "hold")
        self.assertEqual(self.admin.set_wait(account.id, 2, 9).wait_to, 9)
        with self.assertRaises(AccountAdminError):
            self.admin.set_wait(account.id, 9, 2)

    def test_unknown_account_is_reported(self) -> None:
        with self.assertRaises(AccountAdminError):
            self.admin.toggle_active(404)
        with self.assertRaises(AccountAdminError):
            self.admin.delete(404)

    def test_bulk_reclassify_ranks_by_spent_balance(self) -> None:
        a = self.admin.add_from_private_key(KEY_A)
        b = self.admin.add_from_private_key(KEY_B)
        db.update_account(a.id, token_balance=10.0, bnb_balance=1.0)
        db.update_account(b.id, token_balance=90.0, bnb_balance=0.5)

        self.assertEqual(self.admin.bulk_reclassify("sell", 75), 2)

        ordered = db.list_accounts()
        self.assertEqual([x.id for x in ordered], [b.id, a.id])
        for account in ordered:
            self.assertEqual((account.type, account.unit, account.cycle), ("sell", "percent", 1))
            self.assertTrue(account.is_active)

        self.admin.bulk_reclassify("buy", 25)
        self.assertEqual([x.id for x in db.list_accounts()], [a.id, b.id])
        self.assertEqual(db.get_account(a.id).cycle, 3)

    def test_reset_all_clears_status_and_counters(self) -> None:
        account = self.admin.add_from_private_key(KEY_A)
        db.update_account(account.id, status="failed", cycle=1, current_cycle=1)
        self.assertEqual(self.admin.reset_all(), 1)
        after = db.get_account(account.id)
        self.assertEqual((after.status, after.current_cycle), ("pending", 0))

    def test_reorder_and_delete_all(self) -> None:
        a = self.admin.add_from_private_key(KEY_A)
        b = self.admin.add_from_private_key(KEY_B)
        self.admin.reorder([b.id, a.id])
        self.assertEqual([x.id for x in db.list_accounts()], [b.id, a.id])
        self.assertEqual(self.admin.delete_all(), 2)
        self.assertEqual(db.list_accounts(), [])


if __name__ == "__main__":
    unittest.main()
