"""Operator-side account management: key import, amount presets, bulk re-classification."""

from __future__ import annotations

import logging
from typing import Any, Callable

from trading.cycle_state import AccountStatus
from trading.order_pipeline import SIDE_BUY, SIDE_SELL
from trading.order_service import UNIT_PERCENT, UNIT_VALUE
from utils.addressing import normalize_address
from wallet.key_vault import encrypt_private_key
from wallet.keys import DerivedWallet, derive_from_private_key, derive_from_seed

logger = logging.getLogger(__name__)


class AccountAdminError(RuntimeError):
    """Raised when an operator account command cannot be applied."""


def cycles_for_percent(percent: float) -> int:
    """Cycle cap paired with a percent-of-balance amount."""
    pct = float(percent)
    if pct in (75.0, 100.0):
        return 1
    if pct == 50.0:
        return 2
    return 3


class AccountAdmin:
    def __init__(self, store: Any, encrypt: Callable[[str], str] = encrypt_private_key) -> None:
        self.store = store
        self._encrypt = encrypt

    def _require(self, account_id: int) -> Any:
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountAdminError(f"account {account_id} not found")
        return account

    def _add(self, wallet: DerivedWallet, name: str | None) -> Any:
        existing = self.store.get_account_by_address(wallet.address)
        if existing is not None and normalize_address(existing.address) == normalize_address(wallet.address):
            raise AccountAdminError(f"account {wallet.address} already exists (id={existing.id})")
        account = self.store.create_account(
            address=wallet.address,
            private_key=self._encrypt(wallet.private_key),
            name=name or f"Wallet {wallet.address[-4:]}",
            sort_order=self.store.next_sort_order(),
        )
        logger.info("ADMIN account_added id=%s address=%s", account.id, account.address)
        return account

    def add_from_private_key(self, key: str, name: str | None = None) -> Any:
        return self._add(derive_from_private_key(key), name)

    def add_from_seed(self, phrase: str, name: str | None = None) -> Any:
        return self._add(derive_from_seed(phrase), name)

    def delete(self, account_id: int) -> None:
        if not self.store.delete_account(account_id):
            raise AccountAdminError(f"account {account_id} not found")

    def delete_all(self) -> int:
        return int(self.store.delete_all_accounts())

    def toggle_active(self, account_id: int) -> Any:
        account = self._require(account_id)
        return self.store.update_account(account_id, is_active=not bool(account.is_active))

    def set_all_active(self, active: bool) -> int:
        return int(self.store.update_all_accounts(is_active=bool(active)))

    def set_side(self, account_id: int, side: str) -> Any:
        side = str(side or "").strip().lower()
        if side not in {SIDE_BUY, SIDE_SELL}:
            raise AccountAdminError(f"unknown order type: {side}")
        self._require(account_id)
        return self.store.update_account(account_id, type=side)

    def set_amount(self, account_id: int, amount: float, unit: str) -> Any:
        """Percent amounts carry their preset cycle cap; fixed values run unlimited."""
        self._require(account_id)
        amount = float(amount)
        if amount <= 0:
            raise AccountAdminError("amount must be positive")
        if unit == UNIT_PERCENT:
            if amount > 100:
                raise AccountAdminError("percentage must not exceed 100")
            return self.store.update_account(
                account_id, amount_in=amount, unit=UNIT_PERCENT, cycle=cycles_for_percent(amount)
            )
        if unit == UNIT_VALUE:
            return self.store.update_account(account_id, amount_in=amount, unit=UNIT_VALUE, cycle=0)
        raise AccountAdminError(f"unknown amount unit: {unit}")

    def set_wait(self, account_id: int, wait_from: int | None, wait_to: int | None) -> Any:
        self._require(account_id)
        if wait_from is not None and wait_to is not None and int(wait_from) > int(wait_to):
            raise AccountAdminError("wait_from must not exceed wait_to")
        return self.store.update_account(account_id, wait_from=wait_from, wait_to=wait_to)

    def reorder(self, account_ids: list[int]) -> int:
        return int(self.store.bulk_update_accounts({int(aid): {"sort_order": i} for i, aid in enumerate(account_ids)}))

    def bulk_reclassify(self, side: str, amount: float, unit: str = UNIT_PERCENT) -> int:
        """Switch every account to ``side`` and re-rank by the balance that side spends."""
        side = str(side or "").strip().lower()
        if side not in {SIDE_BUY, SIDE_SELL}:
            raise AccountAdminError(f"unknown order type: {side}")
        amount = float(amount)
        if amount <= 0:
            raise AccountAdminError("amount must be positive")
        if unit == UNIT_PERCENT:
            if amount > 100:
                raise AccountAdminError("percentage must not exceed 100")
            cycle = cycles_for_percent(amount)
        elif unit == UNIT_VALUE:
            cycle = 0
        else:
            raise AccountAdminError(f"unknown amount unit: {unit}")

        balance_field = "token_balance" if side == SIDE_SELL else "bnb_balance"
        ranked = sorted(
            self.store.list_accounts(),
            key=lambda a: float(getattr(a, balance_field) or 0.0),
            reverse=True,
        )
        changes = {
            account.id: {
                "type": side,
                "amount_in": amount,
                "unit": unit,
                "is_active": True,
                "sort_order": i,
                "cycle": cycle,
            }
            for i, account in enumerate(ranked)
        }
        updated = int(self.store.bulk_update_accounts(changes))
        logger.info("ADMIN bulk_reclassify side=%s amount=%s unit=%s cycle=%s accounts=%s", side, amount, unit, cycle, updated)
        return updated

    def reset_all(self) -> int:
        return int(self.store.update_all_accounts(status=AccountStatus.PENDING.value, current_cycle=0))
