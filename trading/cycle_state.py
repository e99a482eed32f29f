"""Per-account status and cycle-counter transitions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from trading import events
from trading.events import EventSink, LoggingSink, TradeEvent
from trading.results import Err, OrderResult

logger = logging.getLogger(__name__)


class AccountStatus(str, Enum):
    PENDING = "pending"
    PLACING = "placing"
    FAILED = "failed"


STATUS_TRANSITIONS: dict[AccountStatus, frozenset[AccountStatus]] = {
    AccountStatus.PENDING: frozenset({AccountStatus.PLACING}),
    AccountStatus.PLACING: frozenset({AccountStatus.PENDING, AccountStatus.FAILED}),
    AccountStatus.FAILED: frozenset({AccountStatus.PLACING}),
}


def has_reached_cap(cycle: int, current_cycle: int) -> bool:
    return int(cycle) > 0 and int(current_cycle) >= int(cycle)


def is_eligible(account: Any) -> bool:
    if not bool(account.is_active):
        return False
    return not has_reached_cap(int(account.cycle or 0), int(account.current_cycle or 0))


def is_fatal_sentinel(cycle: int, current_cycle: int) -> bool:
    return int(cycle) == 1 and int(current_cycle) == 1


def can_transition(current: str | None, nxt: AccountStatus) -> bool:
    try:
        state = AccountStatus(current)
    except ValueError:
        return True
    return nxt in STATUS_TRANSITIONS[state]


class CycleStateMachine:
    """Drives status and cycle counters through the record store.

    ``store`` exposes ``get_account`` and ``update_account`` (see database.db).
    """

    def __init__(self, store: Any, sink: EventSink | None = None) -> None:
        self.store = store
        self.sink = sink or LoggingSink()

    def _set_status(self, account_id: int, status: AccountStatus, **changes: Any) -> Any:
        current = self.store.get_account(account_id)
        if current is None:
            return None
        if not can_transition(current.status, status):
            logger.warning(
                "CYCLE unexpected_transition account=%s from=%s to=%s", account_id, current.status, status.value
            )
        updated = self.store.update_account(account_id, status=status.value, **changes)
        self.sink.emit(
            TradeEvent(
                kind=events.ACCOUNT_STATUS,
                message=f"Status {current.status} -> {status.value}",
                account_id=account_id,
                fields={"status": status.value},
            )
        )
        return updated

    def begin_attempt(self, account_id: int) -> Any:
        return self._set_status(account_id, AccountStatus.PLACING)

    def complete_attempt(self, account_id: int, result: OrderResult) -> Any:
        if result.ok:
            return self._set_status(account_id, AccountStatus.PENDING)
        if isinstance(result, Err) and result.is_fatal_amount:
            # Terminal for this run: the account stays ineligible until reset.
            return self._set_status(account_id, AccountStatus.FAILED, cycle=1, current_cycle=1)
        return self._set_status(account_id, AccountStatus.FAILED)

    def count_attempt(self, account_id: int) -> Any:
        """Reload counters and advance ``current_cycle`` unless the fatal sentinel holds.

        An account configured for exactly one cycle that already ran once is
        indistinguishable from the sentinel and is not incremented either.
        """
        account = self.store.get_account(account_id)
        if account is None:
            return None
        cycle = int(account.cycle or 0)
        current = int(account.current_cycle or 0)
        if is_fatal_sentinel(cycle, current):
            return account
        return self.store.update_account(account_id, current_cycle=current + 1)
