"""Multi-account scheduler: sequential round-robin or one task per account."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

import config
from trading import events
from trading.bot_settings import BotSettings
from trading.cycle_state import CycleStateMachine, is_eligible
from trading.errors import classify_error, short_error_text
from trading.events import EventSink, LoggingSink, TradeEvent
from trading.results import Err

logger = logging.getLogger(__name__)


class StopToken:
    """Cooperative stop signal shared by every loop of one run."""

    def __init__(self) -> None:
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True


class AccountScheduler:
    def __init__(
        self,
        store: Any,
        order_service: Any,
        settings: BotSettings,
        sink: EventSink | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.store = store
        self.order_service = order_service
        self.settings = settings
        self.sink = sink or LoggingSink()
        self.state = CycleStateMachine(store, self.sink)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.max_retries = int(max_retries if max_retries is not None else config.OPERATOR_ORDER_MAX_RETRIES)

    def _emit(self, kind: str, message: str, account_id: int | None = None, **fields: Any) -> None:
        self.sink.emit(TradeEvent(kind=kind, message=message, account_id=account_id, fields=fields))

    def wait_bounds(self, account: Any) -> tuple[int, int]:
        low = account.wait_from if account is not None and account.wait_from is not None else self.settings.wait_from
        high = account.wait_to if account is not None and account.wait_to is not None else self.settings.wait_to
        low, high = max(0, int(low)), max(0, int(high))
        if high < low:
            high = low
        return low, high

    async def wait_between(self, account: Any, stop: StopToken) -> int:
        """Random whole-second countdown; returns the seconds actually waited."""
        low, high = self.wait_bounds(account)
        seconds = self._rng.randint(low, high)
        self._emit(
            events.SCHEDULER_WAIT,
            f"Waiting {seconds}s before next order",
            account.id if account is not None else None,
            seconds=seconds,
        )
        waited = 0
        for _ in range(seconds):
            if stop.stopped:
                break
            await self._sleep(1)
            waited += 1
        return waited

    async def run_one_cycle_step(self, account_id: int, stop: StopToken) -> Any:
        """Place one order for the account and advance its counters.

        Returns the reloaded account, or None when the step was skipped
        (stopped, deleted or no longer eligible).
        """
        if stop.stopped:
            return None
        account = self.store.get_account(account_id)
        if account is None or not is_eligible(account):
            return None

        self.state.begin_attempt(account_id)
        self._emit(
            events.ACCOUNT_STEP,
            f"Placing {account.type} order ({account.amount_in} {account.unit}), "
            f"cycle {int(account.current_cycle or 0) + 1}/{int(account.cycle or 0) or 'inf'}",
            account_id,
        )
        try:
            result = await self.order_service.place_order(account, self.settings, max_retries=self.max_retries)
        except Exception as exc:
            logger.exception("SCHEDULER order_crashed account=%s", account_id)
            result = Err(classify_error(exc), short_error_text(exc))

        if not result.ok:
            self._emit(
                events.ORDER_ERROR,
                f"Order failed [{result.kind.value}]: {result.detail}",
                account_id,
                error_kind=result.kind.value,
            )
        self.state.complete_attempt(account_id, result)
        return self.state.count_attempt(account_id)

    async def run_sequential(self, stop: StopToken, start_account_id: int | None = None) -> None:
        queue: list[int] = []
        index = 0
        start_at = start_account_id
        while not stop.stopped:
            if not queue:
                queue = [a.id for a in self.store.list_eligible_accounts()]
                index = 0
                if not queue:
                    self._emit(events.SCHEDULER_IDLE, "No eligible accounts left, stopping")
                    break
                if start_at is not None:
                    if start_at in queue:
                        index = queue.index(start_at)
                    start_at = None
            if index >= len(queue):
                index = 0

            account_id = queue[index]
            try:
                updated = await self.run_one_cycle_step(account_id, stop)
            except Exception:
                logger.exception("SCHEDULER step_failed account=%s", account_id)
                index = (index + 1) % len(queue)
                await self.wait_between(None, stop)
                continue
            if stop.stopped:
                break
            if updated is None or not is_eligible(updated):
                if updated is not None:
                    self._emit(
                        events.ACCOUNT_CAPPED,
                        f"Reached cycle limit ({int(updated.current_cycle)}/{int(updated.cycle)})",
                        account_id,
                    )
                queue.pop(index)
                if index >= len(queue):
                    index = 0
                if updated is None:
                    continue
            else:
                index = (index + 1) % len(queue)

            await self.wait_between(updated, stop)

    async def _account_loop(self, account_id: int, stop: StopToken) -> None:
        while not stop.stopped:
            try:
                updated = await self.run_one_cycle_step(account_id, stop)
            except Exception:
                logger.exception("SCHEDULER account_loop_failed account=%s", account_id)
                await self.wait_between(None, stop)
                continue
            if updated is None or stop.stopped:
                return
            if not is_eligible(updated):
                self._emit(
                    events.ACCOUNT_CAPPED,
                    f"Reached cycle limit ({int(updated.current_cycle)}/{int(updated.cycle)})",
                    account_id,
                )
                return
            await self.wait_between(updated, stop)

    async def run_concurrent(self, stop: StopToken) -> None:
        while not stop.stopped:
            accounts = self.store.list_eligible_accounts()
            if not accounts:
                self._emit(events.SCHEDULER_IDLE, "No eligible accounts left, stopping")
                break
            await asyncio.gather(*(self._account_loop(a.id, stop) for a in accounts))

    async def run(self, stop: StopToken, mode: str | None = None, start_account_id: int | None = None) -> None:
        run_mode = str(mode or self.settings.run_mode or "sequential").lower()
        if run_mode == "concurrent":
            await self.run_concurrent(stop)
        else:
            await self.run_sequential(stop, start_account_id=start_account_id)
