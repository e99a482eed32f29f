"""Start/stop control around one scheduler run at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from trading import events
from trading.bot_settings import BotSettings, load_settings, save_settings
from trading.errors import BotStateError, ErrorKind
from trading.events import EventSink, LoggingSink, TradeEvent
from trading.scheduler import AccountScheduler, StopToken

logger = logging.getLogger(__name__)


class BotController:
    """Owns the run guard and the stop token of the active scheduler run.

    ``scheduler_factory(settings)`` builds an AccountScheduler for the run,
    so network or settings changes between runs are picked up.
    """

    def __init__(
        self,
        store: Any,
        scheduler_factory: Callable[[BotSettings], AccountScheduler],
        sink: EventSink | None = None,
        settings_loader: Callable[[], BotSettings] = load_settings,
    ) -> None:
        self.store = store
        self.scheduler_factory = scheduler_factory
        self.sink = sink or LoggingSink()
        self.settings_loader = settings_loader
        self._stop: StopToken | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._stop is not None

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def _emit(self, kind: str, message: str, **fields: Any) -> None:
        self.sink.emit(TradeEvent(kind=kind, message=message, fields=fields))

    def _prepare(self, start_account_id: int | None) -> tuple[BotSettings, StopToken]:
        if self.is_running:
            raise BotStateError(ErrorKind.BOT_ALREADY_RUNNING, "bot is already running")
        accounts = self.store.list_accounts()
        if not accounts:
            raise BotStateError(ErrorKind.BOT_NOT_RUNNING, "add at least one account before starting")
        if start_account_id is not None and self.store.get_account(start_account_id) is None:
            raise BotStateError(ErrorKind.BOT_NOT_RUNNING, f"account {start_account_id} not found")
        settings = self.settings_loader()
        if not settings.token_address:
            raise BotStateError(ErrorKind.BOT_NOT_RUNNING, "token address is not configured")
        settings.validate()

        reset = self.store.update_all_accounts(only_active=True, current_cycle=0)
        save_settings(settings)
        self._stop = StopToken()
        logger.info("BOT prepared mode=%s reset_accounts=%s", settings.run_mode, reset)
        return settings, self._stop

    async def run(self, start_account_id: int | None = None) -> None:
        """Run the scheduler to completion (no eligible accounts or stop)."""
        settings, stop = self._prepare(start_account_id)
        await self._run(settings, stop, start_account_id)

    def start_background(self, start_account_id: int | None = None) -> asyncio.Task:
        settings, stop = self._prepare(start_account_id)
        self._task = asyncio.create_task(self._run(settings, stop, start_account_id, reraise=False))
        return self._task

    async def _run(
        self, settings: BotSettings, stop: StopToken, start_account_id: int | None, reraise: bool = True
    ) -> None:
        """Drive one scheduler run; with ``reraise=False`` a crash is only logged and emitted."""
        if start_account_id is not None:
            self._emit(
                events.SCHEDULER_STARTED,
                f"Started from account {start_account_id} in {settings.run_mode} mode",
                mode=settings.run_mode,
            )
        else:
            self._emit(events.SCHEDULER_STARTED, f"Started in {settings.run_mode} mode", mode=settings.run_mode)
        try:
            scheduler = self.scheduler_factory(settings)
            await scheduler.run(stop, mode=settings.run_mode, start_account_id=start_account_id)
        except Exception as exc:
            logger.exception("BOT run_failed")
            self._emit(events.SCHEDULER_STOPPED, f"Bot stopped with error: {exc}")
            if reraise:
                raise
            return
        finally:
            self._stop = None
            self._task = None
        self._emit(events.SCHEDULER_STOPPED, "Bot stopped")

    def stop(self) -> None:
        if self._stop is None:
            raise BotStateError(ErrorKind.BOT_NOT_RUNNING, "bot is not running")
        self._stop.stop()
        self._emit(events.SCHEDULER_STOPPED, "Stop requested; no new orders will start")
