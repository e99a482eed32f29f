"""Wiring of chain access, scheduler, control and admin for the operator surfaces."""

from __future__ import annotations

import logging
from typing import Any

import config
from database import db
from trading.account_admin import AccountAdmin
from trading.balances import BalanceReport, refresh_all_balances
from trading.bot_control import BotController
from trading.bot_settings import BotSettings, load_settings
from trading.chain_client import ChainClient
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import ErrorKind
from trading.events import EventSink, FanoutSink, LoggingSink, StoreLogSink
from trading.order_service import OrderService
from trading.results import Err, OrderResult
from trading.scheduler import AccountScheduler

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self, store: Any = db, *sinks: EventSink) -> None:
        self.store = store
        self.sink = FanoutSink(LoggingSink(), StoreLogSink(store.add_log), *sinks)
        self.gateway = ChainTimeoutGateway()
        self.admin = AccountAdmin(store)
        self.controller = BotController(store, self.build_scheduler, self.sink)
        self._clients: dict[str, Any] = {}

    def add_sink(self, sink: EventSink) -> None:
        self.sink.add(sink)

    def client_for(self, network_type: str | None = None) -> Any:
        profile = config.network_profile(network_type)
        client = self._clients.get(profile.name)
        if client is None:
            client = ChainClient(profile)
            self._clients[profile.name] = client
        return client

    def order_service(self, settings: BotSettings) -> OrderService:
        return OrderService(self.client_for(settings.network_type), gateway=self.gateway, sink=self.sink)

    def build_scheduler(self, settings: BotSettings) -> AccountScheduler:
        return AccountScheduler(self.store, self.order_service(settings), settings, sink=self.sink)

    async def refresh_balances(self) -> BalanceReport:
        settings = load_settings()
        return await refresh_all_balances(
            self.client_for(settings.network_type), self.gateway, self.store, settings.token_address
        )

    async def place_single_order(self, account_id: int) -> OrderResult:
        """One-off order for an account outside the scheduler; counters are not touched."""
        account = self.store.get_account(account_id)
        if account is None:
            return Err(ErrorKind.UNKNOWN_ERROR, f"account {account_id} not found")
        settings = load_settings()
        return await self.order_service(settings).place_order(
            account, settings, max_retries=config.OPERATOR_ORDER_MAX_RETRIES
        )
