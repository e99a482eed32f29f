"""Advisory balance refresh for the account table."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import short_error_text

logger = logging.getLogger(__name__)


@dataclass
class BalanceReport:
    updated: int = 0
    failed: int = 0
    errors: dict[int, str] = field(default_factory=dict)


def to_human(raw: int, decimals: int) -> float:
    return float(Decimal(int(raw)) / (Decimal(10) ** int(decimals)))


async def refresh_account_balance(client: Any, gateway: ChainTimeoutGateway, account: Any, token: str) -> dict[str, float]:
    owner = account.address
    native = await gateway.execute(
        lambda: client.native_balance(owner),
        on_timeout_message="native balance read timed out",
    )
    changes = {"bnb_balance": to_human(native, 18)}
    if token:
        raw = await gateway.execute(
            lambda: client.token_balance(token, owner),
            on_timeout_message="token balance read timed out",
        )
        decimals = await gateway.execute(
            lambda: client.token_decimals(token),
            on_timeout_message="token decimals read timed out",
        )
        changes["token_balance"] = to_human(raw, decimals)
    return changes


async def refresh_all_balances(client: Any, gateway: ChainTimeoutGateway, store: Any, token: str) -> BalanceReport:
    """Read every account's balances concurrently; one failure does not abort the others."""
    accounts = store.list_accounts()
    report = BalanceReport()

    async def _one(account: Any) -> None:
        acct_token = str(account.token_address or token or "").strip()
        try:
            changes = await refresh_account_balance(client, gateway, account, acct_token)
        except Exception as exc:
            report.failed += 1
            report.errors[account.id] = short_error_text(exc)
            logger.warning("BALANCE refresh_failed account=%s err=%s", account.id, short_error_text(exc))
            return
        store.update_account(account.id, **changes)
        report.updated += 1

    await asyncio.gather(*(_one(a) for a in accounts))
    logger.info("BALANCE refresh_done updated=%s failed=%s", report.updated, report.failed)
    return report
