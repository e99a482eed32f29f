"""Account-level order placement: amount resolution, validation and the pipeline call."""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Callable

import config
from trading.bot_settings import BotSettings
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import ErrorKind, InvalidAmountError, classify_error, short_error_text
from trading.events import EventSink, LoggingSink
from trading.order_pipeline import SIDE_BUY, SIDE_SELL, OrderPipeline, OrderRequest
from trading.results import Err, Ok, OrderResult
from wallet.key_vault import KeyVaultError, decrypt_private_key

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18
UNIT_VALUE = "value"
UNIT_PERCENT = "percent"


def truncate_to_decimals(raw_amount: int, token_decimals: int, keep_decimals: int) -> int:
    """Drop base-unit precision finer than ``keep_decimals`` human decimals."""
    if token_decimals <= keep_decimals:
        return int(raw_amount)
    step = 10 ** (token_decimals - keep_decimals)
    return (int(raw_amount) // step) * step


def parse_amount_arg(raw: str) -> tuple[float, str]:
    """'50%' -> (50.0, percent); '0.01' -> (0.01, value)."""
    text = str(raw or "").strip()
    if text.endswith("%"):
        return float(text[:-1]), UNIT_PERCENT
    return float(text), UNIT_VALUE


def resolve_amount(balance: int, amount_in: Any, unit: str, decimals: int) -> int:
    """Turn the account's configured amount into base units, validated against its balance."""
    try:
        configured = Decimal(str(amount_in))
    except InvalidOperation as exc:
        raise InvalidAmountError(f"amount is not numeric: {amount_in}") from exc
    if configured < 0:
        raise InvalidAmountError(f"amount is negative: {amount_in}")

    if unit == UNIT_PERCENT:
        if configured > 100:
            raise InvalidAmountError(f"percentage above 100: {amount_in}")
        raw = int((Decimal(int(balance)) * configured / 100).to_integral_value(rounding=ROUND_DOWN))
        amount = truncate_to_decimals(raw, decimals, int(config.BALANCE_DISPLAY_DECIMALS))
    else:
        amount = int((configured * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))

    if amount <= 0:
        raise InvalidAmountError("computed amount is zero")
    if int(balance) <= 0:
        raise InvalidAmountError("balance is zero")
    if int(balance) < amount:
        raise InvalidAmountError(f"balance {int(balance)} is below requested amount {amount}")
    return amount


class OrderService:
    def __init__(
        self,
        client: Any,
        gateway: ChainTimeoutGateway | None = None,
        sink: EventSink | None = None,
        pipeline: OrderPipeline | None = None,
        decrypt: Callable[[str], str] = decrypt_private_key,
    ) -> None:
        self.client = client
        self.gateway = gateway or ChainTimeoutGateway()
        self.sink = sink or LoggingSink()
        self.pipeline = pipeline or OrderPipeline(client, gateway=self.gateway, sink=self.sink)
        self._decrypt = decrypt

    async def _balance_and_decimals(self, side: str, token: str, owner: str) -> tuple[int, int]:
        if side == SIDE_BUY:
            balance = await self.gateway.execute(
                lambda: self.client.native_balance(owner),
                on_timeout_message="native balance read timed out",
            )
            return int(balance), NATIVE_DECIMALS

        balance = await self.gateway.execute(
            lambda: self.client.token_balance(token, owner),
            on_timeout_message="token balance read timed out",
        )
        decimals = await self.gateway.execute(
            lambda: self.client.token_decimals(token),
            on_timeout_message="token decimals read timed out",
        )
        return int(balance), int(decimals)

    async def place_order(self, account: Any, settings: BotSettings, max_retries: int | None = None) -> OrderResult:
        """Place the account's configured buy or sell; never raises for order failures."""
        side = str(account.type or "").strip().lower()
        if side not in {SIDE_BUY, SIDE_SELL}:
            return Err(ErrorKind.INVALID_AMOUNT, f"unknown order type: {account.type}")
        token = str(account.token_address or settings.token_address or "").strip()
        if not token:
            return Err(ErrorKind.TOKEN_NOT_FOUND, "token address is not configured")

        try:
            private_key = self._decrypt(account.private_key)
        except KeyVaultError as exc:
            logger.error("ORDER key_decrypt_failed account=%s err=%s", account.id, exc)
            return Err(ErrorKind.UNKNOWN_ERROR, f"cannot decrypt account key: {exc}")

        try:
            balance, decimals = await self._balance_and_decimals(side, token, account.address)
            amount = resolve_amount(balance, account.amount_in, str(account.unit or UNIT_VALUE), decimals)
            receipt = await self.pipeline.execute(
                OrderRequest(
                    side=side,
                    private_key=private_key,
                    token=token,
                    amount=amount,
                    slippage_pct=float(settings.slippage_pct),
                    account_id=account.id,
                ),
                max_retries=max_retries,
            )
        except Exception as exc:
            kind = classify_error(exc)
            logger.warning(
                "ORDER %s_failed account=%s kind=%s err=%s", side, account.id, kind.value, short_error_text(exc)
            )
            return Err(kind, short_error_text(exc))

        logger.info(
            "ORDER %s_ok account=%s route=%s tx=%s attempts=%s",
            side,
            account.id,
            receipt.route,
            receipt.tx_hash,
            receipt.attempts,
        )
        return Ok(receipt)
