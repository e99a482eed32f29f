"""Order execution: quote, slippage bound, approval, submission and classified retry."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Callable

from eth_account import Account

import config
from trading import events
from trading.allowance import AllowanceManager
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import (
    ErrorKind,
    InsufficientFundsError,
    TokenNotFoundError,
    TransactionFailedError,
    classify_error,
    short_error_text,
)
from trading.events import ElapsedTimer, EventSink, LoggingSink, TradeEvent
from trading.nonce_tracker import NonceTracker
from trading.venue_router import AmmRoute, BondingCurveV1, BondingCurveV2, Route, VenueRouter

logger = logging.getLogger(__name__)

SIDE_BUY = "buy"
SIDE_SELL = "sell"


class OrderPhase(str, Enum):
    QUOTING = "quoting"
    APPROVING = "approving"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


PHASE_TRANSITIONS: dict[OrderPhase | None, frozenset[OrderPhase]] = {
    None: frozenset({OrderPhase.QUOTING}),
    OrderPhase.QUOTING: frozenset({OrderPhase.APPROVING, OrderPhase.SUBMITTING, OrderPhase.FAILED}),
    OrderPhase.APPROVING: frozenset({OrderPhase.SUBMITTING, OrderPhase.FAILED}),
    OrderPhase.SUBMITTING: frozenset({OrderPhase.DONE, OrderPhase.FAILED}),
    OrderPhase.FAILED: frozenset({OrderPhase.QUOTING}),
    OrderPhase.DONE: frozenset(),
}


class PhaseTracker:
    def __init__(self) -> None:
        self.phase: OrderPhase | None = None

    def enter(self, nxt: OrderPhase) -> None:
        allowed = PHASE_TRANSITIONS.get(self.phase, frozenset())
        if nxt not in allowed:
            raise RuntimeError(f"invalid order phase transition {self.phase} -> {nxt}")
        self.phase = nxt


def apply_slippage(quoted_out: int, slippage_pct: float | int | str) -> int:
    """Floor of ``quoted_out * (100 - slippage) / 100`` at per-mille granularity."""
    pct = Decimal(str(slippage_pct))
    if pct < 0 or pct > 100:
        raise ValueError(f"slippage out of range: {slippage_pct}")
    per_mille = int(((Decimal(100) - pct) * 10).to_integral_value(rounding=ROUND_HALF_UP))
    return (int(quoted_out) * per_mille) // 1000


@dataclass(frozen=True)
class OrderRequest:
    side: str
    private_key: str
    token: str
    amount: int
    slippage_pct: float
    account_id: int | None = None


@dataclass(frozen=True)
class OrderReceipt:
    tx_hash: str
    route: str
    quoted_out: int
    min_out: int
    nonce: int
    attempts: int
    approval_tx_hash: str | None = None


class OrderPipeline:
    def __init__(
        self,
        client: Any,
        gateway: ChainTimeoutGateway | None = None,
        sink: EventSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.gateway = gateway or ChainTimeoutGateway()
        self.router = VenueRouter(self.gateway, client)
        self.allowance = AllowanceManager(self.gateway, client)
        self.sink = sink or LoggingSink()
        self._clock = clock

    def _emit(self, kind: str, message: str, request: OrderRequest, timer: ElapsedTimer, **fields: Any) -> None:
        self.sink.emit(
            TradeEvent(
                kind=kind,
                message=message,
                account_id=request.account_id,
                elapsed_s=timer.lap(),
                fields=fields,
            )
        )

    async def execute(self, request: OrderRequest, max_retries: int | None = None) -> OrderReceipt:
        """Run the order until it is mined or the retry budget is spent.

        InsufficientFundsError is raised on the first occurrence. Any other
        failure is retried with a fresh quote; the last error is re-raised
        once ``max_retries`` attempts have failed.
        """
        if request.side not in {SIDE_BUY, SIDE_SELL}:
            raise ValueError(f"unknown order side: {request.side}")
        if int(request.amount) <= 0:
            raise ValueError("order amount must be positive")
        budget = max(1, int(max_retries if max_retries is not None else config.ORDER_MAX_RETRIES))

        signer = Account.from_key(request.private_key)
        timer = ElapsedTimer()
        nonces = NonceTracker(self.gateway, self.client, signer.address)
        await nonces.initial()
        self._emit(events.NONCE_INITIAL, f"Initial nonce: {nonces.value}", request, timer, nonce=nonces.value)

        phases = PhaseTracker()
        retry_count = 0
        while True:
            phases.enter(OrderPhase.QUOTING)
            try:
                route = await self.router.select(request.token)
                self._emit(events.ROUTE_SELECTED, f"Route: {route.label}", request, timer, route=route.label)

                quoted_out = await self._quote(route, request)
                min_out = apply_slippage(quoted_out, request.slippage_pct)
                self._emit(
                    events.QUOTE,
                    f"Quoted output: {quoted_out}, minimum accepted: {min_out}",
                    request,
                    timer,
                    quoted_out=quoted_out,
                    min_out=min_out,
                )

                before = nonces.value
                await nonces.refresh()
                if nonces.value != before:
                    self._emit(
                        events.NONCE_UPDATED,
                        f"Nonce advanced on chain: {before} -> {nonces.value}",
                        request,
                        timer,
                        nonce=nonces.value,
                    )

                approval_tx_hash = None
                if request.side == SIDE_SELL:
                    phases.enter(OrderPhase.APPROVING)
                    outcome = await self.allowance.ensure_allowance(
                        signer, request.token, route.spender, int(request.amount), nonces.value
                    )
                    if outcome.tx_hash:
                        nonces.bump()
                        approval_tx_hash = outcome.tx_hash
                    self._emit(
                        events.APPROVAL,
                        outcome.message,
                        request,
                        timer,
                        approved=outcome.approved,
                        nonce=nonces.value,
                    )

                phases.enter(OrderPhase.SUBMITTING)
                tx_hash = await self._submit(route, request, signer, min_out, nonces.value)
                self._emit(
                    events.TX_SUBMITTED,
                    f"TX Hash: {tx_hash}",
                    request,
                    timer,
                    tx=tx_hash,
                    total_s=round(timer.total(), 2),
                )
                phases.enter(OrderPhase.DONE)
                return OrderReceipt(
                    tx_hash=str(tx_hash),
                    route=route.label,
                    quoted_out=quoted_out,
                    min_out=min_out,
                    nonce=nonces.value,
                    attempts=retry_count + 1,
                    approval_tx_hash=approval_tx_hash,
                )
            except Exception as exc:
                phases.enter(OrderPhase.FAILED)
                kind = classify_error(exc)
                detail = short_error_text(exc)
                if kind is ErrorKind.INSUFFICIENT_FUNDS:
                    self._emit(
                        events.ORDER_FATAL,
                        f"Insufficient funds: {detail}. Skipping remaining retries.",
                        request,
                        timer,
                        error_kind=kind.value,
                    )
                    if isinstance(exc, InsufficientFundsError):
                        raise
                    raise InsufficientFundsError("balance cannot cover gas and transaction value") from exc

                self._emit(
                    events.ORDER_ERROR,
                    f"Attempt {retry_count + 1} failed: {detail}",
                    request,
                    timer,
                    error_kind=kind.value,
                )
                await self._recover_nonce(nonces, kind, request, timer)
                retry_count += 1
                if retry_count >= budget:
                    raise
                self._emit(
                    events.ORDER_RETRY,
                    f"Retrying ({retry_count}/{budget}) with nonce {nonces.value}",
                    request,
                    timer,
                    retry=retry_count,
                    nonce=nonces.value,
                )

    async def _recover_nonce(
        self, nonces: NonceTracker, kind: ErrorKind, request: OrderRequest, timer: ElapsedTimer
    ) -> None:
        pending = kind is ErrorKind.NONCE_CONFLICT
        before = nonces.value
        try:
            await nonces.refresh(pending=pending)
        except Exception as exc:
            self._emit(
                events.NONCE_REFRESH_FAILED,
                f"Nonce refresh failed: {short_error_text(exc)}",
                request,
                timer,
                pending=pending,
            )
            return
        view = "pending" if pending else "confirmed"
        self._emit(
            events.NONCE_UPDATED,
            f"Nonce refreshed from {view} view: {before} -> {nonces.value}",
            request,
            timer,
            nonce=nonces.value,
            view=view,
        )

    async def _quote(self, route: Route, request: OrderRequest) -> int:
        amount = int(request.amount)
        token = request.token
        if isinstance(route, AmmRoute):
            path = [route.wrapped_native, token] if request.side == SIDE_BUY else [token, route.wrapped_native]
            amounts = await self.gateway.execute(
                lambda: self.client.amounts_out(amount, path),
                on_timeout_message="AMM quote timed out",
            )
            quoted = int(amounts[-1]) if amounts else 0
            if quoted <= 0:
                raise TransactionFailedError(f"amm_quote_zero token={token}")
            return quoted

        if request.side == SIDE_BUY:
            quoted = int(
                await self.gateway.execute(
                    lambda: self.client.try_buy(token, amount),
                    on_timeout_message="bonding-curve buy simulation timed out",
                )
            )
        else:
            quoted = int(
                await self.gateway.execute(
                    lambda: self.client.try_sell(token, amount),
                    on_timeout_message="bonding-curve sell simulation timed out",
                )
            )
        if quoted <= 0:
            raise TokenNotFoundError(f"bonding-curve simulation returned zero output token={token}")
        return quoted

    async def _submit(self, route: Route, request: OrderRequest, signer: Any, min_out: int, nonce: int) -> str:
        amount = int(request.amount)
        token = request.token
        buying = request.side == SIDE_BUY

        if isinstance(route, AmmRoute):
            deadline = int(self._clock()) + int(config.SWAP_DEADLINE_SECONDS)
            if buying:
                path = [route.wrapped_native, token]
                call = lambda: self.client.swap_exact_eth_for_tokens(signer, amount, min_out, path, deadline, nonce)
            else:
                path = [token, route.wrapped_native]
                call = lambda: self.client.swap_exact_tokens_for_eth(signer, amount, min_out, path, deadline, nonce)
        elif isinstance(route, BondingCurveV1):
            if buying:
                call = lambda: self.client.purchase_token_amap(signer, route.manager, token, amount, min_out, nonce)
            else:
                call = lambda: self.client.sale_token(signer, route.manager, token, amount, nonce)
        elif isinstance(route, BondingCurveV2):
            if buying:
                call = lambda: self.client.buy_token_amap(signer, route.manager, token, amount, min_out, nonce)
            else:
                call = lambda: self.client.sell_token(signer, route.manager, token, amount, min_out, nonce)
        else:
            raise TypeError(f"unsupported route: {route!r}")

        side = "buy" if buying else "sell"
        return str(
            await self.gateway.submit(
                call,
                on_timeout_message=f"{side} submission on {route.label} timed out",
            )
        )
