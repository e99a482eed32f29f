"""Structured trade events and the sinks that render them."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

# Event kinds emitted by the order pipeline and the scheduler.
NONCE_INITIAL = "nonce_initial"
NONCE_UPDATED = "nonce_updated"
NONCE_REFRESH_FAILED = "nonce_refresh_failed"
ROUTE_SELECTED = "route_selected"
QUOTE = "quote"
APPROVAL = "approval"
TX_SUBMITTED = "tx_submitted"
ORDER_RETRY = "order_retry"
ORDER_ERROR = "order_error"
ORDER_FATAL = "order_fatal"
ACCOUNT_STATUS = "account_status"
ACCOUNT_STEP = "account_step"
ACCOUNT_CAPPED = "account_capped"
SCHEDULER_WAIT = "scheduler_wait"
SCHEDULER_IDLE = "scheduler_idle"
SCHEDULER_STARTED = "scheduler_started"
SCHEDULER_STOPPED = "scheduler_stopped"

_KIND_LEVEL: dict[str, int] = {
    NONCE_REFRESH_FAILED: logging.WARNING,
    ORDER_RETRY: logging.WARNING,
    ORDER_ERROR: logging.WARNING,
    ORDER_FATAL: logging.ERROR,
}


@dataclass(frozen=True)
class TradeEvent:
    kind: str
    message: str
    account_id: int | None = None
    elapsed_s: float | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def level(self) -> int:
        return _KIND_LEVEL.get(self.kind, logging.INFO)


def render_event(event: TradeEvent) -> str:
    parts = []
    if event.account_id is not None:
        parts.append(f"[#{event.account_id}]")
    parts.append(event.message)
    if event.elapsed_s is not None:
        parts.append(f"({event.elapsed_s:.2f}s)")
    return " ".join(parts)


class EventSink(Protocol):
    def emit(self, event: TradeEvent) -> None:
        ...


class ElapsedTimer:
    """Monotonic stopwatch used for the elapsed annotations on events."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start = clock()
        self._lap = self._start

    def total(self) -> float:
        return self._clock() - self._start

    def lap(self) -> float:
        now = self._clock()
        value = now - self._lap
        self._lap = now
        return value


class LoggingSink:
    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def emit(self, event: TradeEvent) -> None:
        extras = " ".join(f"{k}={v}" for k, v in sorted(event.fields.items()))
        if extras:
            self._logger.log(event.level, "TRADE %s %s %s", event.kind, render_event(event), extras)
        else:
            self._logger.log(event.level, "TRADE %s %s", event.kind, render_event(event))


class StoreLogSink:
    """Persists rendered events as Log records."""

    def __init__(self, writer: Callable[[str], Any]) -> None:
        self._writer = writer

    def emit(self, event: TradeEvent) -> None:
        try:
            self._writer(render_event(event))
        except Exception as exc:
            logger.warning("TRADE log_persist_failed kind=%s err=%s", event.kind, exc)


class CallbackSink:
    """Hands rendered lines to a presentation callback (e.g. a chat forwarder)."""

    def __init__(self, callback: Callable[[TradeEvent, str], Any], kinds: set[str] | None = None) -> None:
        self._callback = callback
        self._kinds = set(kinds) if kinds else None

    def emit(self, event: TradeEvent) -> None:
        if self._kinds is not None and event.kind not in self._kinds:
            return
        try:
            self._callback(event, render_event(event))
        except Exception as exc:
            logger.warning("TRADE forward_failed kind=%s err=%s", event.kind, exc)


class FanoutSink:
    def __init__(self, *sinks: EventSink) -> None:
        self._sinks = list(sinks)

    def add(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: TradeEvent) -> None:
        for sink in self._sinks:
            sink.emit(event)
