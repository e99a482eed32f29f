"""Per-execution nonce bookkeeping for one signing address."""

from __future__ import annotations

import logging
from typing import Any

from trading.chain_gateway import ChainTimeoutGateway

logger = logging.getLogger(__name__)

CONFIRMED_VIEW = "latest"
PENDING_VIEW = "pending"


class NonceTracker:
    """Holds the authoritative next nonce for one address during one order execution.

    The value never moves backwards except through ``refresh(pending=True)``,
    which adopts the pending-view count unconditionally after a nonce conflict.
    """

    def __init__(self, gateway: ChainTimeoutGateway, client: Any, address: str) -> None:
        self.gateway = gateway
        self.client = client
        self.address = address
        self._value: int | None = None

    @property
    def value(self) -> int:
        if self._value is None:
            raise RuntimeError("nonce tracker used before initial()")
        return self._value

    async def _read(self, view: str) -> int:
        return int(
            await self.gateway.execute(
                lambda: self.client.transaction_count(self.address, view),
                on_timeout_message=f"transaction count ({view}) timed out address={self.address}",
            )
        )

    async def initial(self) -> int:
        self._value = await self._read(CONFIRMED_VIEW)
        return self._value

    async def refresh(self, pending: bool = False) -> int:
        if pending:
            self._value = await self._read(PENDING_VIEW)
            return self._value

        observed = await self._read(CONFIRMED_VIEW)
        if self._value is None or observed > self._value:
            self._value = observed
        return self._value

    def bump(self) -> int:
        self._value = self.value + 1
        return self._value
