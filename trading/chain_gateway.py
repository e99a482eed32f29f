"""Deadline wrapper for blocking chain calls."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

import config
from trading.errors import ChainTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainTimeoutGateway:
    """Runs web3 calls in worker threads and races them against a deadline.

    Reads and submit-and-wait calls use separate pools, so accounts blocked
    on a receipt never starve nonce or balance reads of a worker. When the
    deadline wins the caller gets ChainTimeoutError; the worker thread is
    left to finish on its own and its result is dropped.
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        read_workers: int | None = None,
        submit_workers: int | None = None,
    ) -> None:
        self.timeout_ms = int(timeout_ms if timeout_ms is not None else config.RPC_TIMEOUT_MS)
        self._read_pool = ThreadPoolExecutor(
            max_workers=max(1, int(read_workers or config.CHAIN_READ_WORKERS)),
            thread_name_prefix="chain-read",
        )
        self._submit_pool = ThreadPoolExecutor(
            max_workers=max(1, int(submit_workers or config.CHAIN_SUBMIT_WORKERS)),
            thread_name_prefix="chain-submit",
        )

    async def execute(
        self,
        operation: Callable[[], T],
        timeout_ms: int | None = None,
        on_timeout_message: str = "",
    ) -> T:
        limit_ms = int(timeout_ms if timeout_ms is not None else self.timeout_ms)
        return await self._run(self._read_pool, operation, limit_ms, on_timeout_message)

    async def submit(self, operation: Callable[[], T], on_timeout_message: str = "") -> T:
        """Submit-and-wait call; the deadline covers the receipt wait."""
        return await self._run(self._submit_pool, operation, submission_timeout_ms(), on_timeout_message)

    async def _run(
        self,
        pool: ThreadPoolExecutor,
        operation: Callable[[], T],
        limit_ms: int,
        on_timeout_message: str,
    ) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(pool, operation), timeout=limit_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            message = on_timeout_message or f"chain call timed out after {limit_ms}ms"
            logger.warning("CHAIN timeout limit_ms=%s detail=%s", limit_ms, message)
            raise ChainTimeoutError(message) from exc

    def close(self) -> None:
        self._read_pool.shutdown(wait=False)
        self._submit_pool.shutdown(wait=False)


def submission_timeout_ms() -> int:
    """Deadline for a submit-and-wait call: one RPC round plus the receipt wait."""
    return int(config.RPC_TIMEOUT_MS) + int(config.TX_RECEIPT_TIMEOUT_SECONDS) * 1000
