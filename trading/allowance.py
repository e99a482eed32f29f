"""ERC20 allowance check and max approval before sells."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_account.signers.local import LocalAccount

from trading.chain_client import MAX_UINT256
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import short_error_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalOutcome:
    nonce: int
    approved: bool
    message: str
    tx_hash: str | None = None


class AllowanceManager:
    def __init__(self, gateway: ChainTimeoutGateway, client: Any) -> None:
        self.gateway = gateway
        self.client = client

    async def ensure_allowance(
        self,
        signer: LocalAccount,
        token: str,
        spender: str,
        amount_needed: int,
        nonce: int,
    ) -> ApprovalOutcome:
        """Approve MAX_UINT256 when the current allowance is short.

        Returns ``nonce + 1`` when an approval was mined, otherwise the nonce
        unchanged. Failures are reported in the outcome instead of raised so
        the caller can still attempt the swap.
        """
        owner = signer.address
        try:
            current = int(
                await self.gateway.execute(
                    lambda: self.client.allowance(token, owner, spender),
                    on_timeout_message="allowance check timed out",
                )
            )
            if current >= int(amount_needed):
                return ApprovalOutcome(nonce=nonce, approved=True, message="allowance sufficient, no approval needed")

            tx_hash = await self.gateway.submit(
                lambda: self.client.approve(signer, token, spender, MAX_UINT256, nonce),
                on_timeout_message="approval submission timed out",
            )
        except Exception as exc:
            logger.warning(
                "ALLOWANCE approve_failed owner=%s token=%s spender=%s err=%s",
                owner,
                token,
                spender,
                short_error_text(exc),
            )
            return ApprovalOutcome(nonce=nonce, approved=False, message=f"approval failed: {short_error_text(exc)}")

        logger.info("ALLOWANCE approved owner=%s token=%s spender=%s tx=%s", owner, token, spender, tx_hash)
        return ApprovalOutcome(nonce=nonce + 1, approved=True, message="approval confirmed", tx_hash=str(tx_hash))
