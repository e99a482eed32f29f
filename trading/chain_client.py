"""Blocking web3 adapter for the AMM router and bonding-curve contracts (BNB Smart Chain profiles)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.contract import Contract

import config
from config import NetworkProfile
from trading.abis import (
    ERC20_ABI,
    FACTORY_ABI,
    ROUTER_ABI,
    TOKEN_MANAGER_HELPER_ABI,
    TOKEN_MANAGER_V1_ABI,
    TOKEN_MANAGER_V2_ABI,
    V2_BUY_SIGNATURE,
    V2_SELL_SIGNATURE,
)
from trading.errors import TransactionFailedError
from utils.addressing import ZERO_ADDRESS

logger = logging.getLogger(__name__)

MAX_UINT256 = (2**256) - 1


@dataclass(frozen=True)
class TokenInfo:
    version: int
    token_manager: str
    quote: str
    last_price: int
    launch_time: int
    funds: int
    max_funds: int
    liquidity_added: bool


class ChainClient:
    """Synchronous chain access for one network profile.

    Every method blocks on JSON-RPC; async callers go through
    ChainTimeoutGateway. Transactions are signed locally with an explicit
    nonce supplied by the caller.
    """

    def __init__(self, profile: NetworkProfile, w3: Web3 | None = None) -> None:
        self.profile = profile
        if w3 is None:
            timeout_s = max(1.0, config.RPC_TIMEOUT_MS / 1000.0)
            w3 = Web3(HTTPProvider(profile.rpc_url, request_kwargs={"timeout": timeout_s}))
        self.w3 = w3
        self.wrapped_native = self.w3.to_checksum_address(profile.wrapped_native)
        self.router_address = self.w3.to_checksum_address(profile.router)
        self.router: Contract = self.w3.eth.contract(address=self.router_address, abi=ROUTER_ABI)
        self.factory: Contract = self.w3.eth.contract(
            address=self.w3.to_checksum_address(profile.factory), abi=FACTORY_ABI
        )
        self.helper: Contract = self.w3.eth.contract(
            address=self.w3.to_checksum_address(profile.token_manager_helper), abi=TOKEN_MANAGER_HELPER_ABI
        )

    def checksum(self, address: str) -> str:
        return self.w3.to_checksum_address(address)

    # Reads

    def native_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(self.checksum(address)))

    def transaction_count(self, address: str, block_identifier: str = "latest") -> int:
        return int(self.w3.eth.get_transaction_count(self.checksum(address), block_identifier))

    def _erc20(self, token: str) -> Contract:
        return self.w3.eth.contract(address=self.checksum(token), abi=ERC20_ABI)

    def token_balance(self, token: str, owner: str) -> int:
        return int(self._erc20(token).functions.balanceOf(self.checksum(owner)).call())

    def token_decimals(self, token: str) -> int:
        dec = int(self._erc20(token).functions.decimals().call())
        if not 0 <= dec <= 255:
            raise ValueError(f"token_decimals_out_of_range token={token} decimals={dec}")
        return dec

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return int(
            self._erc20(token).functions.allowance(self.checksum(owner), self.checksum(spender)).call()
        )

    def get_pair(self, token_a: str, token_b: str) -> str:
        return str(self.factory.functions.getPair(self.checksum(token_a), self.checksum(token_b)).call())

    def amounts_out(self, amount_in: int, path: list[str]) -> list[int]:
        amounts = self.router.functions.getAmountsOut(int(amount_in), [self.checksum(p) for p in path]).call()
        return [int(a) for a in amounts]

    def token_info(self, token: str) -> TokenInfo:
        row = self.helper.functions.getTokenInfo(self.checksum(token)).call()
        return TokenInfo(
            version=int(row[0]),
            token_manager=str(row[1]),
            quote=str(row[2]),
            last_price=int(row[3]),
            launch_time=int(row[6]),
            funds=int(row[9]),
            max_funds=int(row[10]),
            liquidity_added=bool(row[11]),
        )

    def try_buy(self, token: str, funds: int) -> int:
        """Simulated bonding-curve purchase; returns the estimated token amount."""
        row = self.helper.functions.tryBuy(self.checksum(token), 0, int(funds)).call()
        return int(row[2])

    def try_sell(self, token: str, amount: int) -> int:
        """Simulated bonding-curve sale; returns the estimated funds."""
        row = self.helper.functions.trySell(self.checksum(token), int(amount)).call()
        return int(row[2])

    # Writes

    def approve(self, signer: LocalAccount, token: str, spender: str, amount: int, nonce: int) -> str:
        tx = self._erc20(token).functions.approve(self.checksum(spender), int(amount)).build_transaction(
            self._tx_params(signer, nonce)
        )
        return self._send_and_wait(signer, tx)

    def swap_exact_eth_for_tokens(
        self,
        signer: LocalAccount,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
        deadline: int,
        nonce: int,
    ) -> str:
        tx = self.router.functions.swapExactETHForTokens(
            int(amount_out_min),
            [self.checksum(p) for p in path],
            signer.address,
            int(deadline),
        ).build_transaction(self._tx_params(signer, nonce, value_wei=amount_in))
        return self._send_and_wait(signer, tx)

    def swap_exact_tokens_for_eth(
        self,
        signer: LocalAccount,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
        deadline: int,
        nonce: int,
    ) -> str:
        tx = self.router.functions.swapExactTokensForETH(
            int(amount_in),
            int(amount_out_min),
            [self.checksum(p) for p in path],
            signer.address,
            int(deadline),
        ).build_transaction(self._tx_params(signer, nonce))
        return self._send_and_wait(signer, tx)

    def _manager(self, address: str, abi: list[dict[str, Any]]) -> Contract:
        return self.w3.eth.contract(address=self.checksum(address), abi=abi)

    def purchase_token_amap(
        self, signer: LocalAccount, manager: str, token: str, funds: int, min_amount: int, nonce: int
    ) -> str:
        contract = self._manager(manager, TOKEN_MANAGER_V1_ABI)
        tx = contract.functions.purchaseTokenAMAP(self.checksum(token), int(funds), int(min_amount)).build_transaction(
            self._tx_params(signer, nonce, value_wei=funds)
        )
        return self._send_and_wait(signer, tx)

    def sale_token(self, signer: LocalAccount, manager: str, token: str, amount: int, nonce: int) -> str:
        contract = self._manager(manager, TOKEN_MANAGER_V1_ABI)
        tx = contract.functions.saleToken(self.checksum(token), int(amount)).build_transaction(
            self._tx_params(signer, nonce)
        )
        return self._send_and_wait(signer, tx)

    def buy_token_amap(
        self, signer: LocalAccount, manager: str, token: str, funds: int, min_amount: int, nonce: int
    ) -> str:
        contract = self._manager(manager, TOKEN_MANAGER_V2_ABI)
        fn = contract.get_function_by_signature(V2_BUY_SIGNATURE)
        tx = fn(self.checksum(token), int(funds), int(min_amount)).build_transaction(
            self._tx_params(signer, nonce, value_wei=funds)
        )
        return self._send_and_wait(signer, tx)

    def sell_token(
        self, signer: LocalAccount, manager: str, token: str, amount: int, min_funds: int, nonce: int
    ) -> str:
        contract = self._manager(manager, TOKEN_MANAGER_V2_ABI)
        fn = contract.get_function_by_signature(V2_SELL_SIGNATURE)
        # origin=0, feeRate=0, feeRecipient=zero: no referral fee routing.
        tx = fn(0, self.checksum(token), int(amount), int(min_funds), 0, ZERO_ADDRESS).build_transaction(
            self._tx_params(signer, nonce)
        )
        return self._send_and_wait(signer, tx)

    def _tx_params(self, signer: LocalAccount, nonce: int, value_wei: int = 0) -> dict[str, Any]:
        return {
            "from": signer.address,
            "chainId": int(self.profile.chain_id),
            "nonce": int(nonce),
            "value": int(value_wei),
            "gasPrice": int(self.w3.eth.gas_price),
        }

    def _send_and_wait(self, signer: LocalAccount, tx: dict[str, Any]) -> str:
        gas = self.w3.eth.estimate_gas(tx)
        gas_limit = int(gas * float(config.GAS_LIMIT_MULTIPLIER))
        gas_cap = int(config.MAX_TX_GAS or 0)
        if gas_cap > 0 and gas_limit > gas_cap:
            raise TransactionFailedError(f"gas_estimate_too_high gas={gas_limit} cap={gas_cap}")
        tx["gas"] = gas_limit

        # Preflight with the node's own wording so the error classifies as insufficient funds.
        bal = int(self.w3.eth.get_balance(signer.address))
        worst_cost = (gas_limit * int(tx.get("gasPrice") or 0)) + int(tx.get("value") or 0)
        if worst_cost > bal:
            raise RuntimeError(
                f"insufficient funds for gas * price + value: have {bal} want {worst_cost} "
                f"gas={gas_limit} value_wei={int(tx.get('value') or 0)}"
            )

        signed = signer.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None)
        if raw_tx is None:
            raw_tx = getattr(signed, "rawTransaction", None)
        if raw_tx is None:
            raise TransactionFailedError("signed_tx_missing_raw_bytes")
        tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=int(config.TX_RECEIPT_TIMEOUT_SECONDS))
        if int(receipt.status) != 1:
            raise TransactionFailedError(f"tx_failed hash={tx_hash.hex()}")
        logger.info("CHAIN tx_confirmed hash=%s nonce=%s gas=%s", tx_hash.hex(), tx["nonce"], gas_limit)
        return tx_hash.hex()
