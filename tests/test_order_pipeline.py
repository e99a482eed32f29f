from __future__ import annotations

import unittest

from chain_fakes import (
    MANAGER,
    PAIR,
    TEST_PRIVATE_KEY,
    TOKEN,
    WRAPPED,
    ConfigPatchMixin,
    FakeChainClient,
    RecordingSink,
    bonding_info,
)
from trading import events
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import InsufficientFundsError, TokenNotFoundError, TransactionFailedError
from trading.order_pipeline import (
    SIDE_BUY,
    SIDE_SELL,
    OrderPhase,
    OrderPipeline,
    OrderRequest,
    PhaseTracker,
    apply_slippage,
)
from utils.addressing import ZERO_ADDRESS


def _request(side: str = SIDE_BUY, amount: int = 10**16, slippage: float = 10.0) -> OrderRequest:
    return OrderRequest(
        side=side,
        private_key=TEST_PRIVATE_KEY,
        token=TOKEN,
        amount=amount,
        slippage_pct=slippage,
        account_id=1,
    )


class SlippageTests(unittest.TestCase):
    def test_min_out_never_exceeds_quote(self) -> None:
        for quoted in (0, 1, 999, 1_000, 123_456_789, 10**24 + 7):
            for pct in (0, 0.1, 0.5, 1, 5, 10, 33.3, 50, 99.9, 100):
                min_out = apply_slippage(quoted, pct)
                self.assertGreaterEqual(min_out, 0)
                self.assertLessEqual(min_out, quoted)

    def test_per_mille_floor(self) -> None:
        self.assertEqual(apply_slippage(1_000, 10), 900)
        self.assertEqual(apply_slippage(1_001, 0.5), 995)
        self.assertEqual(apply_slippage(1_000, 0), 1_000)
        self.assertEqual(apply_slippage(1_000, 100), 0)

    def test_out_of_range_slippage_rejected(self) -> None:
        with self.assertRaises(ValueError):
            apply_slippage(1_000, -1)
        with self.assertRaises(ValueError):
            apply_slippage(1_000, 100.5)


class PhaseTrackerTests(unittest.TestCase):
    def test_retry_path_is_allowed(self) -> None:
        tracker = PhaseTracker()
        for phase in (
            OrderPhase.QUOTING,
            OrderPhase.FAILED,
            OrderPhase.QUOTING,
            OrderPhase.APPROVING,
            OrderPhase.SUBMITTING,
            OrderPhase.DONE,
        ):
            tracker.enter(phase)
        self.assertEqual(tracker.phase, OrderPhase.DONE)

    def test_skipping_quote_is_rejected(self) -> None:
        tracker = PhaseTracker()
        with self.assertRaises(RuntimeError):
            tracker.enter(OrderPhase.SUBMITTING)

    def test_done_is_terminal(self) -> None:
        tracker = PhaseTracker()
        tracker.enter(OrderPhase.QUOTING)
        tracker.enter(OrderPhase.SUBMITTING)
        tracker.enter(OrderPhase.DONE)
        with self.assertRaises(RuntimeError):
            tracker.enter(OrderPhase.QUOTING)


class OrderPipelineTests(ConfigPatchMixin, unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.patch_cfg(SWAP_DEADLINE_SECONDS=1200)
        self.sink = RecordingSink()

    def _pipeline(self, client: FakeChainClient) -> OrderPipeline:
        return OrderPipeline(client, gateway=ChainTimeoutGateway(timeout_ms=2000), sink=self.sink, clock=lambda: 1_000.0)

    async def test_amm_buy_submits_with_slippage_bound(self) -> None:
        client = FakeChainClient(pair=PAIR, quote=2_000)
        receipt = await self._pipeline(client).execute(_request(slippage=10), max_retries=3)

        self.assertEqual(receipt.route, "amm")
        self.assertEqual(receipt.quoted_out, 2_000)
        self.assertEqual(receipt.min_out, 1_800)
        self.assertEqual(receipt.attempts, 1)
        self.assertEqual(len(client.submissions), 1)
        sub = client.submissions[0]
        self.assertEqual(sub["method"], "swap_exact_eth_for_tokens")
        self.assertEqual(sub["nonce"], 5)
        self.assertEqual(sub["min_out"], 1_800)
        self.assertEqual(sub["path"], [WRAPPED, TOKEN])
        self.assertEqual(self.sink.kinds()[0], events.NONCE_INITIAL)
        self.assertIn(events.TX_SUBMITTED, self.sink.kinds())

    async def test_insufficient_funds_is_not_retried(self) -> None:
        client = FakeChainClient(pair=PAIR)
        client.submit_failures = [RuntimeError("insufficient funds for gas * price + value: have 1 want 2")]

        with self.assertRaises(InsufficientFundsError):
            await self._pipeline(client).execute(_request(), max_retries=3)

        self.assertEqual(len(client.submissions), 1)
        self.assertEqual(len(self.sink.of_kind(events.ORDER_FATAL)), 1)
        self.assertEqual(self.sink.of_kind(events.ORDER_FATAL)[0].fields["error_kind"], "INSUFFICIENT_FUNDS")
        self.assertEqual(self.sink.of_kind(events.ORDER_RETRY), [])

    async def test_generic_failure_requotes_and_retries(self) -> None:
        client = FakeChainClient(pair=PAIR)
        client.submit_failures = [RuntimeError("execution reverted"), None]

        receipt = await self._pipeline(client).execute(_request(), max_retries=3)

        self.assertEqual(receipt.attempts, 2)
        self.assertEqual(len(client.submissions), 2)
        self.assertEqual(client.quote_calls, 2)
        self.assertEqual(len(self.sink.of_kind(events.ORDER_RETRY)), 1)
        failures = self.sink.of_kind(events.ORDER_ERROR)
        self.assertEqual([e.fields["error_kind"] for e in failures], ["TRANSACTION_FAILED"])

    async def test_exhausted_retries_raise_last_error(self) -> None:
        client = FakeChainClient(pair=PAIR)
        client.submit_failures = [
            RuntimeError("execution reverted: first"),
            RuntimeError("execution reverted: second"),
            RuntimeError("execution reverted: third"),
        ]

        with self.assertRaises(RuntimeError) as ctx:
            await self._pipeline(client).execute(_request(), max_retries=3)

        self.assertIn("third", str(ctx.exception))
        self.assertEqual(len(client.submissions), 3)

    async def test_nonce_conflict_adopts_pending_count(self) -> None:
        client = FakeChainClient(pair=PAIR, confirmed_nonce=5, pending_nonce=9)
        client.submit_failures = [ValueError("nonce too low")]

        receipt = await self._pipeline(client).execute(_request(), max_retries=3)

        self.assertEqual([s["nonce"] for s in client.submissions], [5, 9])
        self.assertEqual(receipt.nonce, 9)
        self.assertIn("pending", client.count_reads)

    async def test_nonce_never_decreases_across_retries(self) -> None:
        client = FakeChainClient(pair=PAIR, confirmed_nonce=5)
        observed = [7, 6, 6]
        client.before_submit = lambda nonce: setattr(client, "confirmed_nonce", observed.pop(0))
        client.submit_failures = [RuntimeError("execution reverted"), RuntimeError("execution reverted"), None]

        await self._pipeline(client).execute(_request(), max_retries=3)

        nonces = [s["nonce"] for s in client.submissions]
        self.assertEqual(nonces, [5, 7, 7])
        self.assertEqual(nonces, sorted(nonces))

    async def test_sell_approval_consumes_nonce_before_swap(self) -> None:
        client = FakeChainClient(pair=PAIR, allowance=0)
        receipt = await self._pipeline(client).execute(_request(side=SIDE_SELL, amount=10**18), max_retries=3)

        self.assertEqual(client.approvals[0]["nonce"], 5)
        self.assertEqual(client.submissions[0]["method"], "swap_exact_tokens_for_eth")
        self.assertEqual(client.submissions[0]["nonce"], 6)
        self.assertEqual(client.submissions[0]["path"], [TOKEN, WRAPPED])
        self.assertEqual(receipt.approval_tx_hash, "0xapprove5")

    async def test_sell_with_sufficient_allowance_skips_approval(self) -> None:
        client = FakeChainClient(pair=PAIR, allowance=10**30)
        await self._pipeline(client).execute(_request(side=SIDE_SELL, amount=10**18), max_retries=3)

        self.assertEqual(client.approvals, [])
        self.assertEqual(client.submissions[0]["nonce"], 5)

    async def test_failed_approval_still_attempts_swap(self) -> None:
        client = FakeChainClient(pair=PAIR, allowance=0)
        client.approve_error = RuntimeError("execution reverted")
        await self._pipeline(client).execute(_request(side=SIDE_SELL, amount=10**18), max_retries=3)

        self.assertEqual(client.submissions[0]["nonce"], 5)
        self.assertFalse(self.sink.of_kind(events.APPROVAL)[0].fields["approved"])

    async def test_bonding_curve_dispatch_by_version(self) -> None:
        cases = [
            (1, SIDE_BUY, "purchase_token_amap"),
            (1, SIDE_SELL, "sale_token"),
            (2, SIDE_BUY, "buy_token_amap"),
            (2, SIDE_SELL, "sell_token"),
        ]
        for version, side, method in cases:
            with self.subTest(version=version, side=side):
                client = FakeChainClient(pair=ZERO_ADDRESS, info=bonding_info(version=version), allowance=10**30)
                receipt = await self._pipeline(client).execute(_request(side=side), max_retries=1)
                self.assertEqual(client.submissions[0]["method"], method)
                self.assertEqual(client.submissions[0]["manager"], MANAGER)
                self.assertEqual(receipt.route, f"bonding_curve_v{version}")

    async def test_zero_bonding_quote_surfaces_token_not_found(self) -> None:
        client = FakeChainClient(pair=ZERO_ADDRESS, info=bonding_info(version=2), quote=0)
        with self.assertRaises(TokenNotFoundError):
            await self._pipeline(client).execute(_request(), max_retries=2)
        self.assertEqual(client.submissions, [])

    async def test_zero_amm_quote_is_a_failed_transaction(self) -> None:
        client = FakeChainClient(pair=PAIR, quote=0)
        with self.assertRaises(TransactionFailedError):
            await self._pipeline(client).execute(_request(), max_retries=2)
        self.assertEqual(client.quote_calls, 2)

    async def test_non_positive_amount_rejected_before_chain(self) -> None:
        client = FakeChainClient(pair=PAIR)
        with self.assertRaises(ValueError):
            await self._pipeline(client).execute(_request(amount=0))
        self.assertEqual(client.count_reads, [])


if __name__ == "__main__":
    unittest.main()
