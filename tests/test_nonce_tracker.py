from __future__ import annotations

import unittest

from chain_fakes import FakeChainClient
from trading.chain_gateway import ChainTimeoutGateway
from trading.nonce_tracker import NonceTracker

ADDRESS = "0x4444444444444444444444444444444444444444"


class NonceTrackerTests(unittest.IsolatedAsyncioTestCase):
    def _tracker(self, client: FakeChainClient) -> NonceTracker:
        return NonceTracker(ChainTimeoutGateway(timeout_ms=1000), client, ADDRESS)

    async def test_initial_reads_confirmed_view(self) -> None:
        client = FakeChainClient(confirmed_nonce=7, pending_nonce=9)
        tracker = self._tracker(client)
        self.assertEqual(await tracker.initial(), 7)
        self.assertEqual(client.count_reads, ["latest"])

    async def test_value_before_initial_is_an_error(self) -> None:
        tracker = self._tracker(FakeChainClient())
        with self.assertRaises(RuntimeError):
            _ = tracker.value

    async def test_confirmed_refresh_only_moves_forward(self) -> None:
        client = FakeChainClient(confirmed_nonce=5)
        tracker = self._tracker(client)
        await tracker.initial()
        tracker.bump()
        client.confirmed_nonce = 4
        self.assertEqual(await tracker.refresh(), 6)
        client.confirmed_nonce = 8
        self.assertEqual(await tracker.refresh(), 8)

    async def test_pending_refresh_is_adopted_unconditionally(self) -> None:
        client = FakeChainClient(confirmed_nonce=10, pending_nonce=9)
        tracker = self._tracker(client)
        await tracker.initial()
        self.assertEqual(await tracker.refresh(pending=True), 9)
        self.assertEqual(client.count_reads, ["latest", "pending"])

    async def test_bump_increments(self) -> None:
        tracker = self._tracker(FakeChainClient(confirmed_nonce=3))
        await tracker.initial()
        self.assertEqual(tracker.bump(), 4)
        self.assertEqual(tracker.value, 4)


if __name__ == "__main__":
    unittest.main()
