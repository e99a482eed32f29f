from __future__ import annotations

import unittest

from chain_fakes import MANAGER, PAIR, ROUTER, TOKEN, WRAPPED, FakeChainClient, bonding_info
from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import TokenNotFoundError
from trading.venue_router import AmmRoute, BondingCurveV1, BondingCurveV2, VenueRouter
from utils.addressing import ZERO_ADDRESS


class VenueRouterTests(unittest.IsolatedAsyncioTestCase):
    def _router(self, client: FakeChainClient) -> VenueRouter:
        return VenueRouter(ChainTimeoutGateway(timeout_ms=1000), client)

    async def test_existing_pair_selects_amm(self) -> None:
        route = await self._router(FakeChainClient(pair=PAIR)).select(TOKEN)
        self.assertEqual(route, AmmRoute(router=ROUTER, wrapped_native=WRAPPED))
        self.assertEqual(route.spender, ROUTER)

    async def test_zero_pair_falls_back_to_bonding_curve_v2(self) -> None:
        client = FakeChainClient(pair=ZERO_ADDRESS, info=bonding_info(version=2))
        route = await self._router(client).select(TOKEN)
        self.assertEqual(route, BondingCurveV2(manager=MANAGER))
        self.assertEqual(route.label, "bonding_curve_v2")

    async def test_version_one_selects_v1_interface(self) -> None:
        client = FakeChainClient(pair=ZERO_ADDRESS, info=bonding_info(version=1))
        route = await self._router(client).select(TOKEN)
        self.assertIsInstance(route, BondingCurveV1)

    async def test_pair_lookup_error_is_treated_as_no_pair(self) -> None:
        client = FakeChainClient(pair=RuntimeError("execution reverted"), info=bonding_info(version=2))
        route = await self._router(client).select(TOKEN)
        self.assertIsInstance(route, BondingCurveV2)

    async def test_unlisted_token_raises_token_not_found(self) -> None:
        client = FakeChainClient(pair=ZERO_ADDRESS, info=bonding_info(launch_time=0))
        with self.assertRaises(TokenNotFoundError):
            await self._router(client).select(TOKEN)


if __name__ == "__main__":
    unittest.main()
