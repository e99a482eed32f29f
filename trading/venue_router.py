"""Venue selection: AMM pool when a pair exists, otherwise the bonding-curve sale contract."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from trading.chain_gateway import ChainTimeoutGateway
from trading.errors import TokenNotFoundError, short_error_text
from utils.addressing import is_zero_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmmRoute:
    router: str
    wrapped_native: str

    @property
    def spender(self) -> str:
        return self.router

    @property
    def label(self) -> str:
        return "amm"


@dataclass(frozen=True)
class BondingCurveV1:
    manager: str

    @property
    def spender(self) -> str:
        return self.manager

    @property
    def label(self) -> str:
        return "bonding_curve_v1"


@dataclass(frozen=True)
class BondingCurveV2:
    manager: str

    @property
    def spender(self) -> str:
        return self.manager

    @property
    def label(self) -> str:
        return "bonding_curve_v2"


BondingCurveRoute = Union[BondingCurveV1, BondingCurveV2]
Route = Union[AmmRoute, BondingCurveV1, BondingCurveV2]


class VenueRouter:
    def __init__(self, gateway: ChainTimeoutGateway, client: Any) -> None:
        self.gateway = gateway
        self.client = client

    async def has_amm_pair(self, token: str) -> bool:
        """True only when the factory reports a non-zero pair against wrapped native."""
        wrapped = self.client.wrapped_native
        try:
            pair = await self.gateway.execute(
                lambda: self.client.get_pair(token, wrapped),
                on_timeout_message="pair lookup timed out",
            )
        except Exception as exc:
            logger.info("VENUE pair_lookup_failed token=%s err=%s", token, short_error_text(exc))
            return False
        return not is_zero_address(pair)

    async def resolve_bonding_curve(self, token: str) -> BondingCurveRoute:
        info = await self.gateway.execute(
            lambda: self.client.token_info(token),
            on_timeout_message="bonding-curve token info timed out",
        )
        if int(info.launch_time) == 0:
            raise TokenNotFoundError(f"token not listed on bonding-curve venue token={token}")
        if int(info.version) == 1:
            return BondingCurveV1(manager=str(info.token_manager))
        return BondingCurveV2(manager=str(info.token_manager))

    async def select(self, token: str) -> Route:
        if await self.has_amm_pair(token):
            return AmmRoute(router=self.client.router_address, wrapped_native=self.client.wrapped_native)
        return await self.resolve_bonding_curve(token)
