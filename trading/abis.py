"""Minimal contract ABIs for the AMM router/factory, ERC20 and the bonding-curve venue."""

from __future__ import annotations

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in (outputs or [])],
    }


ERC20_ABI: list[dict[str, Any]] = [
    _fn("decimals", [], [("", "uint8")], "view"),
    _fn("balanceOf", [("owner", "address")], [("", "uint256")], "view"),
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")], "view"),
    _fn("approve", [("spender", "address"), ("value", "uint256")], [("", "bool")]),
]


ROUTER_ABI: list[dict[str, Any]] = [
    _fn("getAmountsOut", [("amountIn", "uint256"), ("path", "address[]")], [("amounts", "uint256[]")], "view"),
    _fn("getAmountsIn", [("amountOut", "uint256"), ("path", "address[]")], [("amounts", "uint256[]")], "view"),
    _fn(
        "swapExactETHForTokens",
        [("amountOutMin", "uint256"), ("path", "address[]"), ("to", "address"), ("deadline", "uint256")],
        [("amounts", "uint256[]")],
        "payable",
    ),
    _fn(
        "swapExactTokensForETH",
        [
            ("amountIn", "uint256"),
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
    ),
]


FACTORY_ABI: list[dict[str, Any]] = [
    _fn("getPair", [("tokenA", "address"), ("tokenB", "address")], [("pair", "address")], "view"),
]


TOKEN_MANAGER_HELPER_ABI: list[dict[str, Any]] = [
    _fn(
        "getTokenInfo",
        [("token", "address")],
        [
            ("version", "uint256"),
            ("tokenManager", "address"),
            ("quote", "address"),
            ("lastPrice", "uint256"),
            ("tradingFeeRate", "uint256"),
            ("minTradingFee", "uint256"),
            ("launchTime", "uint256"),
            ("offers", "uint256"),
            ("maxOffers", "uint256"),
            ("funds", "uint256"),
            ("maxFunds", "uint256"),
            ("liquidityAdded", "bool"),
        ],
        "view",
    ),
    _fn(
        "tryBuy",
        [("token", "address"), ("amount", "uint256"), ("funds", "uint256")],
        [
            ("tokenManager", "address"),
            ("quote", "address"),
            ("estimatedAmount", "uint256"),
            ("estimatedCost", "uint256"),
            ("estimatedFee", "uint256"),
            ("amountMsgValue", "uint256"),
            ("amountApproval", "uint256"),
            ("amountFunds", "uint256"),
        ],
        "view",
    ),
    _fn(
        "trySell",
        [("token", "address"), ("amount", "uint256")],
        [("tokenManager", "address"), ("quote", "address"), ("funds", "uint256"), ("fee", "uint256")],
        "view",
    ),
]


TOKEN_MANAGER_V1_ABI: list[dict[str, Any]] = [
    _fn("purchaseTokenAMAP", [("token", "address"), ("funds", "uint256"), ("minAmount", "uint256")], [], "payable"),
    _fn("saleToken", [("token", "address"), ("amount", "uint256")], []),
]


TOKEN_MANAGER_V2_ABI: list[dict[str, Any]] = [
    _fn("buyTokenAMAP", [("token", "address"), ("funds", "uint256"), ("minAmount", "uint256")], [], "payable"),
    _fn(
        "buyTokenAMAP",
        [("origin", "uint256"), ("token", "address"), ("funds", "uint256"), ("minAmount", "uint256")],
        [],
        "payable",
    ),
    _fn("sellToken", [("token", "address"), ("amount", "uint256")], []),
    _fn(
        "sellToken",
        [
            ("origin", "uint256"),
            ("token", "address"),
            ("amount", "uint256"),
            ("minFunds", "uint256"),
            ("feeRate", "uint256"),
            ("feeRecipient", "address"),
        ],
        [],
    ),
]

V2_BUY_SIGNATURE = "buyTokenAMAP(address,uint256,uint256)"
V2_SELL_SIGNATURE = "sellToken(uint256,address,uint256,uint256,uint256,address)"
