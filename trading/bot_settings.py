"""Operator runtime settings persisted as Setting records over env defaults."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import config
from database import db
from utils.addressing import is_address_like

# Setting record keys, shared with the operator surfaces.
KEY_TOKEN_ADDRESS = "tokenAddress"
KEY_MIN_DELAY = "minDelay"
KEY_MAX_DELAY = "maxDelay"
KEY_SLIPPAGE = "slippage"
KEY_NETWORK_TYPE = "networkType"
KEY_RUN_MODE = "runMode"

RUN_MODES = ("sequential", "concurrent")


@dataclass
class BotSettings:
    token_address: str
    wait_from: int
    wait_to: int
    slippage_pct: float
    network_type: str
    run_mode: str

    def validate(self) -> None:
        if self.token_address and not is_address_like(self.token_address):
            raise ValueError(f"token address is not a valid address: {self.token_address}")
        if self.wait_from < 0 or self.wait_to < 0:
            raise ValueError("delays must be non-negative")
        if self.wait_from > self.wait_to:
            raise ValueError("minDelay must not exceed maxDelay")
        if not 0 <= self.slippage_pct <= 100:
            raise ValueError("slippage must be within 0..100")
        if self.network_type not in config.NETWORK_PROFILES:
            raise ValueError(f"unknown network type: {self.network_type}")
        if self.run_mode not in RUN_MODES:
            raise ValueError(f"unknown run mode: {self.run_mode}")

    def as_records(self) -> dict[str, Any]:
        return {
            KEY_TOKEN_ADDRESS: self.token_address,
            KEY_MIN_DELAY: self.wait_from,
            KEY_MAX_DELAY: self.wait_to,
            KEY_SLIPPAGE: self.slippage_pct,
            KEY_NETWORK_TYPE: self.network_type,
            KEY_RUN_MODE: self.run_mode,
        }


def defaults() -> BotSettings:
    return BotSettings(
        token_address=config.TOKEN_ADDRESS,
        wait_from=int(config.WAIT_FROM_SECONDS),
        wait_to=int(config.WAIT_TO_SECONDS),
        slippage_pct=float(config.SLIPPAGE_PERCENT),
        network_type=config.NETWORK_TYPE,
        run_mode=config.RUN_MODE,
    )


def load_settings() -> BotSettings:
    base = defaults()
    stored = db.get_settings()
    settings = BotSettings(
        token_address=str(stored.get(KEY_TOKEN_ADDRESS) or base.token_address).strip(),
        wait_from=int(stored.get(KEY_MIN_DELAY, base.wait_from)),
        wait_to=int(stored.get(KEY_MAX_DELAY, base.wait_to)),
        slippage_pct=float(stored.get(KEY_SLIPPAGE, base.slippage_pct)),
        network_type=str(stored.get(KEY_NETWORK_TYPE) or base.network_type).strip().upper(),
        run_mode=str(stored.get(KEY_RUN_MODE) or base.run_mode).strip().lower(),
    )
    return settings


def save_settings(settings: BotSettings) -> None:
    settings.validate()
    for key, value in settings.as_records().items():
        db.put_setting(key, value)


def update_setting(key: str, raw_value: str) -> BotSettings:
    """Apply one operator-provided value and persist the whole settings set."""
    settings = load_settings()
    value = str(raw_value or "").strip()
    if key == KEY_TOKEN_ADDRESS:
        settings.token_address = value
    elif key == KEY_MIN_DELAY:
        settings.wait_from = int(value)
    elif key == KEY_MAX_DELAY:
        settings.wait_to = int(value)
    elif key == KEY_SLIPPAGE:
        settings.slippage_pct = float(value)
    elif key == KEY_NETWORK_TYPE:
        settings.network_type = value.upper()
    elif key == KEY_RUN_MODE:
        settings.run_mode = value.lower()
    else:
        raise ValueError(f"unknown setting: {key}")
    save_settings(settings)
    return settings
