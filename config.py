"""Application configuration."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv


def _load_dotenv_safe(dotenv_path: str | None = None, *, override: bool = False) -> None:
    """Load dotenv using UTF-8-SIG so BOM-prefixed files don't break first key parsing."""
    try:
        load_dotenv(dotenv_path=dotenv_path, override=override, encoding="utf-8-sig")
    except TypeError:
        # Older python-dotenv versions may not expose the `encoding` argument.
        load_dotenv(dotenv_path=dotenv_path, override=override)


# Load base environment first, then optional per-instance override env file.
_load_dotenv_safe()
_BOT_ENV_FILE = os.getenv("BOT_ENV_FILE", "").strip()
if _BOT_ENV_FILE:
    _bot_env_path = Path(_BOT_ENV_FILE).expanduser()
    if not _bot_env_path.is_absolute():
        _bot_env_path = (Path.cwd() / _bot_env_path).resolve()
    if not _bot_env_path.exists():
        raise FileNotFoundError(f"BOT_ENV_FILE does not exist: {_bot_env_path}")
    if not _bot_env_path.is_file():
        raise IsADirectoryError(f"BOT_ENV_FILE is not a file: {_bot_env_path}")
    try:
        _load_dotenv_safe(str(_bot_env_path), override=True)
    except (OSError, UnicodeError, ValueError) as exc:
        raise RuntimeError(f"Failed to load BOT_ENV_FILE '{_bot_env_path}': {exc}") from exc


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    chain_id: int
    rpc_url: str
    wrapped_native: str
    router: str
    factory: str
    token_manager_helper: str
    token_manager_v1: str
    token_manager_v2: str


def _env_float(name: str, default: float, minimum: float | None = None) -> float:
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        value = float(default)
    if minimum is not None:
        value = max(minimum, value)
    return value


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    try:
        value = int(float(os.getenv(name, str(default))))
    except ValueError:
        value = int(default)
    if minimum is not None:
        value = max(minimum, value)
    return value


TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///bot.db")
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

# Bonding-curve contracts are deployed at the same addresses on both networks.
TOKEN_MANAGER_HELPER_ADDRESS = os.getenv(
    "TOKEN_MANAGER_HELPER_ADDRESS", "0xF251F83e40a78868FcfA3FA4599Dad6494E46034"
)
TOKEN_MANAGER_V1_ADDRESS = os.getenv("TOKEN_MANAGER_V1_ADDRESS", "0xEC4549caDcE5DA21Df6E6422d448034B5233bFbC")
TOKEN_MANAGER_V2_ADDRESS = os.getenv("TOKEN_MANAGER_V2_ADDRESS", "0x5c952063c7fc8610FFDB798152D69F0B9550762b")

NETWORK_PROFILES: Dict[str, NetworkProfile] = {
    "MAINNET": NetworkProfile(
        name="MAINNET",
        chain_id=56,
        rpc_url=os.getenv("MAINNET_RPC_URL", "https://bsc-dataseed.bnbchain.org"),
        wrapped_native="0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
        router="0x10ED43C718714eb63d5aA57B78B54704E256024E",
        factory="0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73",
        token_manager_helper=TOKEN_MANAGER_HELPER_ADDRESS,
        token_manager_v1=TOKEN_MANAGER_V1_ADDRESS,
        token_manager_v2=TOKEN_MANAGER_V2_ADDRESS,
    ),
    "TESTNET": NetworkProfile(
        name="TESTNET",
        chain_id=97,
        rpc_url=os.getenv("TESTNET_RPC_URL", "https://data-seed-prebsc-1-s1.bnbchain.org:8545"),
        wrapped_native="0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd",
        router="0xD99D1c33F9fC3444f8101754aBC46c52416550D1",
        factory="0x6725F303b657a9451d8BA641348b6761A6CC7a17",
        token_manager_helper=TOKEN_MANAGER_HELPER_ADDRESS,
        token_manager_v1=TOKEN_MANAGER_V1_ADDRESS,
        token_manager_v2=TOKEN_MANAGER_V2_ADDRESS,
    ),
}

NETWORK_TYPE = os.getenv("NETWORK_TYPE", "MAINNET").strip().upper()
if NETWORK_TYPE not in NETWORK_PROFILES:
    NETWORK_TYPE = "MAINNET"

TOKEN_ADDRESS = os.getenv("TOKEN_ADDRESS", "").strip()

# Deadline applied to every RPC read and transaction submission.
RPC_TIMEOUT_MS = _env_int("RPC_TIMEOUT_MS", 7000, minimum=100)
TX_RECEIPT_TIMEOUT_SECONDS = _env_int("TX_RECEIPT_TIMEOUT_SECONDS", 60, minimum=1)
SWAP_DEADLINE_SECONDS = _env_int("SWAP_DEADLINE_SECONDS", 1200, minimum=30)
GAS_LIMIT_MULTIPLIER = _env_float("GAS_LIMIT_MULTIPLIER", 1.15, minimum=1.0)
MAX_TX_GAS = _env_int("MAX_TX_GAS", 0, minimum=0)

SLIPPAGE_PERCENT = min(100.0, _env_float("SLIPPAGE_PERCENT", 10.0, minimum=0.0))
WAIT_FROM_SECONDS = _env_int("WAIT_FROM_SECONDS", 5, minimum=0)
WAIT_TO_SECONDS = max(WAIT_FROM_SECONDS, _env_int("WAIT_TO_SECONDS", 15, minimum=0))

RUN_MODE = os.getenv("RUN_MODE", "sequential").strip().lower()
if RUN_MODE not in {"sequential", "concurrent"}:
    RUN_MODE = "sequential"

ORDER_MAX_RETRIES = _env_int("ORDER_MAX_RETRIES", 3, minimum=1)
# Scheduler-initiated orders use a shorter retry budget.
OPERATOR_ORDER_MAX_RETRIES = _env_int("OPERATOR_ORDER_MAX_RETRIES", 2, minimum=1)

# Worker threads for blocking chain calls (reads and submit-and-wait calls).
CHAIN_READ_WORKERS = _env_int("CHAIN_READ_WORKERS", 16, minimum=1)
CHAIN_SUBMIT_WORKERS = _env_int("CHAIN_SUBMIT_WORKERS", 32, minimum=1)

BALANCE_DISPLAY_DECIMALS = _env_int("BALANCE_DISPLAY_DECIMALS", 9, minimum=0)
LOG_HISTORY_LIMIT = _env_int("LOG_HISTORY_LIMIT", 30, minimum=1)
FORWARD_TRADE_EVENTS = os.getenv("FORWARD_TRADE_EVENTS", "1").strip().lower() in {"1", "true", "yes", "on"}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")
APP_LOG_FILE = os.path.join(LOG_DIR, "app.log")
# Headless runner: creating this file asks a running `main_local.py run` to stop.
GRACEFUL_STOP_FILE = os.getenv("GRACEFUL_STOP_FILE", os.path.join("data", "graceful_stop.signal"))

ADMIN_IDS = {
    int(x.strip())
    for x in os.getenv("ADMIN_IDS", "").split(",")
    if x.strip().isdigit()
}


def network_profile(network_type: str | None = None) -> NetworkProfile:
    key = str(network_type or NETWORK_TYPE).strip().upper()
    return NETWORK_PROFILES.get(key, NETWORK_PROFILES["MAINNET"])
