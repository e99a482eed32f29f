"""Address normalization helpers."""

from __future__ import annotations

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(value: str | None) -> str:
    """Normalize on-chain address keys for comparisons and lookups."""
    return str(value or "").strip().lower()


def is_zero_address(value: str | None) -> bool:
    addr = normalize_address(value)
    return not addr or addr == ZERO_ADDRESS


def is_address_like(value: str | None) -> bool:
    addr = normalize_address(value)
    if len(addr) != 42 or not addr.startswith("0x"):
        return False
    try:
        int(addr[2:], 16)
    except ValueError:
        return False
    return True
