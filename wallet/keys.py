"""Wallet derivation from a raw private key or a BIP-39 seed phrase."""

from __future__ import annotations

from dataclasses import dataclass

from eth_account import Account

from trading.errors import InvalidKeyMaterialError

DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"

Account.enable_unaudited_hdwallet_features()


@dataclass(frozen=True)
class DerivedWallet:
    private_key: str
    address: str


def _prefixed_hex(raw: bytes) -> str:
    return "0x" + bytes(raw).hex()


def derive_from_private_key(key: str) -> DerivedWallet:
    raw = str(key or "").strip()
    if not raw:
        raise InvalidKeyMaterialError("private key is empty")
    if not raw.startswith("0x"):
        raw = "0x" + raw
    try:
        acct = Account.from_key(raw)
    except Exception as exc:
        raise InvalidKeyMaterialError(f"invalid private key: {exc}") from exc
    return DerivedWallet(private_key=_prefixed_hex(acct.key), address=acct.address)


def derive_from_seed(phrase: str, account_path: str = DEFAULT_DERIVATION_PATH) -> DerivedWallet:
    words = " ".join(str(phrase or "").split())
    if not words:
        raise InvalidKeyMaterialError("seed phrase is empty")
    try:
        acct = Account.from_mnemonic(words, account_path=account_path)
    except Exception as exc:
        raise InvalidKeyMaterialError(f"invalid seed phrase: {exc}") from exc
    return DerivedWallet(private_key=_prefixed_hex(acct.key), address=acct.address)


def looks_like_seed_phrase(value: str) -> bool:
    return len(str(value or "").split()) in {12, 15, 18, 21, 24}
