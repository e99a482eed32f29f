"""Error taxonomy for order execution and chain access."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NONCE_CONFLICT = "NONCE_CONFLICT"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    APPROVAL_FAILED = "APPROVAL_FAILED"
    BOT_ALREADY_RUNNING = "BOT_ALREADY_RUNNING"
    BOT_NOT_RUNNING = "BOT_NOT_RUNNING"
    WALLET_CREATION_ERROR = "WALLET_CREATION_ERROR"


# Node and client phrasings, matched case-insensitively against the error text.
INSUFFICIENT_FUNDS_MARKERS = (
    "insufficient funds for gas * price + value",
    "insufficient funds",
    "insufficient balance",
)
NONCE_CONFLICT_MARKERS = (
    "nonce",
    "replacement transaction underpriced",
    "already known",
    "transaction with same hash was already imported",
    "known transaction",
)

# Amount-related failures terminate the account for the current run.
FATAL_AMOUNT_KINDS = frozenset({ErrorKind.INVALID_AMOUNT, ErrorKind.INSUFFICIENT_FUNDS})


class TradingError(RuntimeError):
    """Base class for failures raised by the trading engine."""

    kind = ErrorKind.UNKNOWN_ERROR


class ChainTimeoutError(TradingError):
    """Raised when a chain call does not resolve before its deadline."""

    kind = ErrorKind.TIMEOUT_ERROR


class InsufficientFundsError(TradingError):
    """Raised when the account cannot pay gas plus value. Never retried."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class TokenNotFoundError(TradingError):
    """Raised when the bonding-curve venue has no record of the token."""

    kind = ErrorKind.TOKEN_NOT_FOUND


class TransactionFailedError(TradingError):
    """Raised on a reverted receipt, an empty quote or a rejected submission."""

    kind = ErrorKind.TRANSACTION_FAILED


class InvalidAmountError(TradingError):
    """Raised by pre-submission amount validation; no chain write happened."""

    kind = ErrorKind.INVALID_AMOUNT


class BotStateError(TradingError):
    """Raised when a start/stop command does not match the run state."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class InvalidKeyMaterialError(TradingError):
    """Raised when a seed phrase or private key cannot be parsed."""

    kind = ErrorKind.WALLET_CREATION_ERROR


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def is_insufficient_funds_message(message: str) -> bool:
    return _contains_any(str(message or "").lower(), INSUFFICIENT_FUNDS_MARKERS)


def is_nonce_conflict_message(message: str) -> bool:
    return _contains_any(str(message or "").lower(), NONCE_CONFLICT_MARKERS)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised during an order attempt to its ErrorKind."""
    if isinstance(exc, TradingError):
        return exc.kind
    message = str(exc)
    if is_insufficient_funds_message(message):
        return ErrorKind.INSUFFICIENT_FUNDS
    if is_nonce_conflict_message(message):
        return ErrorKind.NONCE_CONFLICT
    return ErrorKind.TRANSACTION_FAILED


def short_error_text(value: object, limit: int = 180) -> str:
    text = " ".join(str(value or "").split())
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."
