"""Tagged order outcomes passed from the order service to the scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from trading.errors import FATAL_AMOUNT_KINDS, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_fatal_amount(self) -> bool:
        return self.kind in FATAL_AMOUNT_KINDS


OrderResult = Union[Ok[Any], Err]
