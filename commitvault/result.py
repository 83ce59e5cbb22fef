"""
Vault error codes and result types.

Every entry point of the vault returns either ``Ok(value)`` or ``Err(code)``.
Inside the core, guard conditions raise :class:`VaultError`; the
``SavingsVault`` boundary converts it into an ``Err`` so callers never see
domain failures as exceptions.

Error codes keep the numeric values of the deployed contract so that
external tooling comparing codes keeps working.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(Enum):
    """Closed set of vault failure kinds."""
    NOT_AUTHORIZED = 100
    INVALID_CHALLENGE = 101
    INVALID_AMOUNT = 102
    INVALID_STATUS = 103
    CHALLENGE_NOT_FOUND = 105
    INVALID_PENALTY_RATE = 112
    INVALID_REWARD_RATE = 113
    MAX_DEPOSITS_EXCEEDED = 114
    INVALID_MIN_DEPOSIT = 122
    INVALID_MAX_DEPOSIT = 123
    CHALLENGE_NOT_STARTED = 125
    USER_ALREADY_DEPOSITED = 126
    INVALID_LOCK_PERIOD = 127
    LOCK_PERIOD_NOT_ENDED = 128
    REWARD_NOT_AVAILABLE = 129
    PENALTY_ALREADY_ENFORCED = 130

    @classmethod
    def from_name(cls, name: str) -> "ErrorCode":
        """Look up a code by name, accepting ``ChallengeNotFound`` or ``CHALLENGE_NOT_FOUND``."""
        key = name.strip()
        if key in cls.__members__:
            return cls[key]
        snake = "".join(f"_{c}" if c.isupper() else c for c in key).lstrip("_").upper()
        if snake in cls.__members__:
            return cls[snake]
        raise KeyError(f"Unknown error code: {name}")


class VaultError(Exception):
    """Raised by vault guards when an operation is rejected."""

    def __init__(self, code: ErrorCode, message: str = ""):
        self.code = code
        self.message = message or code.name
        super().__init__(f"{code.name} ({code.value}): {self.message}")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying the operation payload."""
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True, "value": self.value}


@dataclass(frozen=True)
class Err:
    """Rejected outcome carrying the error code."""
    code: ErrorCode

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def value(self) -> int:
        """Numeric error code."""
        return self.code.value

    def unwrap(self) -> Any:
        raise VaultError(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.code.name, "code": self.code.value}


Result = Union[Ok[T], Err]
