"""
SavingsVault: the entry points of the commitment vault.

Each entry point reads the implicit caller from an :class:`IdentitySource`
and the current time from a :class:`BlockClock`, runs the matching
component operation under one lock, and returns ``Ok(value)`` or
``Err(code)``. Domain failures never escape as exceptions; arguments of the
wrong type raise ``TypeError`` before any state changes.

Usage:
    from commitvault.vault import SavingsVault

    vault = SavingsVault.from_config()
    vault.configure_challenge(1, 100, 1000, 10, 20, 30, 0, 100)
    with vault.identity.acting_as("ST2USER"):
        vault.deposit_funds(1, 500)
    vault.clock.advance_to(100)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from commitvault.access import AdminState
from commitvault.config import VaultConfig, get_config
from commitvault.ledger import VaultLedger
from commitvault.observability import (
    AuditLogger,
    VaultLayer,
    correlation_id_var,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from commitvault.query import StatusQuery
from commitvault.registry import ConfigRegistry
from commitvault.result import Err, Ok, Result, VaultError
from commitvault.transfers import TransferLedger

T = TypeVar("T")

logger = get_logger("vault", VaultLayer.VAULT)

# Entry-point arguments naming principals; every other argument is an integer.
PRINCIPAL_ARGS = frozenset({"user", "new_authority"})


def check_arguments(action: str, arguments: Dict[str, Any]) -> None:
    """
    Reject malformed entry-point arguments before any state is touched.

    Raises TypeError: these are caller bugs, not vault outcomes.
    """
    for name, value in arguments.items():
        if name in PRINCIPAL_ARGS:
            if not isinstance(value, str) or not value:
                raise TypeError(f"{action}: {name} must be a non-empty string, got {value!r}")
        elif isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(
                f"{action}: {name} must be an integer, got {type(value).__name__} {value!r}"
            )


class BlockClock:
    """Externally driven monotonic tick counter."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Clock cannot start below zero")
        self._now = start

    @property
    def now(self) -> int:
        return self._now

    def advance(self, ticks: int = 1) -> int:
        if ticks < 0:
            raise ValueError(f"Clock cannot move backwards (advance by {ticks})")
        self._now += ticks
        return self._now

    def advance_to(self, height: int) -> int:
        if height < self._now:
            raise ValueError(f"Clock cannot move backwards ({self._now} -> {height})")
        self._now = height
        return self._now


class IdentitySource:
    """
    Holds the principal on whose behalf the next call is made.

    ``set`` changes the default principal for every caller. ``acting_as``
    overrides it for the current thread (or asyncio task) only, so threads
    sharing a vault never see each other's identity.
    """

    def __init__(self, principal: str):
        self._default = principal
        self._override: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
            f"commitvault_identity_{id(self)}", default=None
        )

    @property
    def current(self) -> str:
        override = self._override.get()
        return override if override is not None else self._default

    def set(self, principal: str) -> None:
        self._default = principal

    @contextmanager
    def acting_as(self, principal: str) -> Iterator[str]:
        token = self._override.set(principal)
        try:
            yield principal
        finally:
            self._override.reset(token)


class SavingsVault:
    """
    Commitment vault with role-gated configuration, deposit admission,
    completion, reward claim and penalty enforcement.
    """

    def __init__(
        self,
        admin: AdminState,
        clock: Optional[BlockClock] = None,
        identity: Optional[IdentitySource] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.admin = admin
        self.clock = clock or BlockClock()
        self.identity = identity or IdentitySource(admin.authority)
        self.audit = audit
        self.transfers = TransferLedger()
        self.registry = ConfigRegistry(admin)
        self.ledger = VaultLedger(admin, self.registry, self.transfers)
        self.query = StatusQuery(self.ledger, self.registry)
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        config: Optional[VaultConfig] = None,
        clock: Optional[BlockClock] = None,
        identity: Optional[IdentitySource] = None,
    ) -> "SavingsVault":
        """Initialise administrative state, logging and audit from configuration."""
        config = config or get_config()
        obs = config.observability
        logger.configure(obs.log_level.get(), obs.log_format.get())
        audit = AuditLogger(logger) if obs.audit_enabled.get() else None
        return cls(AdminState.from_config(config), clock=clock, identity=identity, audit=audit)

    # ─────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────

    def _execute(
        self,
        action: str,
        resource_id: str,
        operation: Callable[[str, int], T],
        **details: Any,
    ) -> Result[T]:
        check_arguments(action, details)
        with self._lock:
            token = None
            if not correlation_id_var.get():
                token = set_correlation_id(generate_correlation_id())
            try:
                caller = self.identity.current
                now = self.clock.now
                start = time.monotonic()
                try:
                    result: Result[T] = Ok(operation(caller, now))
                except VaultError as e:
                    result = Err(e.code)
                duration_ms = (time.monotonic() - start) * 1000

                context: Dict[str, Any] = dict(details, caller=caller, now=now)
                if isinstance(result, Err):
                    context["error_code"] = result.code.name
                logger.operation(action, duration_ms, success=result.is_ok, **context)

                if self.audit is not None:
                    if isinstance(result, Ok):
                        self.audit.log(caller, action, resource_id, "success", now,
                                       result=result.value, **details)
                    else:
                        self.audit.log(caller, action, resource_id, "rejected", now,
                                       error=result.code.name, **details)
                return result
            finally:
                if token is not None:
                    correlation_id_var.reset(token)

    # ─────────────────────────────────────────────────────────────────────
    # Authority entry points
    # ─────────────────────────────────────────────────────────────────────

    def configure_challenge(
        self,
        challenge_id: int,
        min_deposit: int,
        max_deposit: int,
        penalty_rate: int,
        reward_rate: int,
        lock_duration: int,
        start_time: int,
        end_time: int,
    ) -> Result[None]:
        def op(caller: str, now: int) -> None:
            self.registry.configure_challenge(
                caller, now, challenge_id, min_deposit, max_deposit,
                penalty_rate, reward_rate, lock_duration, start_time, end_time,
            )

        return self._execute(
            "configure_challenge", f"challenge/{challenge_id}", op,
            challenge_id=challenge_id,
            min_deposit=min_deposit,
            max_deposit=max_deposit,
            penalty_rate=penalty_rate,
            reward_rate=reward_rate,
            lock_duration=lock_duration,
            start_time=start_time,
            end_time=end_time,
        )

    def deactivate_challenge(self, challenge_id: int) -> Result[None]:
        def op(caller: str, now: int) -> None:
            self.registry.deactivate_challenge(caller, challenge_id)

        return self._execute(
            "deactivate_challenge", f"challenge/{challenge_id}", op, challenge_id=challenge_id,
        )

    def set_authority_contract(self, new_authority: str) -> Result[None]:
        def op(caller: str, now: int) -> None:
            self.registry.set_authority_contract(caller, new_authority)

        return self._execute("set_authority_contract", "role/authority", op, new_authority=new_authority)

    # ─────────────────────────────────────────────────────────────────────
    # Depositor entry points
    # ─────────────────────────────────────────────────────────────────────

    def deposit_funds(self, challenge_id: int, amount: int) -> Result[None]:
        def op(caller: str, now: int) -> None:
            self.ledger.deposit_funds(caller, now, challenge_id, amount)

        return self._execute(
            "deposit_funds", f"challenge/{challenge_id}", op, challenge_id=challenge_id, amount=amount,
        )

    def withdraw_on_completion(self, challenge_id: int) -> Result[int]:
        def op(caller: str, now: int) -> int:
            return self.ledger.withdraw_on_completion(caller, now, challenge_id)

        return self._execute(
            "withdraw_on_completion", f"challenge/{challenge_id}", op, challenge_id=challenge_id,
        )

    def claim_reward(self, challenge_id: int) -> Result[int]:
        def op(caller: str, now: int) -> int:
            return self.ledger.claim_reward(caller, now, challenge_id)

        return self._execute("claim_reward", f"challenge/{challenge_id}", op, challenge_id=challenge_id)

    # ─────────────────────────────────────────────────────────────────────
    # Governance entry point
    # ─────────────────────────────────────────────────────────────────────

    def enforce_penalty(self, challenge_id: int, user: str) -> Result[int]:
        def op(caller: str, now: int) -> int:
            return self.ledger.enforce_penalty(caller, now, challenge_id, user)

        return self._execute(
            "enforce_penalty", f"challenge/{challenge_id}/{user}", op,
            challenge_id=challenge_id, user=user,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────

    def get_vault_balance(self, challenge_id: int, user: str) -> int:
        check_arguments("get_vault_balance", {"challenge_id": challenge_id, "user": user})
        with self._lock:
            return self.query.get_vault_balance(challenge_id, user)

    def check_deposit_status(self, challenge_id: int, user: str) -> Result[str]:
        check_arguments("check_deposit_status", {"challenge_id": challenge_id, "user": user})
        with self._lock:
            try:
                return Ok(self.query.check_deposit_status(challenge_id, user))
            except VaultError as e:
                return Err(e.code)

    def export_state(self) -> Dict[str, Any]:
        """JSON-safe snapshot of the whole vault."""
        with self._lock:
            return {
                "time": self.clock.now,
                "admin": self.admin.to_dict(),
                "challenges": {
                    str(cid): config.to_dict() for cid, config in self.registry.items()
                },
                "vaults": [
                    {"challenge_id": key.challenge_id, "user": key.user, **record.to_dict()}
                    for key, record in self.ledger.items()
                ],
                "deposit_counts": self.ledger.deposit_counts(),
                "transfers": self.transfers.to_dict(),
            }
