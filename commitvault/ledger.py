"""
Vault ledger: one deposit record per (challenge, user) and its state machine.

State machine
─────────────

    deposit_funds ──► ACTIVE ──withdraw_on_completion──► COMPLETED ──claim_reward──► (reward_claimed)
                        │
                        └──────enforce_penalty─────────► FAILED (penalty_enforced)

COMPLETED and FAILED are terminal and mutually exclusive. Every operation
runs all of its checks before touching state, so a rejected call leaves
records, counters and transfers exactly as they were.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterator, NamedTuple, Optional, Tuple

from commitvault.access import AdminState, Role, require_role
from commitvault.observability import VaultLayer, get_logger
from commitvault.registry import ChallengeConfig, ConfigRegistry
from commitvault.result import ErrorCode, VaultError
from commitvault.transfers import Asset, TransferLedger, TransferReason

logger = get_logger("ledger", VaultLayer.LEDGER)


class VaultStatus(Enum):
    """Lifecycle status of a vault record."""
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != VaultStatus.ACTIVE


class VaultKey(NamedTuple):
    """Composite key of a vault record."""
    challenge_id: int
    user: str


@dataclass(frozen=True)
class VaultRecord:
    """A user's locked deposit against one challenge."""
    locked_amount: int
    deposit_time: int
    lock_period: int
    status: VaultStatus = VaultStatus.ACTIVE
    penalty_enforced: bool = False
    reward_claimed: bool = False

    @property
    def unlock_time(self) -> int:
        return self.deposit_time + self.lock_period

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


class VaultLedger:
    """
    Deposit records, per-user deposit counters and the transitions between
    vault states.

    Transitions take the caller and current time explicitly; identity and
    clock sources live in :class:`commitvault.vault.SavingsVault`.
    """

    def __init__(
        self,
        admin: AdminState,
        registry: ConfigRegistry,
        transfers: TransferLedger,
    ):
        self._admin = admin
        self._registry = registry
        self._transfers = transfers
        self._vaults: Dict[VaultKey, VaultRecord] = {}
        self._deposit_counts: Dict[str, int] = {}

    # ─────────────────────────────────────────────────────────────────────
    # Admission
    # ─────────────────────────────────────────────────────────────────────

    def deposit_funds(self, caller: str, now: int, challenge_id: int, amount: int) -> VaultRecord:
        config = self._registry.require(challenge_id)
        if not config.accepts_deposits_at(now):
            raise VaultError(ErrorCode.CHALLENGE_NOT_STARTED)
        key = VaultKey(challenge_id, caller)
        if key in self._vaults:
            raise VaultError(ErrorCode.USER_ALREADY_DEPOSITED)
        if amount <= 0:
            raise VaultError(ErrorCode.INVALID_AMOUNT)
        if amount < config.min_deposit:
            raise VaultError(ErrorCode.INVALID_MIN_DEPOSIT)
        if amount > config.max_deposit:
            raise VaultError(ErrorCode.INVALID_MAX_DEPOSIT)
        count = self._deposit_counts.get(caller, 0)
        if count >= self._admin.max_deposits_per_user:
            raise VaultError(ErrorCode.MAX_DEPOSITS_EXCEEDED)

        self._transfers.record(
            Asset.LOCKED, amount, caller, self._admin.custody,
            challenge_id, TransferReason.DEPOSIT, now,
        )
        record = VaultRecord(
            locked_amount=amount,
            deposit_time=now,
            lock_period=config.lock_duration,
        )
        self._vaults[key] = record
        self._deposit_counts[caller] = count + 1
        logger.info(
            "Deposit admitted",
            operation="deposit_funds",
            challenge_id=challenge_id,
            user=caller,
            amount=amount,
            unlock_time=record.unlock_time,
        )
        return record

    # ─────────────────────────────────────────────────────────────────────
    # Completion and claim
    # ─────────────────────────────────────────────────────────────────────

    def withdraw_on_completion(self, caller: str, now: int, challenge_id: int) -> int:
        """
        Return the principal to the depositor and mark the vault completed.

        The reward is computed and returned but not transferred; it has to
        be collected with :meth:`claim_reward`.
        """
        key, record, config = self._require_vault(challenge_id, caller)
        if record.status.is_terminal:
            raise VaultError(ErrorCode.INVALID_STATUS)
        if now < record.unlock_time:
            raise VaultError(ErrorCode.LOCK_PERIOD_NOT_ENDED)
        reward = config.reward_for(record.locked_amount)
        if reward <= 0:
            raise VaultError(ErrorCode.REWARD_NOT_AVAILABLE)

        self._transfers.record(
            Asset.LOCKED, record.locked_amount, self._admin.custody, caller,
            challenge_id, TransferReason.WITHDRAWAL, now,
        )
        self._vaults[key] = replace(record, status=VaultStatus.COMPLETED, reward_claimed=False)
        logger.info(
            "Vault completed",
            operation="withdraw_on_completion",
            challenge_id=challenge_id,
            user=caller,
            reward=reward,
        )
        return reward

    def claim_reward(self, caller: str, now: int, challenge_id: int) -> int:
        key, record, config = self._require_vault(challenge_id, caller)
        if record.status != VaultStatus.COMPLETED:
            raise VaultError(ErrorCode.INVALID_STATUS)
        if record.reward_claimed:
            raise VaultError(ErrorCode.REWARD_NOT_AVAILABLE)

        reward = config.reward_for(record.locked_amount)
        self._transfers.record(
            Asset.REWARD, reward, self._admin.reward_source, caller,
            challenge_id, TransferReason.REWARD, now,
        )
        self._vaults[key] = replace(record, reward_claimed=True)
        logger.info(
            "Reward claimed",
            operation="claim_reward",
            challenge_id=challenge_id,
            user=caller,
            reward=reward,
        )
        return reward

    # ─────────────────────────────────────────────────────────────────────
    # Penalty
    # ─────────────────────────────────────────────────────────────────────

    def enforce_penalty(self, caller: str, now: int, challenge_id: int, user: str) -> int:
        """
        Fail an active vault: the penalty share goes to governance and the
        remainder back to the depositor. ``penalty + remaining`` always
        equals the locked amount.
        """
        require_role(self._admin, caller, Role.GOVERNANCE)
        key, record, config = self._require_vault(challenge_id, user)
        if record.status.is_terminal:
            raise VaultError(ErrorCode.INVALID_STATUS)
        if record.penalty_enforced:
            raise VaultError(ErrorCode.PENALTY_ALREADY_ENFORCED)

        penalty = config.penalty_for(record.locked_amount)
        remaining = record.locked_amount - penalty
        custody = self._admin.custody
        self._transfers.record(
            Asset.LOCKED, penalty, custody, self._admin.governance,
            challenge_id, TransferReason.PENALTY, now,
        )
        self._transfers.record(
            Asset.LOCKED, remaining, custody, user,
            challenge_id, TransferReason.PENALTY_REFUND, now,
        )
        self._vaults[key] = replace(record, status=VaultStatus.FAILED, penalty_enforced=True)
        logger.info(
            "Penalty enforced",
            operation="enforce_penalty",
            challenge_id=challenge_id,
            user=user,
            penalty=penalty,
            remaining=remaining,
        )
        return penalty

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    def _require_vault(
        self, challenge_id: int, user: str,
    ) -> Tuple[VaultKey, VaultRecord, ChallengeConfig]:
        key = VaultKey(challenge_id, user)
        record = self._vaults.get(key)
        if record is None:
            raise VaultError(ErrorCode.CHALLENGE_NOT_FOUND, f"no vault for {user} in {challenge_id}")
        config = self._registry.require(challenge_id)
        return key, record, config

    def get(self, challenge_id: int, user: str) -> Optional[VaultRecord]:
        return self._vaults.get(VaultKey(challenge_id, user))

    def deposit_count(self, user: str) -> int:
        return self._deposit_counts.get(user, 0)

    def items(self) -> Iterator[Tuple[VaultKey, VaultRecord]]:
        return iter(sorted(self._vaults.items(), key=lambda kv: kv[0]))

    def deposit_counts(self) -> Dict[str, int]:
        return dict(self._deposit_counts)

    def __len__(self) -> int:
        return len(self._vaults)
