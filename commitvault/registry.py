"""Challenge configuration registry.

Challenges are written only by the authority. A challenge is never deleted:
re-configuring an id overwrites every parameter and re-activates it, and
deactivation only clears the ``active`` flag. Existing vault records keep
the lock period they copied at deposit time.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterator, Optional, Tuple

from commitvault.access import AdminState, Role, require_role
from commitvault.observability import VaultLayer, get_logger
from commitvault.result import ErrorCode, VaultError

logger = get_logger("registry", VaultLayer.REGISTRY)

MAX_PENALTY_RATE = 100
MAX_REWARD_RATE = 200


@dataclass(frozen=True)
class ChallengeConfig:
    """Parameters of one challenge. Rates are integer percentages."""
    min_deposit: int
    max_deposit: int
    penalty_rate: int
    reward_rate: int
    lock_duration: int
    start_time: int
    end_time: int
    active: bool = True

    def accepts_deposits_at(self, now: int) -> bool:
        return self.active and self.start_time <= now <= self.end_time

    def reward_for(self, amount: int) -> int:
        return amount * self.reward_rate // 100

    def penalty_for(self, amount: int) -> int:
        return amount * self.penalty_rate // 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigRegistry:
    """Challenge parameters keyed by challenge id."""

    def __init__(self, admin: AdminState):
        self._admin = admin
        self._configs: Dict[int, ChallengeConfig] = {}

    def configure_challenge(
        self,
        caller: str,
        now: int,
        challenge_id: int,
        min_deposit: int,
        max_deposit: int,
        penalty_rate: int,
        reward_rate: int,
        lock_duration: int,
        start_time: int,
        end_time: int,
    ) -> ChallengeConfig:
        """
        Validate and (re)write a challenge.

        Checks run in a fixed order and the first failing check is
        reported. ``min_deposit <= max_deposit`` is not checked; such a
        challenge simply admits no deposits.
        """
        require_role(self._admin, caller, Role.AUTHORITY)
        if challenge_id <= 0:
            raise VaultError(ErrorCode.INVALID_CHALLENGE)
        if min_deposit <= 0:
            raise VaultError(ErrorCode.INVALID_MIN_DEPOSIT)
        if max_deposit <= 0:
            raise VaultError(ErrorCode.INVALID_MAX_DEPOSIT)
        if penalty_rate > MAX_PENALTY_RATE:
            raise VaultError(ErrorCode.INVALID_PENALTY_RATE)
        if reward_rate > MAX_REWARD_RATE:
            raise VaultError(ErrorCode.INVALID_REWARD_RATE)
        if lock_duration <= 0:
            raise VaultError(ErrorCode.INVALID_LOCK_PERIOD)
        if start_time < now:
            raise VaultError(ErrorCode.INVALID_STATUS, "start_time is in the past")
        if end_time < now:
            raise VaultError(ErrorCode.INVALID_STATUS, "end_time is in the past")
        if end_time <= start_time:
            raise VaultError(ErrorCode.INVALID_STATUS, "end_time must follow start_time")

        config = ChallengeConfig(
            min_deposit=min_deposit,
            max_deposit=max_deposit,
            penalty_rate=penalty_rate,
            reward_rate=reward_rate,
            lock_duration=lock_duration,
            start_time=start_time,
            end_time=end_time,
            active=True,
        )
        replaced = challenge_id in self._configs
        self._configs[challenge_id] = config
        logger.info(
            "Challenge configured",
            operation="configure_challenge",
            challenge_id=challenge_id,
            replaced=replaced,
        )
        return config

    def deactivate_challenge(self, caller: str, challenge_id: int) -> ChallengeConfig:
        require_role(self._admin, caller, Role.AUTHORITY)
        config = self.require(challenge_id)
        updated = replace(config, active=False)
        self._configs[challenge_id] = updated
        logger.info("Challenge deactivated", operation="deactivate_challenge", challenge_id=challenge_id)
        return updated

    def set_authority_contract(self, caller: str, new_authority: str) -> None:
        require_role(self._admin, caller, Role.AUTHORITY)
        self._admin.replace_authority(new_authority)

    def get(self, challenge_id: int) -> Optional[ChallengeConfig]:
        return self._configs.get(challenge_id)

    def require(self, challenge_id: int) -> ChallengeConfig:
        config = self._configs.get(challenge_id)
        if config is None:
            raise VaultError(ErrorCode.CHALLENGE_NOT_FOUND, f"challenge {challenge_id}")
        return config

    def items(self) -> Iterator[Tuple[int, ChallengeConfig]]:
        return iter(sorted(self._configs.items(), key=lambda kv: kv[0]))

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._configs

    def __len__(self) -> int:
        return len(self._configs)
