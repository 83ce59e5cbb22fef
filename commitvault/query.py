"""Read-only projections over the vault ledger. No authorization, no side effects."""

from __future__ import annotations

from typing import Optional

from commitvault.ledger import VaultLedger, VaultRecord
from commitvault.registry import ChallengeConfig, ConfigRegistry
from commitvault.result import ErrorCode, VaultError


class StatusQuery:
    def __init__(self, ledger: VaultLedger, registry: ConfigRegistry):
        self._ledger = ledger
        self._registry = registry

    def get_vault_balance(self, challenge_id: int, user: str) -> int:
        """Locked amount of the vault, or 0 when there is none."""
        record = self._ledger.get(challenge_id, user)
        return record.locked_amount if record else 0

    def check_deposit_status(self, challenge_id: int, user: str) -> str:
        record = self._ledger.get(challenge_id, user)
        if record is None:
            raise VaultError(ErrorCode.CHALLENGE_NOT_FOUND, f"no vault for {user} in {challenge_id}")
        return record.status.value

    def get_vault(self, challenge_id: int, user: str) -> Optional[VaultRecord]:
        return self._ledger.get(challenge_id, user)

    def get_challenge_config(self, challenge_id: int) -> Optional[ChallengeConfig]:
        return self._registry.get(challenge_id)

    def get_deposit_count(self, user: str) -> int:
        return self._ledger.deposit_count(user)
