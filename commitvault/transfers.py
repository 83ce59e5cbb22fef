"""Transfer intents recorded by vault transitions.

The vault never moves value itself. Each transition appends the transfers
it needs to an append-only ledger; external executors for the locked asset
and the reward token read the ledger and carry them out.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from commitvault.observability import VaultLayer, get_logger

logger = get_logger("transfers", VaultLayer.TRANSFERS)


class Asset(Enum):
    """Asset classes handled by the vault."""
    LOCKED = "locked"
    REWARD = "reward"


class TransferReason(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PENALTY = "penalty"
    PENALTY_REFUND = "penalty_refund"
    REWARD = "reward"


@dataclass(frozen=True)
class TransferIntent:
    """A single instructed movement of value."""
    sequence: int
    asset: Asset
    amount: int
    sender: str
    recipient: str
    challenge_id: int
    reason: TransferReason
    time: int

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["asset"] = self.asset.value
        d["reason"] = self.reason.value
        return d


class TransferLedger:
    """Append-only list of transfer intents in submission order."""

    def __init__(self):
        self._transfers: List[TransferIntent] = []

    def record(
        self,
        asset: Asset,
        amount: int,
        sender: str,
        recipient: str,
        challenge_id: int,
        reason: TransferReason,
        time: int,
    ) -> TransferIntent:
        intent = TransferIntent(
            sequence=len(self._transfers) + 1,
            asset=asset,
            amount=amount,
            sender=sender,
            recipient=recipient,
            challenge_id=challenge_id,
            reason=reason,
            time=time,
        )
        self._transfers.append(intent)
        logger.debug(
            f"Recorded {asset.value} transfer",
            operation="record_transfer",
            sequence=intent.sequence,
            amount=amount,
            sender=sender,
            recipient=recipient,
            reason=reason.value,
        )
        return intent

    def transfers(self, asset: Optional[Asset] = None) -> List[TransferIntent]:
        if asset is None:
            return list(self._transfers)
        return [t for t in self._transfers if t.asset == asset]

    def locked_transfers(self) -> List[TransferIntent]:
        return self.transfers(Asset.LOCKED)

    def reward_transfers(self) -> List[TransferIntent]:
        return self.transfers(Asset.REWARD)

    def net_custody_balance(self, custody: str) -> int:
        """Locked value that flowed into ``custody`` minus what flowed out."""
        balance = 0
        for t in self.locked_transfers():
            if t.recipient == custody:
                balance += t.amount
            if t.sender == custody:
                balance -= t.amount
        return balance

    def to_dict(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self._transfers]

    def __len__(self) -> int:
        return len(self._transfers)
