"""Role identities and caller authorization.

The vault knows two privileged roles. The authority configures and
deactivates challenges and may hand its role to another principal; the
governance role enforces penalties. Checks compare the caller against the
role's *current* identity, so a replaced authority loses its rights on the
very next call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from commitvault.config import VaultConfig
from commitvault.observability import VaultLayer, get_logger
from commitvault.result import ErrorCode, VaultError

logger = get_logger("access", VaultLayer.ACCESS)


class Role(Enum):
    """Privileged roles."""
    AUTHORITY = "authority"
    GOVERNANCE = "governance"


@dataclass
class AdminState:
    """
    Administrative state shared by every vault component.

    Built once by :meth:`from_config` (or directly in tests); the authority
    identity is the only field with a replace operation.
    """
    authority: str
    governance: str
    reward_source: str
    custody: str = "contract"
    max_deposits_per_user: int = 1000

    @classmethod
    def from_config(cls, config: VaultConfig) -> "AdminState":
        return cls(
            authority=config.roles.authority.get(),
            governance=config.roles.governance.get(),
            reward_source=config.roles.reward_source.get(),
            custody=config.roles.custody.get(),
            max_deposits_per_user=config.limits.max_deposits_per_user.get(),
        )

    def identity_for(self, role: Role) -> str:
        if role == Role.AUTHORITY:
            return self.authority
        return self.governance

    def replace_authority(self, new_authority: str) -> str:
        """Install a new authority identity, returning the previous one."""
        previous = self.authority
        self.authority = new_authority
        logger.info(
            "Authority replaced",
            operation="replace_authority",
            previous=previous,
            current=new_authority,
        )
        return previous

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authority": self.authority,
            "governance": self.governance,
            "reward_source": self.reward_source,
            "custody": self.custody,
            "max_deposits_per_user": self.max_deposits_per_user,
        }


def has_role(admin: AdminState, caller: str, role: Role) -> bool:
    return caller == admin.identity_for(role)


def require_role(admin: AdminState, caller: str, role: Role) -> None:
    """Raise ``NOT_AUTHORIZED`` unless ``caller`` currently holds ``role``."""
    if not has_role(admin, caller, role):
        logger.warning(
            f"Caller lacks {role.value} role",
            operation="require_role",
            error_code=ErrorCode.NOT_AUTHORIZED.name,
            caller=caller,
        )
        raise VaultError(ErrorCode.NOT_AUTHORIZED, f"{caller} is not {role.value}")
