"""
commitvault: Time-Locked Commitment Vault

A user locks value against a configured challenge. After the lock period
the user withdraws the principal and claims a proportional reward, or the
governance role enforces a penalty that splits the locked value between
governance and the user.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                         COMMITMENT VAULT                                 │
    │                                                                          │
    │  ENTRY POINTS                                                            │
    │    vault.py         Caller identity, clock, lock, Ok/Err results         │
    │    scenario.py      YAML scenario replay (schema-validated)              │
    │    cli.py           commitvault command                                  │
    │                                                                          │
    │  STATE MACHINE                                                           │
    │    ledger.py        Deposit records: active → completed | failed         │
    │    query.py         Read-only balance and status projections             │
    │    transfers.py     Append-only transfer intents (locked, reward)        │
    │                                                                          │
    │  ADMINISTRATION                                                          │
    │    registry.py      Challenge parameters, authority-only writes          │
    │    access.py        Authority and governance role checks                 │
    │                                                                          │
    │  AMBIENT                                                                 │
    │    config.py        YAML + COMMITVAULT_* environment configuration       │
    │    observability.py Structured logging, hash-chained audit trail         │
    │    result.py        Error codes and Ok/Err result types                  │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Design Principles
─────────────────

    All-or-Nothing: every operation runs its checks before mutating state.
    A rejected call leaves records, counters and transfers untouched.

    Intents, not Payments: the vault records the transfers it needs.
    Moving value is the job of external executors.

    One-Way Lifecycle: active vaults either complete or fail, never both,
    and never return to active.

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.5.0"


# Lazy exports
def __getattr__(name):
    """Lazy import commitvault modules on first access."""

    if name in ("ErrorCode", "VaultError", "Ok", "Err", "Result"):
        from commitvault import result
        return getattr(result, name)

    if name in ("AdminState", "Role", "require_role", "has_role"):
        from commitvault import access
        return getattr(access, name)

    if name in ("ChallengeConfig", "ConfigRegistry"):
        from commitvault import registry
        return getattr(registry, name)

    if name in ("VaultLedger", "VaultRecord", "VaultStatus", "VaultKey"):
        from commitvault import ledger
        return getattr(ledger, name)

    if name in ("Asset", "TransferIntent", "TransferLedger", "TransferReason"):
        from commitvault import transfers
        return getattr(transfers, name)

    if name == "StatusQuery":
        from commitvault import query
        return query.StatusQuery

    if name in ("SavingsVault", "BlockClock", "IdentitySource"):
        from commitvault import vault
        return getattr(vault, name)

    if name in ("ScenarioRunner", "ScenarioError", "load_scenario"):
        from commitvault import scenario
        return getattr(scenario, name)

    raise AttributeError(f"module 'commitvault' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Results
    "ErrorCode",
    "VaultError",
    "Ok",
    "Err",
    "Result",
    # Administration
    "AdminState",
    "Role",
    "ChallengeConfig",
    "ConfigRegistry",
    # State machine
    "VaultLedger",
    "VaultRecord",
    "VaultStatus",
    "VaultKey",
    "TransferLedger",
    "TransferIntent",
    "Asset",
    "StatusQuery",
    # Entry points
    "SavingsVault",
    "BlockClock",
    "IdentitySource",
    "ScenarioRunner",
]
