import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import commitvault`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from commitvault.access import AdminState  # noqa: E402
from commitvault.observability import AuditLogger  # noqa: E402
from commitvault.vault import SavingsVault  # noqa: E402

AUTHORITY = "ST1AUTH"
GOVERNANCE = "ST1GOV"
REWARD_SOURCE = "ST1REWARD"
USER = "ST2USER"
OTHER_USER = "ST3USER"
STRANGER = "ST2FAKE"

# (challenge_id, min, max, penalty, reward, lock, start, end)
STANDARD_CHALLENGE = (1, 100, 1000, 10, 20, 30, 0, 100)


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless COMMITVAULT_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('COMMITVAULT_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set COMMITVAULT_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep COMMITVAULT_* variables from the outer shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("COMMITVAULT_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def admin() -> AdminState:
    return AdminState(
        authority=AUTHORITY,
        governance=GOVERNANCE,
        reward_source=REWARD_SOURCE,
        custody="contract",
        max_deposits_per_user=1000,
    )


@pytest.fixture
def vault(admin) -> SavingsVault:
    """Fresh vault at time 0, acting as the authority."""
    return SavingsVault(admin, audit=AuditLogger())


@pytest.fixture
def configured_vault(vault) -> SavingsVault:
    """Vault with the standard challenge 1 configured."""
    assert vault.configure_challenge(*STANDARD_CHALLENGE).is_ok
    return vault


@pytest.fixture
def deposited_vault(configured_vault) -> SavingsVault:
    """Standard challenge with USER holding a 500 deposit made at time 0."""
    with configured_vault.identity.acting_as(USER):
        assert configured_vault.deposit_funds(1, 500).is_ok
    return configured_vault
