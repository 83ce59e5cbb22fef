"""
Tests for configuration loading, structured logging and the audit trail.
"""

import io
import json
import logging

import pytest
import yaml

from commitvault.config import (
    ConfigError,
    ConfigManager,
    ConfigValidationError,
    ConfigValue,
    VaultConfig,
)
from commitvault.core import canonical_json_bytes
from commitvault.observability import (
    AuditLogger,
    StructuredHandler,
    VaultLayer,
    VaultLogger,
    correlation_id_var,
    set_correlation_id,
)
from commitvault.vault import SavingsVault

from conftest import GOVERNANCE, USER


# =============================================================================
# CONFIGURATION
# =============================================================================


class TestConfigValue:

    def test_default_then_set(self):
        value = ConfigValue(default=5)
        assert value.get() == 5
        value.set(7)
        assert value.get() == 7
        value.reset()
        assert value.get() == 5

    def test_env_wins(self, monkeypatch):
        value = ConfigValue(default=5, env_var="COMMITVAULT_TEST_VALUE")
        value.set(7)
        monkeypatch.setenv("COMMITVAULT_TEST_VALUE", "9")
        assert value.get() == 9

    def test_string_coercion(self):
        flag = ConfigValue(default=False)
        flag.set("yes")
        assert flag.get() is True

        number = ConfigValue(default=1)
        with pytest.raises(ConfigValidationError):
            number.set("many")

    def test_validator(self):
        value = ConfigValue(default=1, validator=lambda x: x > 0)
        with pytest.raises(ConfigValidationError):
            value.set(0)


class TestConfigManager:

    def test_defaults(self):
        mgr = ConfigManager()
        assert mgr.get("roles.authority") == "ST1TEST"
        assert mgr.get("roles.custody") == "contract"
        assert mgr.get("limits.max_deposits_per_user") == 1000
        assert mgr.validate() == []

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "commitvault.yaml"
        path.write_text(yaml.safe_dump({
            "roles": {"authority": "ST1AUTH", "governance": "ST1GOV"},
            "limits": {"max_deposits_per_user": 3},
            "observability": {"log_format": "text"},
        }))
        mgr = ConfigManager()
        mgr.load_from_file(path)
        assert mgr.get("roles") == {
            "authority": "ST1AUTH",
            "governance": "ST1GOV",
            "reward_source": "ST1TEST",
            "custody": "contract",
        }
        assert mgr.get("limits.max_deposits_per_user") == 3
        assert mgr.config.to_dict()["observability"]["log_format"] == "text"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigManager().load_from_file(tmp_path / "absent.yaml")

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError, match="roles.admin"):
            ConfigManager().apply_dict({"roles": {"admin": "x"}})

    def test_invalid_value_rejected(self):
        mgr = ConfigManager()
        with pytest.raises(ConfigValidationError):
            mgr.set("limits.max_deposits_per_user", 0)
        with pytest.raises(ConfigValidationError):
            mgr.set("observability.log_level", "loud")

    def test_env_override_reported_by_validate(self, monkeypatch):
        monkeypatch.setenv("COMMITVAULT_LOG_FORMAT", "xml")
        errors = ConfigManager().validate()
        assert errors and errors[0].startswith("observability.log_format")

    def test_env_override_flows_into_vault(self, monkeypatch):
        monkeypatch.setenv("COMMITVAULT_GOVERNANCE", "ST1ENV")
        monkeypatch.setenv("COMMITVAULT_MAX_DEPOSITS_PER_USER", "2")
        vault = SavingsVault.from_config(VaultConfig())
        assert vault.admin.governance == "ST1ENV"
        assert vault.admin.max_deposits_per_user == 2

    def test_reload(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("roles:\n  authority: ST1A\n")
        mgr = ConfigManager()
        mgr.load_from_file(path)
        path.write_text("roles:\n  authority: ST1B\n")
        mgr.reload()
        assert mgr.get("roles.authority") == "ST1B"

    def test_export_schema(self):
        schema = ConfigManager().export_schema()
        entry = schema["properties"]["limits"]["max_deposits_per_user"]
        assert entry["type"] == "int"
        assert entry["env_var"] == "COMMITVAULT_MAX_DEPOSITS_PER_USER"

    def test_to_yaml_round_trips_through_apply(self):
        original = VaultConfig()
        original.roles.authority.set("ST1AUTH")
        mgr = ConfigManager()
        mgr.apply_dict(yaml.safe_load(original.to_yaml()))
        assert mgr.get("roles.authority") == "ST1AUTH"

    def test_from_config_without_audit(self):
        config = VaultConfig()
        config.observability.audit_enabled.set(False)
        vault = SavingsVault.from_config(config)
        assert vault.audit is None
        assert vault.configure_challenge(1, 100, 1000, 10, 20, 30, 0, 100).is_ok


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================


class TestStructuredLogging:

    def _logger(self, stream, fmt="json"):
        logger = VaultLogger("test", VaultLayer.LEDGER)
        for handler in logger._logger.handlers:
            if isinstance(handler, StructuredHandler):
                handler._stream = stream
                handler.fmt = fmt
        return logger

    def test_json_line_carries_layer_and_context(self):
        stream = io.StringIO()
        logger = self._logger(stream)
        token = set_correlation_id("corr-test")
        try:
            logger.info("Deposit admitted", operation="deposit_funds", amount=500)
        finally:
            correlation_id_var.reset(token)

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "Deposit admitted"
        assert line["layer"] == "ledger"
        assert line["operation"] == "deposit_funds"
        assert line["correlation_id"] == "corr-test"
        assert line["context"] == {"amount": 500}
        assert line["logger"] == "commitvault.ledger.test"

    def test_text_format(self):
        stream = io.StringIO()
        logger = self._logger(stream, fmt="text")
        logger.warning("Rejected", error_code="NOT_AUTHORIZED", caller="x")
        line = stream.getvalue().strip().splitlines()[-1]
        assert "WARNING" in line
        assert "error_code=NOT_AUTHORIZED" in line
        assert "caller=x" in line

    def test_level_filtering(self):
        stream = io.StringIO()
        logger = self._logger(stream)
        logger.configure("warning", "json")
        logger.info("hidden")
        assert stream.getvalue() == ""
        logger.configure("info", "json")

    def test_vault_operations_are_logged(self, vault, caplog):
        with caplog.at_level(logging.INFO, logger="commitvault.vault.vault"):
            with vault.identity.acting_as(USER):
                vault.deposit_funds(1, 500)
        messages = [r.getMessage() for r in caplog.records if r.name == "commitvault.vault.vault"]
        assert "Operation deposit_funds rejected" in messages


# =============================================================================
# AUDIT TRAIL
# =============================================================================


class TestAuditTrail:

    def test_every_mutating_call_is_audited(self, deposited_vault):
        with deposited_vault.identity.acting_as(GOVERNANCE):
            deposited_vault.enforce_penalty(1, USER)
            deposited_vault.enforce_penalty(1, USER)

        actions = [(e.action, e.outcome) for e in deposited_vault.audit.get_events()]
        assert actions == [
            ("configure_challenge", "success"),
            ("deposit_funds", "success"),
            ("enforce_penalty", "success"),
            ("enforce_penalty", "rejected"),
        ]
        rejected = deposited_vault.audit.get_events(outcome="rejected")[0]
        assert rejected.details["error"] == "INVALID_STATUS"
        assert rejected.actor == GOVERNANCE

    def test_chain_verifies(self, deposited_vault):
        assert deposited_vault.audit.verify_chain() == (True, None)

    def test_tampering_detected(self, deposited_vault):
        events = deposited_vault.audit.get_events()
        events[1].details["amount"] = 1
        assert deposited_vault.audit.verify_chain() == (False, 1)

    def test_relinking_detected(self):
        audit = AuditLogger()
        audit.log("a", "deposit_funds", "challenge/1", "success", 0, amount=1)
        second = audit.log("a", "deposit_funds", "challenge/2", "success", 0, amount=2)
        second.previous_event_digest = "0" * 64
        second.event_digest = second._compute_digest()
        assert audit.verify_chain() == (False, 1)

    def test_events_share_the_call_correlation_id(self, vault):
        token = set_correlation_id("corr-batch")
        try:
            vault.configure_challenge(1, 100, 1000, 10, 20, 30, 0, 100)
            vault.deactivate_challenge(1)
        finally:
            correlation_id_var.reset(token)
        assert {e.correlation_id for e in vault.audit.get_events()} == {"corr-batch"}

    def test_correlation_id_is_scoped_to_the_call(self, vault):
        vault.configure_challenge(1, 100, 1000, 10, 20, 30, 0, 100)
        vault.deactivate_challenge(1)
        first, second = vault.audit.get_events()
        assert first.correlation_id.startswith("corr-")
        assert first.correlation_id != second.correlation_id
        assert correlation_id_var.get() == ""

    def test_export(self, deposited_vault):
        exported = deposited_vault.audit.export()
        assert exported[0]["sequence"] == 1
        assert exported[1]["previous_event_digest"] == exported[0]["event_digest"]


class TestCanonicalJson:

    def test_sorted_and_compact(self):
        assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'

    def test_floats_rejected(self):
        with pytest.raises(ValueError):
            canonical_json_bytes({"amount": 1.5})
