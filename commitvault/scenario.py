"""Scenario files: scripted sequences of vault calls.

A scenario is a YAML (or JSON) document validated against
``schemas/scenario.schema.json``. Each step names an entry point, the
caller, the time at which it runs and its arguments, and may state the
expected outcome. Steps are replayed in order against a fresh vault.

Example::

    name: happy path
    steps:
      - op: configure_challenge
        args: {challenge_id: 1, min_deposit: 100, max_deposit: 1000,
               penalty_rate: 10, reward_rate: 20, lock_duration: 30,
               start_time: 0, end_time: 100}
      - op: deposit_funds
        caller: ST2USER
        args: {challenge_id: 1, amount: 500}
      - op: withdraw_on_completion
        caller: ST2USER
        at: 100
        args: {challenge_id: 1}
        expect: {ok: 100}
"""

from __future__ import annotations

import copy
import inspect
import pathlib
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator

from commitvault.config import ConfigError, ConfigManager, VaultConfig
from commitvault.core import SCHEMA_DIR, load_json, load_yaml
from commitvault.observability import VaultLayer, get_logger, timed_operation
from commitvault.result import Err, ErrorCode, Ok
from commitvault.vault import BlockClock, IdentitySource, SavingsVault

logger = get_logger("scenario", VaultLayer.SCENARIO)

SCENARIO_SCHEMA_PATH = SCHEMA_DIR / "scenario.schema.json"


class ScenarioError(Exception):
    """Malformed scenario document or step."""
    pass


@lru_cache(maxsize=1)
def scenario_validator() -> Draft202012Validator:
    return Draft202012Validator(load_json(SCENARIO_SCHEMA_PATH))


def validate_scenario(doc: Any) -> List[str]:
    """Return schema violations as ``path: message`` strings."""
    errors = sorted(scenario_validator().iter_errors(doc), key=lambda e: list(e.absolute_path))
    out: List[str] = []
    for e in errors:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        out.append(f"{where}: {e.message}")
    return out


def load_scenario(path: pathlib.Path) -> Dict[str, Any]:
    path = pathlib.Path(path)
    if not path.exists():
        raise ScenarioError(f"Scenario file not found: {path}")
    doc = load_json(path) if path.suffix == ".json" else load_yaml(path)
    errors = validate_scenario(doc)
    if errors:
        raise ScenarioError(f"invalid scenario: {path}: {errors[0]}")
    return doc


@dataclass
class StepOutcome:
    """Result of one replayed step."""
    index: int
    op: str
    caller: str
    time: int
    result: Dict[str, Any]
    expected: Optional[Dict[str, Any]] = None
    passed: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "index": self.index,
            "op": self.op,
            "caller": self.caller,
            "time": self.time,
            "result": self.result,
        }
        if self.expected is not None:
            d["expected"] = self.expected
            d["passed"] = self.passed
        return d


@dataclass
class ScenarioReport:
    name: str
    steps: List[StepOutcome] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return all(s.passed is not False for s in self.steps)

    @property
    def failures(self) -> List[StepOutcome]:
        return [s for s in self.steps if s.passed is False]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "steps": [s.to_dict() for s in self.steps],
            "state": self.state,
        }


def _matches(expect: Dict[str, Any], result: Any) -> bool:
    if "err" in expect:
        try:
            code = ErrorCode.from_name(str(expect["err"]))
        except KeyError as e:
            raise ScenarioError(str(e)) from e
        return isinstance(result, Err) and result.code == code
    return isinstance(result, Ok) and result.value == expect["ok"]


class ScenarioRunner:
    """Replays scenario steps against a vault built from the scenario's config."""

    def __init__(self, base_config: Optional[VaultConfig] = None):
        self._base_config = base_config

    def build_vault(self, doc: Dict[str, Any]) -> SavingsVault:
        config = copy.deepcopy(self._base_config) if self._base_config else VaultConfig()
        manager = ConfigManager(config)
        try:
            manager.apply_dict(doc.get("config") or {})
        except ConfigError as e:
            raise ScenarioError(f"invalid scenario config: {e}") from e
        clock = BlockClock(doc.get("start_time", 0))
        identity = IdentitySource(config.roles.authority.get())
        return SavingsVault.from_config(config, clock=clock, identity=identity)

    def _apply_step(self, vault: SavingsVault, index: int, step: Dict[str, Any]) -> StepOutcome:
        op = step["op"]
        if "at" in step:
            try:
                vault.clock.advance_to(step["at"])
            except ValueError as e:
                raise ScenarioError(f"step {index}: {e}") from e
        elif "advance" in step:
            vault.clock.advance(step["advance"])

        method = getattr(vault, op)
        args = step.get("args") or {}
        try:
            inspect.signature(method).bind(**args)
        except TypeError as e:
            raise ScenarioError(f"step {index} ({op}): {e}") from e

        caller = step.get("caller", vault.identity.current)
        try:
            with vault.identity.acting_as(caller):
                result = method(**args)
        except TypeError as e:
            raise ScenarioError(f"step {index} ({op}): {e}") from e
        if not isinstance(result, (Ok, Err)):
            result = Ok(result)

        expect = step.get("expect")
        outcome = StepOutcome(
            index=index,
            op=op,
            caller=caller,
            time=vault.clock.now,
            result=result.to_dict(),
            expected=expect,
            passed=_matches(expect, result) if expect is not None else None,
        )
        if outcome.passed is False:
            logger.warning(
                f"Step {index} did not match expectation",
                operation="scenario_step",
                op=op,
                expected=expect,
                actual=outcome.result,
            )
        return outcome

    def run(self, doc: Dict[str, Any]) -> ScenarioReport:
        errors = validate_scenario(doc)
        if errors:
            raise ScenarioError(f"invalid scenario: {errors[0]}")

        @timed_operation(logger, "run_scenario")
        def _run() -> ScenarioReport:
            vault = self.build_vault(doc)
            report = ScenarioReport(name=doc.get("name", "scenario"))
            for index, step in enumerate(doc["steps"]):
                report.steps.append(self._apply_step(vault, index, step))
            report.state = vault.export_state()
            return report

        return _run()

    def run_file(self, path: pathlib.Path) -> ScenarioReport:
        return self.run(load_scenario(path))
