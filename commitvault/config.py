"""
commitvault Configuration System

Configuration management with YAML files, environment variables and
validation.

Configuration Sources (in order of precedence):
    1. Environment variables (COMMITVAULT_*)
    2. Runtime overrides
    3. Config file (./commitvault.yaml, ./config/commitvault.yaml,
       ~/.commitvault/config.yaml, or an explicit path)
    4. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ConfigValidationError(f"Invalid value for config: {value!r}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            try:
                return int(value)  # type: ignore
            except ValueError as e:
                raise ConfigValidationError(f"Expected integer, got {value!r}") from e
        return value  # type: ignore


def _is_principal(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass
class RolesConfig:
    """Role identities installed at vault initialisation."""
    authority: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="ST1TEST",
        env_var="COMMITVAULT_AUTHORITY",
        description="Principal allowed to configure challenges",
        validator=_is_principal,
    ))
    governance: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="ST1TEST",
        env_var="COMMITVAULT_GOVERNANCE",
        description="Principal allowed to enforce penalties",
        validator=_is_principal,
    ))
    reward_source: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="ST1TEST",
        env_var="COMMITVAULT_REWARD_SOURCE",
        description="Issuer of reward-token transfers",
        validator=_is_principal,
    ))
    custody: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="contract",
        env_var="COMMITVAULT_CUSTODY",
        description="Identity holding locked value",
        validator=_is_principal,
    ))


@dataclass
class LimitsConfig:
    """Exposure limits."""
    max_deposits_per_user: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=1000,
        env_var="COMMITVAULT_MAX_DEPOSITS_PER_USER",
        description="Maximum admitted deposits per principal across all challenges",
        validator=lambda x: isinstance(x, int) and x > 0,
    ))


@dataclass
class ObservabilityConfig:
    """Logging and audit settings."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="COMMITVAULT_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="COMMITVAULT_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))
    audit_enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="COMMITVAULT_AUDIT",
        description="Record a hash-chained audit event per operation",
    ))


@dataclass
class VaultConfig:
    """Root configuration for commitvault."""
    roles: RolesConfig = field(default_factory=RolesConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False)


DEFAULT_CONFIG_PATHS = [
    Path("commitvault.yaml"),
    Path("config/commitvault.yaml"),
    Path.home() / ".commitvault" / "config.yaml",
]


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.
    """

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()
        self._config_paths: List[Path] = []
        self._lock = threading.Lock()

    @property
    def config(self) -> VaultConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file must be a mapping: {path}")
            self.apply_dict(data)
        self._config_paths.append(path)

    def load_defaults(self) -> Optional[Path]:
        """Load the first default configuration file that exists."""
        for path in DEFAULT_CONFIG_PATHS:
            if path.exists():
                self.load_from_file(path)
                return path
        return None

    def apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply nested dictionary values to the configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                path = f"{prefix}.{key}" if prefix else key
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {path}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, path)
                else:
                    raise ConfigError(f"Invalid config section: {path}")

        with self._lock:
            apply_to_config(self._config, data, "")

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: manager.set("limits.max_deposits_per_user", 10)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        with self._lock:
            attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: manager.get("roles.authority")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        if hasattr(obj, "__dataclass_fields__"):
            return {k: getattr(obj, k).get() for k in obj.__dataclass_fields__}
        return obj

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        paths = list(self._config_paths)
        self._config_paths = []
        for path in paths:
            if path.exists():
                self.load_from_file(path)

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value!r}")
                except ConfigError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the process-wide configuration manager, loading default files once."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
        _manager.load_defaults()
    return _manager


def get_config() -> VaultConfig:
    """Get the current commitvault configuration."""
    return get_config_manager().config
