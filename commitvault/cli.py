#!/usr/bin/env python3
"""
commitvault CLI

Command-line harness for the commitment vault.

Usage:
    commitvault <command> [subcommand] [options]

Commands:
    run         Replay a scenario file against a fresh vault
    validate    Check a scenario file against the scenario schema
    config      Configuration management
    errors      List vault error codes

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from commitvault import __version__


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        import yaml
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class VaultCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="commitvault",
            description="Time-locked commitment vault harness",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"commitvault {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Configuration file (YAML)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        run = self.subparsers.add_parser("run", help="Replay a scenario file")
        run.add_argument("scenario", help="Scenario file (YAML or JSON)")
        run.add_argument("--no-state", action="store_true", help="Omit final vault state from output")

        validate = self.subparsers.add_parser("validate", help="Validate a scenario file")
        validate.add_argument("scenario", help="Scenario file (YAML or JSON)")

        self.subparsers.add_parser("errors", help="List vault error codes")

        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., roles.authority)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            if parsed.command == "run" and not result.get("passed", True):
                return 2
            if parsed.command == "validate" and not result.get("valid", True):
                return 2
            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    def _config_manager(self, args: argparse.Namespace) -> Any:
        from commitvault.config import ConfigError, ConfigManager, get_config_manager

        if not args.config:
            return get_config_manager()
        mgr = ConfigManager()
        try:
            mgr.load_from_file(args.config)
        except ConfigError as e:
            raise CLIError(str(e)) from e
        return mgr

    # Scenario handlers
    def _handle_run(self, args: argparse.Namespace) -> Any:
        from commitvault.scenario import ScenarioError, ScenarioRunner

        mgr = self._config_manager(args)
        runner = ScenarioRunner(mgr.config)
        try:
            report = runner.run_file(Path(args.scenario))
        except ScenarioError as e:
            raise CLIError(str(e)) from e

        out = report.to_dict()
        if args.no_state:
            out.pop("state", None)
        return out

    def _handle_validate(self, args: argparse.Namespace) -> Any:
        from commitvault.core import load_json, load_yaml
        from commitvault.scenario import validate_scenario

        path = Path(args.scenario)
        if not path.exists():
            raise CLIError(f"Scenario file not found: {path}")
        doc = load_json(path) if path.suffix == ".json" else load_yaml(path)
        errors = validate_scenario(doc)
        return {"path": str(path), "valid": not errors, "errors": errors}

    def _handle_errors(self, args: argparse.Namespace) -> Any:
        from commitvault.result import ErrorCode
        return {code.name: code.value for code in ErrorCode}

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from commitvault.config import ConfigError

        mgr = self._config_manager(args)
        try:
            return {"path": args.path, "value": mgr.get(args.path)}
        except ConfigError as e:
            raise CLIError(str(e)) from e

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return self._config_manager(args).config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = self._config_manager(args).validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        return self._config_manager(args).export_schema()


def main() -> int:
    """CLI entry point."""
    cli = VaultCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
