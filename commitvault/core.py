"""Core primitives shared across commitvault.

- SHA-256 hashing
- Canonical JSON serialization for audit digests
- YAML/JSON loading with consistent encoding
- Paths of bundled resources
"""

from __future__ import annotations

import hashlib
import json
import pathlib
from typing import Any

import yaml

# Package directory, computed once at module load
PACKAGE_ROOT = pathlib.Path(__file__).resolve().parent
SCHEMA_DIR = PACKAGE_ROOT / "schemas"


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes, returning lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


def load_yaml(path: pathlib.Path) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON bytes.

    Keys are sorted, whitespace is stripped and floats are rejected so that
    the same ledger facts always hash to the same digest. Amounts and times
    in the vault are integers, so floats only show up by mistake.
    """
    def _reject_floats(o: Any, path: str = "") -> None:
        if isinstance(o, float):
            raise ValueError(f"Float not allowed in canonical JSON at {path}")
        if isinstance(o, dict):
            for k, v in o.items():
                _reject_floats(v, f"{path}.{k}")
        if isinstance(o, (list, tuple)):
            for i, v in enumerate(o):
                _reject_floats(v, f"{path}[{i}]")

    _reject_floats(obj)
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
