"""
commitvault Observability

Structured logging and a tamper-evident audit trail for vault operations.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    SavingsVault                          │
    │  logger.info("msg", challenge_id=x)  audit.log(...)     │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │               VaultLogger / AuditLogger                  │
    │  correlation IDs, layer tags, hash-chained audit events │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                 StructuredHandler                        │
    │           one JSON (or text) line per record            │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
import time
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from commitvault.core import canonical_json_bytes, sha256_bytes

# Context variable for request-scoped correlation
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class VaultLayer(Enum):
    """Vault components for log categorization."""
    ACCESS = "access"
    REGISTRY = "registry"
    LEDGER = "ledger"
    TRANSFERS = "transfers"
    QUERY = "query"
    VAULT = "vault"
    CONFIG = "config"
    SCENARIO = "scenario"
    CLI = "cli"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        parts = [self.timestamp, self.level.upper(), self.logger, self.message]
        if self.error_code:
            parts.append(f"error_code={self.error_code}")
        parts.extend(f"{k}={v}" for k, v in sorted(self.context.items()))
        return " ".join(str(p) for p in parts)


class StructuredHandler(logging.Handler):
    """Logging handler that writes one structured line per record."""

    def __init__(self, stream: Any = None, fmt: str = "json"):
        super().__init__()
        self._stream = stream
        self.fmt = fmt

    @property
    def stream(self) -> Any:
        # sys.stderr is looked up per record; it may be swapped after import
        return self._stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                duration_ms=getattr(record, "duration_ms", None),
                error_code=getattr(record, "error_code", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            line = event.to_text() if self.fmt == "text" else event.to_json()
            self.stream.write(line + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class VaultLogger:
    """
    Structured logger for vault components.

    Every record carries the component layer, and the correlation ID of the
    operation in flight when one is set.
    """

    def __init__(
        self,
        name: str,
        layer: VaultLayer,
        level: LogLevel = LogLevel.INFO,
    ):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"commitvault.{layer.value}.{name}")
        self._logger.setLevel(getattr(logging, level.value.upper()))

        if not any(isinstance(h, StructuredHandler) for h in self._logger.handlers):
            self._logger.addHandler(StructuredHandler())

    def configure(self, level: str, fmt: str) -> None:
        """Apply level and format from configuration."""
        self._logger.setLevel(getattr(logging, level.upper()))
        for handler in self._logger.handlers:
            if isinstance(handler, StructuredHandler):
                handler.fmt = fmt

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(
        self,
        message: str,
        error_code: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        self._log(logging.ERROR, message, error_code=error_code, exc_info=exc_info, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.INFO if success else logging.WARNING
        status = "completed" if success else "rejected"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context."""
    return correlation_id_var.set(correlation_id)


def get_logger(name: str, layer: VaultLayer) -> VaultLogger:
    """Get a logger for a vault component."""
    return VaultLogger(name, layer)


T = TypeVar("T")


def timed_operation(
    logger: VaultLogger,
    operation_name: str,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing and logging operations."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.monotonic() - start) * 1000
                logger.operation(operation_name, duration_ms, success)
        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator


# =============================================================================
# AUDIT TRAIL
# =============================================================================

@dataclass
class AuditEvent:
    """An audit log entry for one vault operation."""
    sequence: int
    actor: str
    action: str
    resource_id: str
    outcome: str  # success, rejected
    time: int
    details: Dict[str, Any] = field(default_factory=dict)
    correlation_id: str = ""
    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self._compute_digest()

    def _compute_digest(self) -> str:
        content = {
            "sequence": self.sequence,
            "actor": self.actor,
            "action": self.action,
            "resource_id": self.resource_id,
            "outcome": self.outcome,
            "time": self.time,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return sha256_bytes(canonical_json_bytes(content))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLogger:
    """
    Tamper-evident audit logger.

    Each event carries the digest of the previous one, so editing or
    dropping an entry breaks the chain.
    """

    def __init__(self, logger: Optional[VaultLogger] = None):
        self._events: List[AuditEvent] = []
        self._logger = logger
        self._lock = threading.Lock()

    def log(
        self,
        actor: str,
        action: str,
        resource_id: str,
        outcome: str,
        time: int,
        **details: Any,
    ) -> AuditEvent:
        """Append an audit event."""
        with self._lock:
            previous = self._events[-1].event_digest if self._events else None
            event = AuditEvent(
                sequence=len(self._events) + 1,
                actor=actor,
                action=action,
                resource_id=resource_id,
                outcome=outcome,
                time=time,
                details=details,
                correlation_id=correlation_id_var.get(),
                previous_event_digest=previous,
            )
            self._events.append(event)

        if self._logger:
            self._logger.debug(
                f"AUDIT: {action} on {resource_id} -> {outcome}",
                operation="audit",
                event_digest=event.event_digest,
            )
        return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit chain.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            for i, event in enumerate(self._events):
                if event._compute_digest() != event.event_digest:
                    return (False, i)
                if i > 0 and event.previous_event_digest != self._events[i - 1].event_digest:
                    return (False, i)
            return (True, None)

    def get_events(
        self,
        actor: Optional[str] = None,
        action: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> List[AuditEvent]:
        """Query audit events."""
        with self._lock:
            events = list(self._events)

        if actor:
            events = [e for e in events if e.actor == actor]
        if action:
            events = [e for e in events if e.action == action]
        if outcome:
            events = [e for e in events if e.outcome == outcome]
        return events

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        return len(self._events)
