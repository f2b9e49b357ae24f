"""
Structured turn events.

Every conversational turn the skill handles is described by one or more
events sharing a single envelope, written to stdout as JSON lines and kept in
the in-memory event store for inspection.

Envelope fields: ts, session_id, component, event_type, severity,
correlation_id. Event-specific fields are added at top level.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .event_store import EventStore


class Component(str, Enum):
    """Event-producing components."""

    SKILL = "skill"
    TURN_CONTROLLER = "turn_controller"
    ANSWER_SOURCE = "answer_source"


class Severity(str, Enum):
    """Event severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class EventEmitter:
    """Emits structured JSON events."""

    def __init__(self, component: Component, store: Optional[EventStore] = None):
        self.component = component
        self.store = store if store is not None else EventStore()

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """
        Emit a structured event.

        Args:
            event_type: Stable event type string (e.g. "turn.answer_chunked")
            session_id: Opaque session identifier from the platform
            severity: Event severity level
            correlation_id: Optional request id; defaults to the session id
            **kwargs: Additional event-specific fields
        """
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or session_id,
        }
        event.update(kwargs)

        sys.stdout.write(json.dumps(event, ensure_ascii=False, default=str))
        sys.stdout.write("\n")
        sys.stdout.flush()

        self.store.store(event)
