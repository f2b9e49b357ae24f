"""
Continuation state for answers delivered over several turns.

A session is either idle (no state) or chunked: it holds the segments of the
last oversized answer and a cursor at the segment spoken most recently.

    IDLE -> (oversized answer) -> CHUNKED(0) -> (continue) -> CHUNKED(k)
         -> ... -> (continue on last) -> IDLE

A new question from any state replaces the state (or clears it for a short
answer). Stores never merge.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, MutableMapping, Optional, Protocol, Sequence, Tuple

# Session attribute key holding the serialized state
STATE_ATTRIBUTE = "continuation"


@dataclass(frozen=True)
class ConversationState:
    """Pending segments of one answer and the index of the last one spoken."""

    segments: Tuple[str, ...]
    cursor: int = 0

    def __post_init__(self):
        if not self.segments:
            raise ValueError("segments must not be empty")
        if not 0 <= self.cursor < len(self.segments):
            raise ValueError(
                f"cursor {self.cursor} out of range for {len(self.segments)} segments"
            )

    @classmethod
    def start(cls, segments: Sequence[str]) -> "ConversationState":
        """State right after the first segment has been spoken."""
        return cls(segments=tuple(segments), cursor=0)

    @property
    def current(self) -> str:
        return self.segments[self.cursor]

    @property
    def is_last(self) -> bool:
        return self.cursor >= len(self.segments) - 1

    @property
    def has_next(self) -> bool:
        return not self.is_last

    @property
    def remaining(self) -> int:
        """Number of segments not yet spoken."""
        return len(self.segments) - 1 - self.cursor

    def advance(self) -> "ConversationState":
        """Return the state with the cursor on the next segment."""
        if self.is_last:
            raise ValueError("no segment left to advance to")
        return replace(self, cursor=self.cursor + 1)

    def to_attributes(self, session_id: str) -> Dict[str, Any]:
        return {
            "session_id": session_id,
            "segments": list(self.segments),
            "cursor": self.cursor,
        }

    @classmethod
    def from_attributes(cls, data: Any, session_id: str) -> Optional["ConversationState"]:
        """
        Rebuild state from session attributes.

        Returns None if the data is missing, belongs to another session or is
        malformed; a bad attribute never fails the turn.
        """
        if not isinstance(data, dict):
            return None
        if data.get("session_id") != session_id:
            return None

        segments = data.get("segments")
        cursor = data.get("cursor", 0)
        if not isinstance(segments, list) or not all(isinstance(s, str) for s in segments):
            return None
        if not isinstance(cursor, int) or isinstance(cursor, bool):
            return None

        try:
            return cls(segments=tuple(segments), cursor=cursor)
        except ValueError:
            return None


class ContinuationStore(Protocol):
    """Per-session key-value capability for ConversationState."""

    def get(self, session_id: str) -> Optional[ConversationState]:
        ...

    def set(self, session_id: str, state: ConversationState) -> None:
        ...

    def clear(self, session_id: str) -> None:
        ...


class SessionAttributeStore:
    """
    Store backed by the platform's session attributes.

    The platform sends the attributes with every request of a session and
    expects them back in the response, so this store lives for exactly one
    request: build it from the incoming attributes, hand `attributes` back in
    the response envelope.
    """

    def __init__(self, attributes: Optional[MutableMapping[str, Any]] = None):
        self.attributes: MutableMapping[str, Any] = dict(attributes or {})

    def get(self, session_id: str) -> Optional[ConversationState]:
        return ConversationState.from_attributes(self.attributes.get(STATE_ATTRIBUTE), session_id)

    def set(self, session_id: str, state: ConversationState) -> None:
        self.attributes[STATE_ATTRIBUTE] = state.to_attributes(session_id)

    def clear(self, session_id: str) -> None:
        self.attributes.pop(STATE_ATTRIBUTE, None)


class InMemoryContinuationStore:
    """Store keyed by session id, for local development and tests."""

    def __init__(self):
        self._states: Dict[str, ConversationState] = {}

    def get(self, session_id: str) -> Optional[ConversationState]:
        return self._states.get(session_id)

    def set(self, session_id: str, state: ConversationState) -> None:
        self._states[session_id] = state

    def clear(self, session_id: str) -> None:
        self._states.pop(session_id, None)
