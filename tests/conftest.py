"""
Shared fixtures: a scripted answer source, string tables and an emitter
writing to a private event store.
"""
from typing import List, Optional, Tuple

import pytest

from observability.event_store import EventStore
from observability.events import Component, EventEmitter
from voice_skill.localization import LanguageStringLoader
from voice_skill.skill import Skill
from voice_skill.turn_controller import TurnController


class FakeAnswerSource:
    """Answers every question with a fixed text, or raises a fixed error."""

    def __init__(self, answer: str = "", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def query(self, text: str, locale: Optional[str] = None) -> str:
        self.calls.append((text, locale))
        if self.error is not None:
            raise self.error
        return self.answer


# Three sentences of 222 chars each: the first two make one segment at 500
LONG_SENTENCES = [
    f"Sentence number {i} talks about the history of the topic in some detail, "
    f"adding background and context that a listener might find useful, and it keeps "
    f"going for a while so that the whole answer ends up well beyond the limit."
    for i in range(1, 4)
]
LONG_ANSWER = " ".join(LONG_SENTENCES)


@pytest.fixture(scope="session")
def loader():
    return LanguageStringLoader()


@pytest.fixture
def events():
    return EventStore()


@pytest.fixture
def emitter(events):
    return EventEmitter(Component.TURN_CONTROLLER, store=events)


@pytest.fixture
def answer_source():
    return FakeAnswerSource(answer="Paris is the capital of France.")


@pytest.fixture
def controller(answer_source, loader, emitter):
    return TurnController(answer_source=answer_source, strings=loader, emitter=emitter)


@pytest.fixture
def skill(controller, loader):
    return Skill(controller=controller, strings=loader)


def make_envelope(
    request_type: str = "IntentRequest",
    intent: Optional[str] = None,
    slots: Optional[dict] = None,
    session_id: Optional[str] = "amzn1.echo-api.session.test",
    attributes: Optional[dict] = None,
    locale: Optional[str] = "en-US",
) -> dict:
    """Build a platform request envelope."""
    request = {"type": request_type, "requestId": "amzn1.echo-api.request.test"}
    if locale is not None:
        request["locale"] = locale
    if intent is not None:
        request["intent"] = {
            "name": intent,
            "slots": {name: {"name": name, "value": value} for name, value in (slots or {}).items()},
        }
    envelope = {"version": "1.0", "request": request}
    if session_id is not None:
        envelope["session"] = {
            "sessionId": session_id,
            "new": attributes is None,
            "attributes": attributes or {},
        }
    return envelope
