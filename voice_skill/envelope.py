"""
Request and response envelopes of the voice platform.

Only the fields the skill reads or writes are modelled; anything else in an
incoming envelope is ignored. Field names follow the wire format (camelCase)
through aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RequestType(str, Enum):
    LAUNCH = "LaunchRequest"
    INTENT = "IntentRequest"
    SESSION_ENDED = "SessionEndedRequest"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Slot(_WireModel):
    name: Optional[str] = None
    value: Optional[str] = None


class Intent(_WireModel):
    name: str
    slots: Dict[str, Slot] = Field(default_factory=dict)

    @field_validator("slots", mode="before")
    @classmethod
    def null_slots_as_empty(cls, value: Any) -> Any:
        # The platform sends null for an intent without slots
        return {} if value is None else value

    def slot_value(self, name: str) -> Optional[str]:
        """Slot value with surrounding whitespace removed; None if missing or blank."""
        slot = self.slots.get(name)
        if slot is None or slot.value is None:
            return None
        value = slot.value.strip()
        return value or None


class Request(_WireModel):
    type: str
    request_id: Optional[str] = Field(default=None, alias="requestId")
    locale: Optional[str] = None
    intent: Optional[Intent] = None
    reason: Optional[str] = None


class Session(_WireModel):
    session_id: str = Field(alias="sessionId")
    new: bool = False
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def null_attributes_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class RequestEnvelope(_WireModel):
    version: str = "1.0"
    session: Optional[Session] = None
    request: Request

    @property
    def session_id(self) -> str:
        # Fallback keeps logs correlatable for sessionless requests
        if self.session and self.session.session_id:
            return self.session.session_id
        return self.request.request_id or "unknown"

    @property
    def session_attributes(self) -> Dict[str, Any]:
        return dict(self.session.attributes) if self.session else {}

    @property
    def intent_name(self) -> Optional[str]:
        return self.request.intent.name if self.request.intent else None


class OutputSpeech(_WireModel):
    type: Literal["PlainText", "SSML"] = "PlainText"
    text: Optional[str] = None
    ssml: Optional[str] = None


class Reprompt(_WireModel):
    output_speech: OutputSpeech = Field(alias="outputSpeech")


class ResponseBody(_WireModel):
    output_speech: Optional[OutputSpeech] = Field(default=None, alias="outputSpeech")
    reprompt: Optional[Reprompt] = None
    should_end_session: Optional[bool] = Field(default=None, alias="shouldEndSession")


class ResponseEnvelope(_WireModel):
    version: str = "1.0"
    session_attributes: Dict[str, Any] = Field(default_factory=dict, alias="sessionAttributes")
    response: ResponseBody = Field(default_factory=ResponseBody)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _speech(text: str, ssml: bool) -> OutputSpeech:
    if ssml:
        return OutputSpeech(type="SSML", ssml=f"<speak>{escape(text)}</speak>")
    return OutputSpeech(type="PlainText", text=text)


@dataclass(frozen=True)
class SpokenResponse:
    """What to say this turn, what to say if the user stays silent, and whether to hang up."""

    speech: Optional[str] = None
    reprompt: Optional[str] = None
    should_end_session: Optional[bool] = None

    @classmethod
    def empty(cls) -> "SpokenResponse":
        return cls()

    def to_envelope(
        self,
        session_attributes: Optional[Dict[str, Any]] = None,
        ssml: bool = False,
    ) -> ResponseEnvelope:
        body = ResponseBody(
            output_speech=_speech(self.speech, ssml) if self.speech is not None else None,
            reprompt=Reprompt(output_speech=_speech(self.reprompt, ssml)) if self.reprompt else None,
            should_end_session=self.should_end_session,
        )
        return ResponseEnvelope(session_attributes=dict(session_attributes or {}), response=body)
