"""
Skill composition and the request entry point shared by every surface.

build_skill() constructs the long-lived collaborators once (string tables,
API key resolver, answer source, turn controller). Skill.handle() takes one
raw request envelope and always returns a speakable response envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from logging_setup import get_logger, Component
from observability.event_store import EventStore
from observability.events import Component as EventComponent, EventEmitter

from .answer_source import AnswerSource, PerplexityAnswerSource
from .config import SkillConfig
from .credentials import ApiKeyResolver
from .envelope import RequestEnvelope, SpokenResponse
from .handlers import TurnContext, resolve_handler
from .localization import LanguageStringLoader
from .state import STATE_ATTRIBUTE, ContinuationStore, InMemoryContinuationStore, SessionAttributeStore
from .turn_controller import TurnController

logger = get_logger(Component.SKILL)
error_logger = get_logger(Component.ERROR_HANDLER)


def _raw_attributes(event: Any) -> Dict[str, Any]:
    """Session attributes of an envelope that failed validation, if readable."""
    session = event.get("session") if isinstance(event, Mapping) else None
    attributes = session.get("attributes") if isinstance(session, Mapping) else None
    return dict(attributes) if isinstance(attributes, Mapping) else {}


class Skill:
    """One request envelope in, one response envelope out."""

    def __init__(
        self,
        controller: TurnController,
        strings: LanguageStringLoader,
        memory_store: Optional[InMemoryContinuationStore] = None,
        use_ssml: bool = False,
    ):
        self.controller = controller
        self.strings = strings
        # None: continuation state travels in session attributes
        self.memory_store = memory_store
        self.use_ssml = use_ssml

    def _store_for(self, envelope: RequestEnvelope) -> ContinuationStore:
        if self.memory_store is not None:
            return self.memory_store
        return SessionAttributeStore(envelope.session_attributes)

    def _outgoing_attributes(self, envelope: RequestEnvelope, store: ContinuationStore) -> Dict[str, Any]:
        if isinstance(store, SessionAttributeStore):
            return dict(store.attributes)
        attributes = envelope.session_attributes
        attributes.pop(STATE_ATTRIBUTE, None)
        return attributes

    async def handle(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        """Handle a raw request envelope; never raises."""
        try:
            envelope = RequestEnvelope.model_validate(event)
        except ValidationError as e:
            error_logger.warning(
                "Malformed request envelope",
                error_count=e.error_count(),
                errors=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            )
            strings = self.strings.get_strings(self.strings.default_locale)
            return SpokenResponse(
                speech=strings.GENERIC_ERROR,
                reprompt=strings.QUERY_PROMPT,
            ).to_envelope(
                session_attributes=_raw_attributes(event),
                ssml=self.use_ssml,
            ).to_wire()

        locale = envelope.request.locale or self.strings.default_locale
        strings = self.strings.get_strings(locale)
        store = self._store_for(envelope)
        session_logger = logger.with_session(envelope.session_id)

        session_logger.debug(
            "Request received",
            request_type=envelope.request.type,
            intent=envelope.intent_name,
            locale=locale,
            new_session=bool(envelope.session and envelope.session.new),
        )

        ctx = TurnContext(
            envelope=envelope,
            controller=self.controller,
            store=store,
            strings=strings,
            locale=locale,
        )

        try:
            handler = resolve_handler(envelope)
            spoken = await handler(ctx)
        except Exception as e:
            # Catch-all: the caller must always hear something
            error_logger.with_session(envelope.session_id).exception(
                "Unhandled error while handling request",
                request_type=envelope.request.type,
                intent=envelope.intent_name,
                error_type=type(e).__name__,
            )
            spoken = SpokenResponse(speech=strings.GENERIC_ERROR, reprompt=strings.GENERIC_ERROR)

        return spoken.to_envelope(
            session_attributes=self._outgoing_attributes(envelope, store),
            ssml=self.use_ssml,
        ).to_wire()


def build_skill(
    config: SkillConfig,
    answer_source: Optional[AnswerSource] = None,
    event_store: Optional[EventStore] = None,
) -> Skill:
    """
    Construct a Skill from configuration.

    answer_source overrides the Perplexity client (tests, local fakes).
    event_store receives the turn events; a fresh store is created if omitted.
    """
    strings = LanguageStringLoader(default_locale=config.default_locale)
    if event_store is None:
        event_store = EventStore()

    if answer_source is None:
        answer_source = PerplexityAnswerSource(
            key_resolver=ApiKeyResolver(
                api_key=config.perplexity_api_key,
                secret_name=config.perplexity_api_secret_name,
            ),
            api_url=config.perplexity_api_url,
            model=config.perplexity_model,
            max_tokens=config.perplexity_max_tokens,
            temperature=config.perplexity_temperature,
            timeout_seconds=config.answer_timeout_seconds,
        )

    controller = TurnController(
        answer_source=answer_source,
        strings=strings,
        emitter=EventEmitter(EventComponent.TURN_CONTROLLER, store=event_store),
    )

    if config.continuation_store not in ("session", "memory"):
        raise ValueError(f"Unknown continuation store: {config.continuation_store}")
    memory_store = InMemoryContinuationStore() if config.continuation_store == "memory" else None

    logger.info(
        "Skill built",
        continuation_store=config.continuation_store,
        default_locale=config.default_locale,
        locales=strings.supported_locales(),
        model=config.perplexity_model,
    )
    return Skill(controller=controller, strings=strings, memory_store=memory_store, use_ssml=config.use_ssml)
