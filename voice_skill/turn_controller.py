"""
Turn controller: asking questions and continuing long answers.

Two operations, both returning a SpokenResponse and never raising:

- ask_question: fetch an answer; speak it directly if it fits the budget,
  otherwise split it, remember the segments and speak the first one followed
  by the continuation prompt.
- continue_response: speak the next remembered segment, or say there is
  nothing more.

The budget leaves room for the continuation prompt so that a segment plus
prompt stays under the platform's speech limit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from logging_setup import get_logger, Component
from observability.events import Component as EventComponent, EventEmitter, Severity

from .answer_source import AnswerSource
from .envelope import SpokenResponse
from .errors import AnswerErrorHandler
from .localization import LanguageStringLoader
from .segmenter import segment
from .state import ContinuationStore, ConversationState

logger = get_logger(Component.TURN_CONTROLLER)

# Text-to-speech ceiling observed on the platform (German answers hit it first)
ALEXA_RESPONSE_CHAR_LIMIT = 550
# Room reserved for the continuation prompt after a segment
CONTINUATION_PROMPT_BUFFER = 50
MAX_CHUNK_SIZE = ALEXA_RESPONSE_CHAR_LIMIT - CONTINUATION_PROMPT_BUFFER


@dataclass(frozen=True)
class Query:
    """One spoken question; lives for a single turn."""

    text: str
    locale: str


class TurnController:
    """Orchestrates answer source, segmenter and continuation store."""

    def __init__(
        self,
        answer_source: AnswerSource,
        strings: LanguageStringLoader,
        emitter: EventEmitter | None = None,
        max_chunk_size: int = MAX_CHUNK_SIZE,
    ):
        self.answer_source = answer_source
        self.strings = strings
        self.emitter = emitter or EventEmitter(EventComponent.TURN_CONTROLLER)
        self.max_chunk_size = max_chunk_size

    async def ask_question(
        self,
        query: Query,
        session_id: str,
        store: ContinuationStore,
    ) -> SpokenResponse:
        strings = self.strings.get_strings(query.locale)
        session_logger = logger.with_session(session_id)

        self.emitter.emit(
            "turn.question_received",
            session_id=session_id,
            locale=query.locale,
            query_length=len(query.text),
        )

        start_ts = time.time()
        try:
            answer = await self.answer_source.query(query.text, query.locale)
        except Exception as e:
            # Upstream and configuration failures alike end in a spoken apology
            category = AnswerErrorHandler.classify_error(e)
            session_logger.error(
                "Error querying answer source",
                error_category=category,
                error_type=type(e).__name__,
                error=AnswerErrorHandler.redact(e),
            )
            self.emitter.emit(
                "turn.upstream_failed",
                session_id=session_id,
                severity=Severity.ERROR,
                error_category=category,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            return SpokenResponse(speech=strings.ERROR_MESSAGE, reprompt=strings.QUERY_PROMPT)

        full_answer = answer or strings.NO_ANSWER_FOUND

        if len(full_answer) <= self.max_chunk_size:
            store.clear(session_id)
            self.emitter.emit(
                "turn.answer_spoken",
                session_id=session_id,
                answer_length=len(full_answer),
                found=bool(answer),
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            return SpokenResponse(speech=full_answer, reprompt=strings.ANOTHER_QUESTION_PROMPT)

        state = ConversationState.start(segment(full_answer, self.max_chunk_size))
        store.set(session_id, state)

        session_logger.info(
            "Answer chunked",
            answer_length=len(full_answer),
            segment_count=len(state.segments),
        )
        self.emitter.emit(
            "turn.answer_chunked",
            session_id=session_id,
            answer_length=len(full_answer),
            segment_count=len(state.segments),
            segment_lengths=[len(s) for s in state.segments],
            latency_ms=int((time.time() - start_ts) * 1000),
        )

        return SpokenResponse(
            speech=f"{state.current} {strings.CONTINUATION_PROMPT}",
            reprompt=strings.CONTINUATION_PROMPT,
        )

    def continue_response(
        self,
        session_id: str,
        locale: str,
        store: ContinuationStore,
    ) -> SpokenResponse:
        strings = self.strings.get_strings(locale)
        state = store.get(session_id)

        # No state at all and an exhausted one read the same to the user
        if state is None or not state.has_next:
            if state is not None:
                store.clear(session_id)
            self.emitter.emit(
                "turn.no_more_content",
                session_id=session_id,
                had_state=state is not None,
            )
            return SpokenResponse(speech=strings.NO_MORE_CONTENT, reprompt=strings.QUERY_PROMPT)

        state = state.advance()

        self.emitter.emit(
            "turn.continuation_spoken",
            session_id=session_id,
            cursor=state.cursor,
            segment_count=len(state.segments),
            remaining=state.remaining,
        )

        if state.is_last:
            store.clear(session_id)
            return SpokenResponse(speech=state.current, reprompt=strings.ANOTHER_QUESTION_PROMPT)

        store.set(session_id, state)
        return SpokenResponse(
            speech=f"{state.current} {strings.CONTINUATION_PROMPT}",
            reprompt=strings.CONTINUATION_PROMPT,
        )

    def end_session(self, session_id: str, store: ContinuationStore) -> None:
        """Drop any pending segments; the session is over."""
        store.clear(session_id)
