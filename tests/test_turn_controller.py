"""
Turn controller tests.
Tests answering, chunking long answers and continuing them over several turns.
"""
import pytest

from conftest import LONG_ANSWER, LONG_SENTENCES, FakeAnswerSource
from voice_skill.errors import ConfigurationError, UpstreamError
from voice_skill.state import ConversationState, InMemoryContinuationStore
from voice_skill.turn_controller import MAX_CHUNK_SIZE, Query, TurnController

SESSION = "amzn1.echo-api.session.1"


@pytest.fixture
def store():
    return InMemoryContinuationStore()


@pytest.fixture
def en(loader):
    return loader.get_strings("en-US")


def test_budget_leaves_room_for_prompt():
    assert MAX_CHUNK_SIZE == 500


class TestAskQuestion:
    """Test the first turn of a question."""

    @pytest.mark.asyncio
    async def test_short_answer_spoken_directly(self, controller, answer_source, store, en, events):
        response = await controller.ask_question(Query("capital of France", "en-US"), SESSION, store)

        assert response.speech == "Paris is the capital of France."
        assert response.reprompt == en.ANOTHER_QUESTION_PROMPT
        assert response.should_end_session is None
        assert store.get(SESSION) is None
        assert answer_source.calls == [("capital of France", "en-US")]
        assert [e["event_type"] for e in events.query(session_id=SESSION)] == [
            "turn.question_received",
            "turn.answer_spoken",
        ]

    @pytest.mark.asyncio
    async def test_answer_at_exact_limit_not_chunked(self, controller, answer_source, store, en):
        answer_source.answer = "x" * MAX_CHUNK_SIZE

        response = await controller.ask_question(Query("q", "en-US"), SESSION, store)

        assert response.speech == "x" * MAX_CHUNK_SIZE
        assert store.get(SESSION) is None

    @pytest.mark.asyncio
    async def test_long_answer_chunked(self, controller, answer_source, store, en, events):
        answer_source.answer = LONG_ANSWER

        response = await controller.ask_question(Query("history", "en-US"), SESSION, store)

        first = f"{LONG_SENTENCES[0]} {LONG_SENTENCES[1]}"
        assert response.speech == f"{first} {en.CONTINUATION_PROMPT}"
        assert response.reprompt == en.CONTINUATION_PROMPT

        state = store.get(SESSION)
        assert state.segments == (first, LONG_SENTENCES[2])
        assert state.cursor == 0

        chunked = events.query(session_id=SESSION, event_type="turn.answer_chunked")
        assert chunked[0]["segment_count"] == 2
        assert chunked[0]["segment_lengths"] == [len(first), len(LONG_SENTENCES[2])]

    @pytest.mark.asyncio
    async def test_empty_answer_says_nothing_found(self, controller, answer_source, store, en):
        answer_source.answer = ""

        response = await controller.ask_question(Query("q", "en-US"), SESSION, store)

        assert response.speech == en.NO_ANSWER_FOUND
        assert response.reprompt == en.ANOTHER_QUESTION_PROMPT

    @pytest.mark.asyncio
    async def test_new_question_replaces_pending_segments(self, controller, answer_source, store):
        answer_source.answer = LONG_ANSWER
        await controller.ask_question(Query("history", "en-US"), SESSION, store)
        assert store.get(SESSION) is not None

        answer_source.answer = "Short."
        await controller.ask_question(Query("other", "en-US"), SESSION, store)

        assert store.get(SESSION) is None

    @pytest.mark.asyncio
    async def test_second_long_answer_overwrites_first(self, controller, answer_source, store):
        answer_source.answer = LONG_ANSWER
        await controller.ask_question(Query("history", "en-US"), SESSION, store)

        answer_source.answer = "Zed. " * 150
        await controller.ask_question(Query("zed", "en-US"), SESSION, store)
        second = store.get(SESSION)

        response = controller.continue_response(SESSION, "en-US", store)

        assert second.cursor == 0
        assert all(s.startswith("Zed.") for s in second.segments)
        assert response.speech.startswith(second.segments[1])
        assert "Sentence number" not in response.speech

    @pytest.mark.asyncio
    async def test_localized_prompts(self, controller, answer_source, store, loader):
        de = loader.get_strings("de-DE")
        answer_source.answer = LONG_ANSWER

        response = await controller.ask_question(Query("Geschichte", "de-DE"), SESSION, store)

        assert response.speech.endswith(de.CONTINUATION_PROMPT)
        assert response.reprompt == de.CONTINUATION_PROMPT


class TestAskQuestionFailures:
    """Failures become a spoken apology; state is left alone."""

    @pytest.mark.asyncio
    async def test_upstream_error(self, loader, emitter, events, store, en):
        source = FakeAnswerSource(error=UpstreamError("Answer source responded with HTTP 503", status=503))
        controller = TurnController(answer_source=source, strings=loader, emitter=emitter)

        response = await controller.ask_question(Query("q", "en-US"), SESSION, store)

        assert response.speech == en.ERROR_MESSAGE
        assert response.reprompt == en.QUERY_PROMPT
        failed = events.query(session_id=SESSION, event_type="turn.upstream_failed")
        assert failed[0]["error_category"] == "answer.capacity_limited"
        assert failed[0]["severity"] == "error"

    @pytest.mark.asyncio
    async def test_missing_api_key(self, loader, emitter, events, store, en):
        source = FakeAnswerSource(error=ConfigurationError("Perplexity API key not configured"))
        controller = TurnController(answer_source=source, strings=loader, emitter=emitter)

        response = await controller.ask_question(Query("q", "en-US"), SESSION, store)

        assert response.speech == en.ERROR_MESSAGE
        failed = events.query(event_type="turn.upstream_failed")
        assert failed[0]["error_category"] == "config.missing_api_key"

    @pytest.mark.asyncio
    async def test_failure_keeps_pending_segments(self, loader, emitter, store):
        pending = ConversationState(segments=("a", "b", "c"), cursor=1)
        store.set(SESSION, pending)
        source = FakeAnswerSource(error=RuntimeError("boom"))
        controller = TurnController(answer_source=source, strings=loader, emitter=emitter)

        await controller.ask_question(Query("q", "en-US"), SESSION, store)

        assert store.get(SESSION) == pending


class TestContinueResponse:
    """Test delivering the remaining segments."""

    @pytest.mark.asyncio
    async def test_continue_to_last_segment(self, controller, answer_source, store, en):
        answer_source.answer = LONG_ANSWER
        await controller.ask_question(Query("history", "en-US"), SESSION, store)

        response = controller.continue_response(SESSION, "en-US", store)

        assert response.speech == LONG_SENTENCES[2]
        assert response.reprompt == en.ANOTHER_QUESTION_PROMPT
        assert store.get(SESSION) is None

    @pytest.mark.asyncio
    async def test_continue_after_last_segment(self, controller, answer_source, store, en):
        answer_source.answer = LONG_ANSWER
        await controller.ask_question(Query("history", "en-US"), SESSION, store)
        controller.continue_response(SESSION, "en-US", store)

        response = controller.continue_response(SESSION, "en-US", store)

        assert response.speech == en.NO_MORE_CONTENT
        assert response.reprompt == en.QUERY_PROMPT

    @pytest.mark.asyncio
    async def test_middle_segments_keep_prompting(self, loader, emitter, events, store, en):
        source = FakeAnswerSource(answer=LONG_ANSWER)
        # Every sentence fits on its own, none fit in pairs
        controller = TurnController(answer_source=source, strings=loader, emitter=emitter, max_chunk_size=230)

        first = await controller.ask_question(Query("history", "en-US"), SESSION, store)
        second = controller.continue_response(SESSION, "en-US", store)
        third = controller.continue_response(SESSION, "en-US", store)

        assert first.speech == f"{LONG_SENTENCES[0]} {en.CONTINUATION_PROMPT}"
        assert second.speech == f"{LONG_SENTENCES[1]} {en.CONTINUATION_PROMPT}"
        assert second.reprompt == en.CONTINUATION_PROMPT
        assert third.speech == LONG_SENTENCES[2]
        assert third.reprompt == en.ANOTHER_QUESTION_PROMPT

        spoken = events.query(session_id=SESSION, event_type="turn.continuation_spoken")
        assert [(e["cursor"], e["remaining"]) for e in spoken] == [(1, 1), (2, 0)]

    def test_continue_without_pending_answer(self, controller, store, en, events):
        response = controller.continue_response(SESSION, "en-US", store)

        assert response.speech == en.NO_MORE_CONTENT
        assert response.reprompt == en.QUERY_PROMPT
        assert events.query(event_type="turn.no_more_content")[0]["had_state"] is False

    def test_exhausted_state_is_cleared(self, controller, store, en):
        store.set(SESSION, ConversationState(segments=("a", "b"), cursor=1))

        response = controller.continue_response(SESSION, "en-US", store)

        assert response.speech == en.NO_MORE_CONTENT
        assert store.get(SESSION) is None

    def test_sessions_do_not_share_segments(self, controller, store, en):
        store.set("other-session", ConversationState(segments=("a", "b"), cursor=0))

        response = controller.continue_response(SESSION, "en-US", store)

        assert response.speech == en.NO_MORE_CONTENT
        assert store.get("other-session").cursor == 0


def test_end_session_clears_state(controller, store):
    store.set(SESSION, ConversationState(segments=("a", "b"), cursor=0))
    controller.end_session(SESSION, store)
    assert store.get(SESSION) is None
