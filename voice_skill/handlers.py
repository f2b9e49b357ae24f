"""
Request dispatch.

Each request type, and each intent of an IntentRequest, maps to one plain
async function taking a TurnContext and returning a SpokenResponse. Lookup is
a dict: request types first, then intent names, then the fallback for
unknown intents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from logging_setup import get_logger, Component

from .envelope import RequestEnvelope, RequestType, SpokenResponse
from .localization import LanguageStrings
from .state import ContinuationStore
from .turn_controller import Query, TurnController

logger = get_logger(Component.SKILL)

ASK_INTENT = "AskPerplexityIntent"
QUERY_SLOT = "query"


@dataclass
class TurnContext:
    """Everything a handler needs for one request."""

    envelope: RequestEnvelope
    controller: TurnController
    store: ContinuationStore
    strings: LanguageStrings
    locale: str

    @property
    def session_id(self) -> str:
        return self.envelope.session_id


Handler = Callable[[TurnContext], Awaitable[SpokenResponse]]


async def handle_launch(ctx: TurnContext) -> SpokenResponse:
    return SpokenResponse(speech=ctx.strings.WELCOME_MESSAGE, reprompt=ctx.strings.WELCOME_MESSAGE)


async def handle_ask(ctx: TurnContext) -> SpokenResponse:
    intent = ctx.envelope.request.intent
    text = intent.slot_value(QUERY_SLOT) if intent else None

    if not text:
        logger.with_session(ctx.session_id).info("Question slot missing or empty", intent=ASK_INTENT)
        return SpokenResponse(speech=ctx.strings.QUERY_NOT_UNDERSTOOD, reprompt=ctx.strings.QUERY_PROMPT)

    return await ctx.controller.ask_question(
        Query(text=text, locale=ctx.locale),
        session_id=ctx.session_id,
        store=ctx.store,
    )


async def handle_continue(ctx: TurnContext) -> SpokenResponse:
    return ctx.controller.continue_response(ctx.session_id, ctx.locale, ctx.store)


async def handle_not_understood(ctx: TurnContext) -> SpokenResponse:
    return SpokenResponse(speech=ctx.strings.QUERY_NOT_UNDERSTOOD, reprompt=ctx.strings.QUERY_PROMPT)


async def handle_help(ctx: TurnContext) -> SpokenResponse:
    return SpokenResponse(speech=ctx.strings.HELP_MESSAGE, reprompt=ctx.strings.HELP_MESSAGE)


async def handle_stop(ctx: TurnContext) -> SpokenResponse:
    ctx.controller.end_session(ctx.session_id, ctx.store)
    return SpokenResponse(speech=ctx.strings.GOODBYE_MESSAGE, should_end_session=True)


async def handle_fallback(ctx: TurnContext) -> SpokenResponse:
    return SpokenResponse(speech=ctx.strings.FALLBACK_MESSAGE, reprompt=ctx.strings.QUERY_PROMPT)


async def handle_session_ended(ctx: TurnContext) -> SpokenResponse:
    logger.with_session(ctx.session_id).info(
        "Session ended",
        reason=ctx.envelope.request.reason,
    )
    ctx.controller.end_session(ctx.session_id, ctx.store)
    return SpokenResponse.empty()


REQUEST_HANDLERS: Dict[str, Handler] = {
    RequestType.LAUNCH.value: handle_launch,
    RequestType.SESSION_ENDED.value: handle_session_ended,
}

INTENT_HANDLERS: Dict[str, Handler] = {
    ASK_INTENT: handle_ask,
    "ContinueIntent": handle_continue,
    "AMAZON.YesIntent": handle_continue,
    "AMAZON.NextIntent": handle_continue,
    "AMAZON.HelpIntent": handle_help,
    "AMAZON.CancelIntent": handle_stop,
    "AMAZON.StopIntent": handle_stop,
    "AMAZON.NoIntent": handle_stop,
    "AMAZON.FallbackIntent": handle_fallback,
}


def resolve_handler(envelope: RequestEnvelope) -> Handler:
    """
    Pick the handler for an envelope.

    An IntentRequest without intent data is treated as an unheard question;
    intents nobody handles get the fallback answer. Neither is an error.
    """
    request_type = envelope.request.type

    if request_type in REQUEST_HANDLERS:
        return REQUEST_HANDLERS[request_type]

    if request_type == RequestType.INTENT.value:
        name = envelope.intent_name
        if name is None:
            return handle_not_understood
        return INTENT_HANDLERS.get(name, handle_fallback)

    logger.warning("Unsupported request type", request_type=request_type)
    return handle_fallback
