"""
Answer source tests against a local aiohttp server.
Tests the request sent upstream, answer cleaning and failure mapping.
"""
import asyncio
import json
import threading
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from voice_skill.answer_source import PerplexityAnswerSource
from voice_skill.credentials import ApiKeyResolver
from voice_skill.errors import (
    AnswerErrorCategory,
    AnswerErrorHandler,
    ConfigurationError,
    UpstreamError,
)

PATH = "/chat/completions"


def completion(content):
    return {"id": "cmpl-1", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@asynccontextmanager
async def upstream(handler):
    """Run a one-route upstream server for the duration of a test."""
    app = web.Application()
    app.router.add_post(PATH, handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url(PATH))
    finally:
        await server.close()


def make_source(url, api_key="pplx-test", **kwargs):
    return PerplexityAnswerSource(key_resolver=ApiKeyResolver(api_key=api_key), api_url=url, **kwargs)


class TestQuery:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        async def handler(request):
            seen["body"] = await request.json()
            seen["auth"] = request.headers.get("Authorization")
            return web.json_response(completion("Paris."))

        async with upstream(handler) as url:
            source = make_source(url, model="sonar-pro", max_tokens=99, temperature=0.1)
            await source.query("What is the capital of France?", "en-US")

        assert seen["auth"] == "Bearer pplx-test"
        assert seen["body"] == {
            "model": "sonar-pro",
            "messages": [{"role": "user", "content": "What is the capital of France?"}],
            "max_tokens": 99,
            "temperature": 0.1,
        }

    @pytest.mark.asyncio
    async def test_answer_cleaned_for_speech(self):
        async def handler(request):
            return web.json_response(completion("## Capital\n**Paris** is the capital of France [1][2]"))

        async with upstream(handler) as url:
            answer = await make_source(url).query("capital")

        assert answer == "Capital\nParis is the capital of France."

    @pytest.mark.asyncio
    async def test_null_content_is_empty_answer(self):
        async def handler(request):
            return web.json_response(completion(None))

        async with upstream(handler) as url:
            assert await make_source(url).query("q") == ""

    @pytest.mark.asyncio
    async def test_json_without_content_type(self):
        async def handler(request):
            return web.Response(text='{"choices": [{"message": {"content": "ok"}}]}', content_type="text/plain")

        async with upstream(handler) as url:
            assert await make_source(url).query("q") == "ok"


class TestFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, category", [
        (401, AnswerErrorCategory.AUTH_FAILED),
        (429, AnswerErrorCategory.RATE_LIMITED),
        (500, AnswerErrorCategory.BAD_RESPONSE),
        (503, AnswerErrorCategory.CAPACITY_LIMITED),
    ])
    async def test_error_status(self, status, category):
        async def handler(request):
            return web.json_response({"error": "nope"}, status=status)

        async with upstream(handler) as url:
            with pytest.raises(UpstreamError) as exc_info:
                await make_source(url).query("q")

        assert exc_info.value.status == status
        assert AnswerErrorHandler.classify_error(exc_info.value) == category

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": 5}}]}])
    async def test_unexpected_payload(self, payload):
        async def handler(request):
            return web.json_response(payload)

        async with upstream(handler) as url:
            with pytest.raises(UpstreamError, match="Unexpected answer payload"):
                await make_source(url).query("q")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async def handler(request):
            return web.Response(text="<html>gateway</html>", content_type="text/html")

        async with upstream(handler) as url:
            with pytest.raises(UpstreamError, match="non-JSON"):
                await make_source(url).query("q")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(0.5)
            return web.json_response(completion("late"))

        async with upstream(handler) as url:
            with pytest.raises(UpstreamError) as exc_info:
                await make_source(url, timeout_seconds=0.05).query("q")

        assert AnswerErrorHandler.classify_error(exc_info.value) == AnswerErrorCategory.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async def handler(request):
            return web.json_response(completion("unused"))

        # Bind then release a port so nothing is listening on it
        async with upstream(handler) as url:
            pass

        with pytest.raises(UpstreamError, match="Network error") as exc_info:
            await make_source(url).query("q")

        assert AnswerErrorHandler.classify_error(exc_info.value) == AnswerErrorCategory.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_request(self):
        calls = []

        async def handler(request):
            calls.append(request)
            return web.json_response(completion("unused"))

        async with upstream(handler) as url:
            with pytest.raises(ConfigurationError):
                await make_source(url, api_key=None).query("q")

        assert calls == []


class TestKeyResolution:

    @pytest.mark.asyncio
    async def test_secret_lookup_runs_off_the_event_loop(self):
        lookup_threads = []

        class SecretsClient:
            def get_secret_value(self, SecretId):
                lookup_threads.append(threading.get_ident())
                return {"SecretString": json.dumps({"apiKey": "from-secret"})}

        seen = []

        async def handler(request):
            seen.append(request.headers.get("Authorization"))
            return web.json_response(completion("ok"))

        resolver = ApiKeyResolver(secret_name="pplx", secrets_client_factory=SecretsClient)

        async with upstream(handler) as url:
            source = PerplexityAnswerSource(key_resolver=resolver, api_url=url)
            await source.query("q")
            await source.query("q")

        assert seen == ["Bearer from-secret", "Bearer from-secret"]
        assert len(lookup_threads) == 1
        assert lookup_threads[0] != threading.get_ident()
