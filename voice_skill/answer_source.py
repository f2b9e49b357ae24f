"""
Answer source: Perplexity chat completions over HTTP.

One request per question, no retries. The raw answer is cleaned for speech
before it is returned, so callers only ever see speakable text.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Protocol

import aiohttp

from logging_setup import get_logger, Component

from .config import DEFAULT_API_URL
from .credentials import ApiKeyResolver
from .errors import UpstreamError
from .transform import transform_for_speech

logger = get_logger(Component.ANSWER_SOURCE)


class AnswerSource(Protocol):
    """Anything that can answer a question with plain text."""

    async def query(self, text: str, locale: Optional[str] = None) -> str:
        ...


def _extract_content(payload: Any) -> str:
    """Pull choices[0].message.content out of a chat-completions payload."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamError(f"Unexpected answer payload: missing {e}") from e
    if content is None:
        return ""
    if not isinstance(content, str):
        raise UpstreamError("Unexpected answer payload: content is not text")
    return content


class PerplexityAnswerSource:
    """Queries the Perplexity chat-completions API."""

    def __init__(
        self,
        key_resolver: ApiKeyResolver,
        api_url: str = DEFAULT_API_URL,
        model: str = "sonar",
        max_tokens: int = 150,
        temperature: float = 0.2,
        timeout_seconds: float = 0.0,
    ):
        self.key_resolver = key_resolver
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def build_payload(self, text: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": text,
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def query(self, text: str, locale: Optional[str] = None) -> str:
        """
        Ask the question and return the cleaned answer text.

        Raises:
            ConfigurationError: no API key could be resolved
            UpstreamError: network failure, non-2xx status or malformed payload
        """
        if self.key_resolver.is_cached:
            api_key = self.key_resolver.resolve()
        else:
            # A Secrets Manager lookup is a blocking boto3 call
            api_key = await asyncio.to_thread(self.key_resolver.resolve)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds or None)

        start_ts = time.time()
        logger.info(
            "Querying answer source",
            endpoint=self.api_url,
            model=self.model,
            query_length=len(text),
            locale=locale,
        )

        try:
            async with aiohttp.ClientSession(timeout=timeout) as s:
                async with s.post(self.api_url, json=self.build_payload(text), headers=headers) as resp:
                    if not 200 <= resp.status < 300:
                        logger.warning(
                            "Answer source returned error status",
                            endpoint=self.api_url,
                            status=resp.status,
                            latency_ms=int((time.time() - start_ts) * 1000),
                        )
                        raise UpstreamError(
                            f"Answer source responded with HTTP {resp.status}",
                            status=resp.status,
                        )
                    payload = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.warning(
                "Answer source request failed",
                endpoint=self.api_url,
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            raise UpstreamError(f"Network error calling answer source: {type(e).__name__}") from e
        except asyncio.TimeoutError as e:
            raise UpstreamError("Answer source request timeout") from e
        except ValueError as e:
            # Body was not JSON
            raise UpstreamError("Answer source returned a non-JSON body") from e

        answer = transform_for_speech(_extract_content(payload))
        logger.info(
            "Answer source responded",
            endpoint=self.api_url,
            answer_length=len(answer),
            latency_ms=int((time.time() - start_ts) * 1000),
        )
        return answer
