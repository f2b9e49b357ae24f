"""
API key resolution for the answer source.

Resolution order:
1) key already resolved by this resolver (cached for the process lifetime)
2) PERPLEXITY_API_KEY
3) AWS Secrets Manager secret named by PERPLEXITY_API_SECRET_NAME, whose
   SecretString is JSON of the form {"apiKey": "..."}

A key that cannot be resolved is a ConfigurationError for the current turn.
Failures are not cached, so the next invocation tries again.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logging_setup import get_logger, Component

from .errors import ConfigurationError

logger = get_logger(Component.CREDENTIALS)

SECRET_KEY_FIELD = "apiKey"


def _default_secrets_client() -> Any:
    return boto3.client("secretsmanager")


class ApiKeyResolver:
    """Resolves and caches the answer source API key."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret_name: Optional[str] = None,
        secrets_client_factory: Callable[[], Any] = _default_secrets_client,
    ):
        self._env_key = api_key
        self._secret_name = secret_name
        self._secrets_client_factory = secrets_client_factory
        self._cached: Optional[str] = None

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    def resolve(self) -> str:
        if self._cached:
            return self._cached

        key = self._env_key
        source = "environment"

        if not key and self._secret_name:
            key = self._from_secrets_manager(self._secret_name)
            source = "secrets_manager"

        if not key:
            logger.error("Answer source API key not configured")
            raise ConfigurationError("Perplexity API key not configured")

        logger.debug_secret("Answer source API key resolved", api_key=key)
        logger.info("Answer source API key resolved", source=source)
        self._cached = key
        return key

    def _from_secrets_manager(self, secret_name: str) -> str:
        try:
            client = self._secrets_client_factory()
            response = client.get_secret_value(SecretId=secret_name)
            secret = json.loads(response["SecretString"])
            key = secret[SECRET_KEY_FIELD]
        except (BotoCoreError, ClientError, KeyError, TypeError, ValueError) as e:
            # Never log the secret payload itself
            logger.error(
                "Failed to read API key from Secrets Manager",
                secret_name=secret_name,
                error_type=type(e).__name__,
            )
            raise ConfigurationError("Failed to retrieve API key from Secrets Manager") from e

        if not isinstance(key, str) or not key:
            raise ConfigurationError("Secret does not contain an API key")
        return key
