"""
Skill configuration.

Loads settings from environment variables, with `.env_local` / `.env.local`
in the repository root as a local development convenience (never overriding
variables that are already set).

Nothing is required at load time: a missing API key only surfaces when a
question is asked, as a spoken error for that turn.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "https://api.perplexity.ai/chat/completions"


def load_local_env(root: Optional[Path] = None) -> None:
    """Load .env_local / .env.local if present (best-effort, no override)."""
    root = root or Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


def _clean_env(key: str) -> Optional[str]:
    """
    Read an environment variable, stripping inline comments and whitespace.

    "150  # tokens" -> "150"; empty or missing -> None
    """
    value = os.environ.get(key)
    if not value:
        return None
    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()
    return value or None


def _raw_env(key: str) -> Optional[str]:
    """Read a value verbatim apart from surrounding whitespace (secrets may contain '#')."""
    value = (os.environ.get(key) or "").strip()
    return value or None


def _parse_int_env(key: str, default: int) -> int:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float_env(key: str, default: float) -> float:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool_env(key: str, default: bool) -> bool:
    value = _clean_env(key)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class SkillConfig:
    """Voice answer skill configuration."""

    # Answer source credentials (env key wins over the secret)
    perplexity_api_key: Optional[str] = None
    perplexity_api_secret_name: Optional[str] = None

    # Answer source request
    perplexity_api_url: str = DEFAULT_API_URL
    perplexity_model: str = "sonar"
    perplexity_max_tokens: int = 150
    perplexity_temperature: float = 0.2
    # 0 disables the client-side timeout; the platform deadline still applies
    answer_timeout_seconds: float = 0.0

    # Localization
    default_locale: str = "en-US"

    # "session": state travels in session attributes; "memory": kept in this process
    continuation_store: str = "session"
    # Speak SSML instead of plain text
    use_ssml: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Local HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "SkillConfig":
        """Load configuration from environment variables."""
        return cls(
            perplexity_api_key=_raw_env("PERPLEXITY_API_KEY"),
            perplexity_api_secret_name=_clean_env("PERPLEXITY_API_SECRET_NAME"),
            perplexity_api_url=_clean_env("PERPLEXITY_API_URL") or DEFAULT_API_URL,
            perplexity_model=_clean_env("PERPLEXITY_MODEL") or "sonar",
            perplexity_max_tokens=_parse_int_env("PERPLEXITY_MAX_TOKENS", default=150),
            perplexity_temperature=_parse_float_env("PERPLEXITY_TEMPERATURE", default=0.2),
            answer_timeout_seconds=_parse_float_env("ANSWER_SOURCE_TIMEOUT_SECONDS", default=0.0),
            default_locale=_clean_env("DEFAULT_LOCALE") or "en-US",
            continuation_store=(_clean_env("CONTINUATION_STORE") or "session").lower(),
            use_ssml=_parse_bool_env("USE_SSML", default=False),
            log_level=(_clean_env("LOG_LEVEL") or "INFO").upper(),
            log_json=_parse_bool_env("LOG_JSON", default=True),
            host=_clean_env("HOST") or "0.0.0.0",
            port=_parse_int_env("PORT", default=3000),
        )
