"""
Localized spoken strings.

String tables live in `locales/` as YAML, one file per language key. Both
en-US and en-GB read the shared `en` table; de-DE has its own. All tables are
loaded once when the loader is constructed, so lookups never touch the disk.

We use PyYAML's safe_load, which also accepts plain JSON tables.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from logging_setup import get_logger, Component

logger = get_logger(Component.LOCALIZATION)

DEFAULT_LOCALE = "en-US"

# Locale code -> language table name in locales/
LOCALE_TO_LANGUAGE: Dict[str, str] = {
    "en-US": "en",
    "en-GB": "en",
    "de-DE": "de-DE",
}


@dataclass(frozen=True)
class LanguageStrings:
    """Every string the skill can speak, for one language."""

    WELCOME_MESSAGE: str
    QUERY_NOT_UNDERSTOOD: str
    QUERY_PROMPT: str
    NO_ANSWER_FOUND: str
    ANOTHER_QUESTION_PROMPT: str
    ERROR_MESSAGE: str
    HELP_MESSAGE: str
    GOODBYE_MESSAGE: str
    FALLBACK_MESSAGE: str
    GENERIC_ERROR: str
    CONTINUATION_PROMPT: str
    NO_MORE_CONTENT: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: str = "<mapping>") -> "LanguageStrings":
        names = [f.name for f in fields(cls)]
        missing = [n for n in names if not isinstance(data.get(n), str)]
        if missing:
            raise ValueError(f"Language table {source} is missing strings: {', '.join(missing)}")
        return cls(**{n: data[n] for n in names})


def _get_locales_dir() -> Path:
    return Path(__file__).parent / "locales"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Language table {path} must contain a mapping at top-level")
    return data


def _find_table(locales_dir: Path, language: str) -> Path:
    for suffix in (".yaml", ".yml", ".json"):
        candidate = locales_dir / f"{language}{suffix}"
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"No language table for '{language}' in {locales_dir}")


class LanguageStringLoader:
    """
    Provides LanguageStrings per locale.

    Unsupported locales (including an empty one) fall back to en-US.
    """

    def __init__(
        self,
        locales_dir: Optional[Path] = None,
        locale_map: Optional[Mapping[str, str]] = None,
        default_locale: str = DEFAULT_LOCALE,
    ):
        self._locales_dir = locales_dir or _get_locales_dir()
        self._locale_map = dict(locale_map or LOCALE_TO_LANGUAGE)
        if default_locale not in self._locale_map:
            raise ValueError(f"Default locale '{default_locale}' is not a supported locale")
        self._default_locale = default_locale
        self._by_locale = self._build_strings_by_locale()

    def _build_strings_by_locale(self) -> Dict[str, LanguageStrings]:
        # One object per language table, shared by every locale that maps to it
        by_language: Dict[str, LanguageStrings] = {}
        by_locale: Dict[str, LanguageStrings] = {}

        for locale, language in self._locale_map.items():
            if language not in by_language:
                path = _find_table(self._locales_dir, language)
                by_language[language] = LanguageStrings.from_mapping(_load_file(path), str(path))
            by_locale[locale] = by_language[language]

        logger.debug("Language tables loaded", locales=sorted(by_locale), languages=sorted(by_language))
        return by_locale

    @property
    def default_locale(self) -> str:
        return self._default_locale

    def get_strings(self, locale: Optional[str]) -> LanguageStrings:
        if locale and locale in self._by_locale:
            return self._by_locale[locale]

        logger.info(
            f"Locale '{locale or ''}' not supported, defaulting to '{self._default_locale}'",
            requested_locale=locale,
        )
        return self._by_locale[self._default_locale]

    def supported_locales(self) -> List[str]:
        return list(self._by_locale)
