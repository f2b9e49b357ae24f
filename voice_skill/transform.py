"""
Clean answer-source text for speech.

The answer source writes for screens: numbered citation markers like "[3]",
markdown bold and markdown headers. None of that should be read aloud.
"""

import re

# A marker set off by a space at the very end closes the final sentence.
_TRAILING_REFERENCE = re.compile(r"(\S)[ \t]+(?:\[\d+\])+\s*$")
_REFERENCE = re.compile(r"[ \t]*\[\d+\]")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_HEADER = re.compile(r"(?:^|(?<=\s))#{1,6}[ \t]+", re.MULTILINE)

_TERMINATORS = ".!?"


def _close_sentence(match: re.Match) -> str:
    last = match.group(1)
    if last in _TERMINATORS:
        return last
    return last + "."


def strip_references(text: str) -> str:
    """
    Remove "[n]" citation markers.

    "space [1]. Text" -> "space. Text"
    "[3]Start"        -> "Start"
    "end with [4]"    -> "end with."
    "end without[5]"  -> "end without"
    """
    text = _TRAILING_REFERENCE.sub(_close_sentence, text)
    return _REFERENCE.sub("", text)


def strip_bold(text: str) -> str:
    return _BOLD.sub(r"\1", text)


def strip_headers(text: str) -> str:
    return _HEADER.sub("", text)


def transform_for_speech(text: str) -> str:
    """Apply all cleanups and trim surrounding whitespace."""
    text = strip_references(text)
    text = strip_bold(text)
    text = strip_headers(text)
    return text.strip()
