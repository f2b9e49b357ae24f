"""
Split an answer into speech-safe segments.

Cuts are chosen in order of preference:
1) after the rightmost sentence terminator (". ", "! ", "? " or the same
   followed by a newline) that still fits
2) after the rightmost space between half the limit and the limit
3) exactly at the limit

Lengths and indices are both Python code points, so accented letters and
emoji count as one character each for measuring and for cutting.
"""

from __future__ import annotations

import re
from typing import List, Optional

# Terminator punctuation followed by a space or newline; the match ends on the
# punctuation so the trailing whitespace is not counted against the limit.
SENTENCE_END = re.compile(r"[.!?](?=[ \n])")

# Word-boundary search never goes below this fraction of the limit.
MIN_WORD_CUT_RATIO = 0.5


def _sentence_cut(text: str, max_size: int) -> Optional[int]:
    """Return the end index of the last complete sentence within max_size."""
    best = None
    for match in SENTENCE_END.finditer(text):
        end = match.end()
        if end > max_size:
            break
        best = end
    return best


def _word_cut(text: str, max_size: int) -> Optional[int]:
    """Return the index just after the last space in [max_size / 2, max_size]."""
    i = min(max_size, len(text) - 1)
    while i >= max_size * MIN_WORD_CUT_RATIO:
        if text[i] == " ":
            return i + 1
        i -= 1
    return None


def segment(text: str, max_size: int) -> List[str]:
    """
    Split text into segments of at most max_size characters.

    Text that already fits is returned as-is in a one-element list, without
    trimming. Longer text is cut repeatedly, and each emitted segment and the
    remainder are stripped of surrounding whitespace.

    No segment is longer than max_size: an unbroken run longer than the
    limit is hard-cut at max_size.

    Examples:
        >>> segment("First sentence. Second sentence. Third sentence.", 20)
        ['First sentence.', 'Second sentence.', 'Third sentence.']
        >>> segment("   ", 2)
        ['']
    """
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")

    if len(text) <= max_size:
        return [text]

    segments: List[str] = []
    remaining = text

    while remaining:
        if len(remaining) <= max_size:
            segments.append(remaining)
            break

        cut = _sentence_cut(remaining, max_size)
        if cut is None:
            cut = _word_cut(remaining, max_size)
        if cut is None:
            cut = max_size

        piece = remaining[:cut].strip()
        if piece:
            segments.append(piece)
        remaining = remaining[cut:].strip()

    # Whitespace-only input strips down to nothing
    return segments or [""]
