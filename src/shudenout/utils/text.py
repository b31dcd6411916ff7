"""Text normalisation shared by the duplicate detector and content filters."""
from __future__ import annotations

import re
from typing import Iterable, Optional

_FULLWIDTH_OFFSET = 0xFEE0
_WIDTH_TABLE = {
    code: code - _FULLWIDTH_OFFSET
    for start, end in ((0xFF10, 0xFF19), (0xFF21, 0xFF3A), (0xFF41, 0xFF5A))
    for code in range(start, end + 1)
}
_WIDTH_TABLE[0x3000] = ord(" ")

# ASCII word characters plus hiragana, katakana and CJK ideographs.
_NAME_NOISE = re.compile(r"[^\w぀-ゟ゠-ヿ一-龯]", re.ASCII)
_STATION_QUALIFIERS = re.compile(r"[0-9]+分|徒歩|車|バス")


def fold_width(text: str) -> str:
    """Convert full-width ASCII letters, digits and the ideographic space to half-width."""
    return text.translate(_WIDTH_TABLE)


def normalize_for_match(text: Optional[str]) -> str:
    if not text:
        return ""
    return fold_width(text).lower()


def normalize_name(text: Optional[str]) -> str:
    """Case-fold, width-fold and strip punctuation and whitespace from a hotel name."""
    if not text:
        return ""
    return _NAME_NOISE.sub("", normalize_for_match(text)).strip()


def normalize_station(text: Optional[str]) -> str:
    """Drop travel-time and transport-mode qualifiers such as ``徒歩5分``."""
    if not text:
        return ""
    return _STATION_QUALIFIERS.sub("", fold_width(text)).strip()


def contains_any(text: Optional[str], words: Iterable[str]) -> Optional[str]:
    """Return the first of ``words`` found in ``text`` after normalisation, if any."""
    haystack = normalize_for_match(text)
    if not haystack:
        return None
    for word in words:
        needle = normalize_for_match(word)
        if needle and needle in haystack:
            return word
    return None
