# dmhero/search/normalize.py
from __future__ import annotations

import unicodedata
from typing import Any

# casefold() and NFKD can each expose input for the other (e.g. "İ" folds to
# "i" + combining dot). A few passes reach a fixed point for any real text.
_MAX_PASSES = 4


def strip_diacritics(s: str) -> str:
    return "".join(c for c in unicodedata.normalize("NFKD", s) if not unicodedata.combining(c))


def _collapse_ws(s: str) -> str:
    return " ".join(s.split())


def _normalize_once(s: str) -> str:
    return _collapse_ws(strip_diacritics(s.casefold()))


def normalize_text(text: Any) -> str:
    """
    Canonical form used for every search comparison.

    - None / empty -> ""
    - case-folded (locale-insensitive)
    - diacritics stripped ("Müller" -> "muller")
    - surrounding whitespace trimmed, inner runs collapsed to one space

    Never raises; non-string input is coerced with str().
    """
    if text is None:
        return ""
    s = text if isinstance(text, str) else str(text)
    if not s:
        return ""

    for _ in range(_MAX_PASSES):
        out = _normalize_once(s)
        if out == s:
            break
        s = out
    return s


def split_words(normalized: str, min_length: int = 0) -> list[str]:
    """
    Split already-normalized text on whitespace.

    Empty words are always dropped; words shorter than min_length too.
    """
    return [w for w in normalized.split() if w and len(w) >= min_length]


__all__ = ["normalize_text", "split_words", "strip_diacritics"]
