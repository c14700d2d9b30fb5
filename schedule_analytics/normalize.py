"""
normalize.py — Name and label normalization

Physician names arrive from several exports with inconsistent casing,
spacing and trailing punctuation. normalize_physician_name() is the
default matching-key function injected into the engine; callers may
pass their own.

Upper-casing follows Turkish locale rules (i → İ, ı → I), which
str.upper() does not.
"""

import re
from typing import Any, Iterable

_WHITESPACE = re.compile(r"\s+")
_TITLES = re.compile(r"dr\.|uzm\.|op\.|doc\.|prof\.|dt\.|ecz\.|yt\.|doç\.")

_ASCII_FOLD = str.maketrans({
    "ş": "s", "ı": "i", "ğ": "g", "ü": "u", "ö": "o", "ç": "c",
})


def turkish_upper(text: str) -> str:
    return text.replace("i", "İ").replace("ı", "I").upper()


def turkish_lower(text: str) -> str:
    return text.replace("I", "ı").replace("İ", "i").lower()


def normalize_physician_name(raw: Any) -> str:
    """
    Default display name → matching key.

    "  Dr  adem   dilek. " → "DR ADEM DİLEK"
    """
    if raw is None:
        return ""
    s = _WHITESPACE.sub(" ", str(raw).strip())
    s = turkish_upper(s)
    if s.endswith("."):
        s = s[:-1]
    return s


def match_key(raw: Any) -> str:
    """
    Loose key for matching the same physician across roster versions:
    lower-case, ASCII-folded, no whitespace, academic titles removed.
    """
    if raw is None:
        return ""
    s = turkish_lower(str(raw).strip()).translate(_ASCII_FOLD)
    s = _WHITESPACE.sub("", s)
    return _TITLES.sub("", s)


def normalize_action(raw: Any) -> str:
    if raw is None:
        return ""
    return turkish_upper(_WHITESPACE.sub(" ", str(raw).strip()))


def matches_any(label: str, vocabulary: Iterable[str]) -> bool:
    """True if the normalized label contains any vocabulary term."""
    norm = normalize_action(label)
    return any(normalize_action(term) in norm for term in vocabulary)
