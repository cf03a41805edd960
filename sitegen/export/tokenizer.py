"""
Search tokenization.

ASCII-only normalization: anything that is not a-z, 0-9 or whitespace is
dropped before splitting, so "C++" indexes as "c" and "Pokémon" as "pokmon".
"""

from __future__ import annotations

import re
from typing import Any, List

DEFAULT_MIN_WORD_LENGTH = 2

_STRIP_RE = re.compile(r"[^a-z0-9\s]")


def tokenize(text: Any, min_word_length: int = DEFAULT_MIN_WORD_LENGTH) -> List[str]:
    """Lowercase, strip punctuation, split on whitespace and drop short words."""
    if not isinstance(text, str) or not text:
        return []

    text = _STRIP_RE.sub("", text.lower())
    return [word for word in text.split() if len(word) >= min_word_length]
