"""
Slug generation for item file names and links.

Usage:
    from sitegen.lib.slugs import make_slug, SlugRegistry

    make_slug("Fate/Stay Night")              # -> "fate-stay-night"
    make_slug("Pokémon Red")                  # -> "pokemon-red"
    make_slug("東方 Project", unicode=True)    # -> "東方-project"

    names = SlugRegistry()
    names.claim("tales")   # -> "tales"
    names.claim("tales")   # -> "tales-2"
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from slugify import slugify

UNTITLED_SLUG = "untitled"


def make_slug(text: Any, max_length: int = 100, unicode: bool = False) -> str:
    """
    URL-safe slug of text, or "" when nothing usable remains.

    ASCII slugs transliterate other scripts; unicode slugs keep letters and
    digits of any script (NFKC-normalized). max_length=0 disables truncation.
    """
    if text is None or text == "":
        return ""
    return slugify(str(text), max_length=max_length, allow_unicode=unicode)


class SlugRegistry:
    """Hands out unique file slugs within one output directory."""

    def __init__(self, reserved: Iterable[str] = ()):
        self._seen: Dict[str, int] = {name: 1 for name in reserved}

    def claim(self, base: str) -> str:
        base = base or UNTITLED_SLUG
        count = self._seen.get(base, 0) + 1
        self._seen[base] = count
        if count == 1:
            return base

        candidate = f"{base}-{count}"
        # "a-2" may already have been claimed as a literal slug
        while candidate in self._seen:
            count += 1
            candidate = f"{base}-{count}"
        self._seen[base] = count
        self._seen[candidate] = 1
        return candidate

    def __contains__(self, slug: str) -> bool:
        return slug in self._seen
