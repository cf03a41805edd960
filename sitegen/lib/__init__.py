"""
Shared helpers for sitegen.

Modules:
    slugs: URL/file-name slugs and per-directory slug de-duplication
"""

from sitegen.lib.slugs import (
    make_slug,
    SlugRegistry,
)

__all__ = [
    "make_slug",
    "SlugRegistry",
]
