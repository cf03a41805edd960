"""
Pagination for static JSON listings.

Page 1 is always materialized as ``{base_path}/index.json``; pages 2..N live
under ``{base_path}/page/{N}.json``. Links use the same convention, so the
"previous" link of page 2 points back at the index document rather than at
``page/1.json``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")

INDEX_FILE = "index.json"
PAGE_DIR = "page"


def paginate(items: Sequence[T], page_size: int) -> List[List[T]]:
    """
    Split items into consecutive pages of page_size, preserving order.

    Raises:
        ValueError: page_size is not a positive integer
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    return [list(items[i:i + page_size]) for i in range(0, len(items), page_size)]


def page_path(page_number: int) -> str:
    """Path of a page document relative to its listing's base path."""
    if page_number < 1:
        raise ValueError(f"page numbers start at 1, got {page_number}")
    if page_number == 1:
        return INDEX_FILE
    return f"{PAGE_DIR}/{page_number}.json"


def build_page_links(
    current_page: int,
    total_pages: int,
    base_path: str,
    first_page_link: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the pagination block of a page document.

    Args:
        current_page: 1-based page number
        total_pages: Total number of pages in the listing
        base_path: Link prefix of the listing (e.g. "vn/posts")
        first_page_link: Link used for page 1; defaults to "{base_path}/index.json"

    Returns:
        Dict with currentPage, totalPages, nextPage and previousPage
    """
    if total_pages < 1 or not 1 <= current_page <= total_pages:
        raise ValueError(f"page {current_page} is outside 1..{total_pages}")

    if first_page_link is None:
        first_page_link = f"{base_path}/{INDEX_FILE}"

    next_page = None
    if current_page < total_pages:
        next_page = f"{base_path}/{PAGE_DIR}/{current_page + 1}.json"

    previous_page = None
    if current_page == 2:
        previous_page = first_page_link
    elif current_page > 2:
        previous_page = f"{base_path}/{PAGE_DIR}/{current_page - 1}.json"

    return {
        "currentPage": current_page,
        "totalPages": total_pages,
        "nextPage": next_page,
        "previousPage": previous_page,
    }
