"""
Path filter helpers.

A path filter is a set of plain substrings. A path matches when it
contains any one of them; there is no glob or regex interpretation.
"""

from __future__ import annotations

from typing import Iterable


def normalize_path_filters(path_filters: Iterable[str] | str | None) -> tuple[str, ...] | None:
    """Return the filter as a sorted tuple of non-empty substrings, or None.

    A bare string is treated as a single substring. An empty filter means
    "no filter", not "match nothing".
    """
    if path_filters is None:
        return None
    if isinstance(path_filters, str):
        path_filters = [path_filters]
    substrings = sorted({str(item) for item in path_filters if str(item)})
    return tuple(substrings) if substrings else None


def path_matches(path: str, path_filters: Iterable[str] | None) -> bool:
    """Return True when *path* contains any substring in *path_filters*."""
    if path_filters is None:
        return True
    substrings = list(path_filters)
    if not substrings:
        return True
    return any(substring in path for substring in substrings)
