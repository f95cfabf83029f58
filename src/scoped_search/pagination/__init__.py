"""Keyset pagination: stable cursors over sorted search results."""

from .keyset import (
    MAX_SORT_SENTINEL,
    MIN_SORT_SENTINEL,
    Cursor,
    KeysetPaginator,
    SortSpec,
    cursor_for,
    decode_sort_value,
)

__all__ = [
    "MAX_SORT_SENTINEL",
    "MIN_SORT_SENTINEL",
    "Cursor",
    "KeysetPaginator",
    "SortSpec",
    "cursor_for",
    "decode_sort_value",
]
