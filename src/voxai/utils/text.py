"""
Text helpers shared by logging, history and the CLI.
"""
from __future__ import annotations


def preview(text: str, limit: int) -> str:
    """
    First `limit` characters of text, with "..." appended when cut.

    >>> preview("hello world", 5)
    'hello...'
    >>> preview("hi", 5)
    'hi'
    """
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def char_cost(text: str) -> int:
    """Credit cost of speaking text: one credit per character."""
    return len(text)
