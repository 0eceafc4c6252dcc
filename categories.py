"""Keyword heuristics that label a piece of text with a memory category."""

from __future__ import annotations

import re

MEMORY_CATEGORIES = ("preference", "decision", "entity", "fact", "other")

_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("preference", re.compile(r"\b(prefer|prefers|like|likes|love|loves|hate|hates|want|wants|favou?rite)\b", re.I)),
    ("decision", re.compile(r"\b(decided|decide|will use|going with|chose|switched to)\b", re.I)),
    ("entity", re.compile(r"\+\d{10,}|[\w.+-]+@[\w-]+\.[\w.]+|\bis called\b|\bnamed\b", re.I)),
    ("fact", re.compile(r"\b(is|are|has|have|was|were)\b", re.I)),
)


def detect_category(text: str) -> str:
    """First matching category in rule order, ``other`` when none match."""
    for category, pattern in _RULES:
        if pattern.search(text):
            return category
    return "other"
