from __future__ import annotations

import re


SUPERSCRIPT_MARKERS = (
    "¹", "²", "³", "⁴", "⁵", "⁶", "⁷", "⁸", "⁹",
    "¹⁰", "¹¹", "¹²", "¹³", "¹⁴", "¹⁵",
)

# Matches one marker token: a superscript run or the "(n)" fallback.
MARKER_PATTERN = r"(?:[⁰¹²³⁴⁵⁶⁷⁸⁹]+|\(\d+\))"
MARKER_RE = re.compile(MARKER_PATTERN)


def marker_for(index: int) -> str:
    """Display token for the zero-based citation ``index``."""
    if 0 <= index < len(SUPERSCRIPT_MARKERS):
        return SUPERSCRIPT_MARKERS[index]
    return f"({index + 1})"
