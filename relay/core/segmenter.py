from __future__ import annotations

from typing import List


DEFAULT_MAX_SIZE = 1500


def segment(text: str, max_size: int = DEFAULT_MAX_SIZE) -> List[str]:
    """Split ``text`` into pieces no longer than ``max_size``.

    Cuts land on the last newline at or before the limit; a line longer than
    the limit is cut mid-line. Pieces are trimmed and never empty.
    """
    size = max(1, int(max_size))
    segments: List[str] = []
    remaining = (text or "").strip()

    while len(remaining) > size:
        cut = remaining.rfind("\n", 0, size + 1)
        if cut <= 0:
            cut = size
        segments.append(remaining[:cut].strip())
        remaining = remaining[cut:].strip()

    if remaining:
        segments.append(remaining)
    return segments
