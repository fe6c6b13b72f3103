from __future__ import annotations

from typing import Any, Optional


def normalize_conversation_id(value: Any) -> Optional[str]:
    """Return the conversation handle, or None when it should count as absent.

    Chatfuel stores unset attributes as "" or the literal "null", and Dify
    treats an empty ``conversation_id`` differently from a missing one.
    """
    if value is None:
        return None
    text = str(value)
    if not text.strip() or text.strip().lower() == "null":
        return None
    return text
