from __future__ import annotations

from typing import Any, Iterable, Optional


class RelayError(Exception):
    """Base class for failures inside a relayed turn."""


class ConfigurationMissing(RelayError):
    """Required settings are absent; the affected step is skipped."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        super().__init__(f"Missing configuration: {', '.join(self.names)}")


class UpstreamError(RelayError):
    """The Dify call failed at the transport level or returned non-2xx."""

    def __init__(self, status: Optional[int], code: Optional[str], body: Any) -> None:
        self.status = status
        self.code = code
        self.body = body
        super().__init__(f"Dify request failed: status={status} code={code} body={_short(body)}")


class DeliveryError(RelayError):
    """A Chatfuel push failed; later segments of the turn were not sent."""

    def __init__(self, status: Optional[int], body: Any, segment_index: int) -> None:
        self.status = status
        self.body = body
        self.segment_index = segment_index
        super().__init__(
            f"Chatfuel push failed on segment {segment_index + 1}: status={status} body={_short(body)}"
        )


def _short(body: Any, limit: int = 500) -> str:
    text = " ".join(str(body).split())
    return text[:limit]
