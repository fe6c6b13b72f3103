from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import httpx

from relay.errors import DeliveryError


logger = logging.getLogger("relay.chatfuel")

DEFAULT_BASE_URL = "https://api.chatfuel.com"


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ChatfuelClient:
    """Pushes answer segments to a user through Chatfuel's broadcast API."""

    def __init__(
        self,
        bot_id: str,
        token: str,
        default_block_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.bot_id = bot_id
        self.token = token
        self.default_block_id = default_block_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def send_url(self, user_id: str) -> str:
        return f"{self.base_url}/bots/{self.bot_id}/users/{quote(str(user_id), safe='')}/send"

    def deliver(
        self,
        user_id: str,
        segments: Sequence[str],
        conversation_id: Optional[str],
        citation_block: Optional[str] = None,
        block_id: Optional[str] = None,
    ) -> int:
        url = self.send_url(user_id)
        params = {
            "chatfuel_token": self.token,
            "chatfuel_block_id": block_id or self.default_block_id,
        }
        total = len(segments)

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            for index, text in enumerate(segments):
                body: Dict[str, Any] = {
                    "dify_answer": text,
                    "dify_conversation_id": conversation_id or "",
                }
                if citation_block:
                    body["dify_sources"] = citation_block

                try:
                    response = client.post(url, params=params, json=body)
                except httpx.HTTPError as exc:
                    raise DeliveryError(status=None, body=str(exc), segment_index=index) from exc

                response_body = _response_body(response)
                if response.is_error:
                    raise DeliveryError(
                        status=response.status_code, body=response_body, segment_index=index
                    )
                logger.info(
                    "Sent chunk %s/%s via Chatfuel broadcast user_id=%s conversation_id=%s status=%s body=%s",
                    index + 1,
                    total,
                    user_id,
                    conversation_id,
                    response.status_code,
                    response_body if isinstance(response_body, str) else json.dumps(response_body),
                )
        return total
