from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from relay.errors import UpstreamError


logger = logging.getLogger("relay.dify")

DEFAULT_BASE_URL = "https://api.dify.ai/v1"
CHANNEL_TAG = "chatfuel"
NO_ANSWER_TEXT = "No answer returned from Dify."


@dataclass(frozen=True)
class UpstreamAnswer:
    answer_text: str
    outputs_text: Optional[str]
    conversation_id: Optional[str]
    conversation_reset: bool = False


def build_inputs(extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    inputs: Dict[str, Any] = {"from_channel": CHANNEL_TAG}
    if isinstance(extra, dict):
        inputs.update(extra)
    return inputs


def _error_from_response(response: httpx.Response) -> UpstreamError:
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    code = body.get("code") if isinstance(body, dict) else None
    return UpstreamError(status=response.status_code, code=code, body=body)


def _is_stale_conversation(exc: UpstreamError) -> bool:
    return exc.status == 404 and exc.code == "not_found"


def extract_answer(data: Dict[str, Any]) -> str:
    answer = data.get("answer")
    if answer is not None:
        return str(answer)
    outputs = data.get("outputs")
    if isinstance(outputs, dict) and outputs.get("text") is not None:
        return str(outputs["text"])
    return NO_ANSWER_TEXT


class DifyClient:
    """Blocking client for Dify's ``/chat-messages`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat-messages"

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(status=None, code=None, body=str(exc)) from exc

        if response.is_error:
            raise _error_from_response(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(status=response.status_code, code=None, body=response.text) from exc
        return data if isinstance(data, dict) else {}

    def ask(
        self,
        question: str,
        user_id: str,
        conversation_id: Optional[str] = None,
        inputs: Optional[Dict[str, Any]] = None,
    ) -> UpstreamAnswer:
        payload: Dict[str, Any] = {
            "query": question,
            "response_mode": "blocking",
            "user": str(user_id),
            "inputs": build_inputs(inputs),
        }
        if conversation_id:
            payload["conversation_id"] = conversation_id

        reset = False
        try:
            data = self._post(payload)
        except UpstreamError as exc:
            if not (conversation_id and _is_stale_conversation(exc)):
                raise
            logger.error(
                "Dify says conversation does not exist, retrying without conversation_id: %s",
                conversation_id,
            )
            retry_payload = dict(payload)
            retry_payload.pop("conversation_id", None)
            data = self._post(retry_payload)
            reset = True

        outputs = data.get("outputs")
        outputs_text = outputs.get("text") if isinstance(outputs, dict) else None
        next_id = data.get("conversation_id") or (None if reset else conversation_id)
        return UpstreamAnswer(
            answer_text=extract_answer(data),
            outputs_text=outputs_text,
            conversation_id=next_id,
            conversation_reset=reset,
        )
