import json

import httpx
import pytest

from config.settings import Settings


@pytest.fixture
def settings():
    """Fully configured settings, independent of the process environment."""
    s = Settings()
    s.dify_api_key = "dify-key"
    s.dify_api_url = "https://dify.test/v1"
    s.dify_timeout = 5.0
    s.chatfuel_bot_id = "bot-1"
    s.chatfuel_token = "cf-token"
    s.chatfuel_answer_block_id = "block-default"
    s.chatfuel_block_routes = {"faq": "block-faq"}
    s.chatfuel_api_url = "https://chatfuel.test"
    s.chatfuel_timeout = 5.0
    s.segment_max_size = 1500
    return s


class Recorder:
    """httpx.MockTransport handler that replays canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        status, payload = item
        return httpx.Response(status, json=payload)

    def bodies(self):
        return [json.loads(r.content) for r in self.requests]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def recorder():
    return Recorder
