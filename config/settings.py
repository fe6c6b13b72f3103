from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def parse_block_routes(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``"faq=123,sales=456"`` into a route -> block id table."""
    routes: Dict[str, str] = {}
    for item in (raw or "").split(","):
        name, sep, block_id = item.partition("=")
        name, block_id = name.strip(), block_id.strip()
        if sep and name and block_id:
            routes[name] = block_id
    return routes


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    port: int = _env_int("PORT", 10000)

    dify_api_key: Optional[str] = os.getenv("DIFY_API_KEY")
    dify_api_url: str = os.getenv("DIFY_API_URL", "https://api.dify.ai/v1")
    dify_timeout: float = _env_float("DIFY_TIMEOUT_SECONDS", 120.0)

    chatfuel_bot_id: Optional[str] = os.getenv("CHATFUEL_BOT_ID")
    chatfuel_token: Optional[str] = os.getenv("CHATFUEL_TOKEN")
    chatfuel_answer_block_id: Optional[str] = os.getenv("CHATFUEL_ANSWER_BLOCK_ID")
    chatfuel_block_routes: Dict[str, str] = parse_block_routes(os.getenv("CHATFUEL_BLOCK_ROUTES"))
    chatfuel_api_url: str = os.getenv("CHATFUEL_API_URL", "https://api.chatfuel.com")
    chatfuel_timeout: float = _env_float("CHATFUEL_TIMEOUT_SECONDS", 10.0)

    segment_max_size: int = _env_int("SEGMENT_MAX_SIZE", 1500)

    def missing_upstream(self) -> List[str]:
        return [] if self.dify_api_key else ["DIFY_API_KEY"]

    def missing_delivery(self) -> List[str]:
        required = {
            "CHATFUEL_BOT_ID": self.chatfuel_bot_id,
            "CHATFUEL_TOKEN": self.chatfuel_token,
            "CHATFUEL_ANSWER_BLOCK_ID": self.chatfuel_answer_block_id,
        }
        return [name for name, value in required.items() if not value]


@dataclass(frozen=True)
class ReadinessReport:
    missing_upstream: List[str] = field(default_factory=list)
    missing_delivery: List[str] = field(default_factory=list)

    @property
    def upstream_ready(self) -> bool:
        return not self.missing_upstream

    @property
    def delivery_ready(self) -> bool:
        return not self.missing_delivery

    @property
    def ready(self) -> bool:
        return self.upstream_ready and self.delivery_ready


def check_readiness(settings: Settings) -> ReadinessReport:
    return ReadinessReport(
        missing_upstream=settings.missing_upstream(),
        missing_delivery=settings.missing_delivery(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
