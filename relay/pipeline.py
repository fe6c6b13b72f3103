from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from config.settings import Settings, get_settings
from relay.clients.chatfuel import ChatfuelClient
from relay.clients.dify import NO_ANSWER_TEXT, DifyClient
from relay.core.normalizer import normalize
from relay.core.segmenter import segment
from relay.errors import ConfigurationMissing, DeliveryError, UpstreamError


logger = logging.getLogger("relay.pipeline")


@dataclass
class Turn:
    user_text: str
    user_id: str
    conversation_id: Optional[str] = None
    inputs: Dict[str, Any] = field(default_factory=dict)
    route: Optional[str] = None


@dataclass
class TurnOutcome:
    delivered: int = 0
    conversation_id: str = ""
    error: Optional[str] = None


def build_dify_client(settings: Settings) -> DifyClient:
    missing = settings.missing_upstream()
    if missing:
        raise ConfigurationMissing(missing)
    return DifyClient(
        api_key=settings.dify_api_key,
        base_url=settings.dify_api_url,
        timeout=settings.dify_timeout,
    )


def build_chatfuel_client(settings: Settings) -> ChatfuelClient:
    missing = settings.missing_delivery()
    if missing:
        raise ConfigurationMissing(missing)
    return ChatfuelClient(
        bot_id=settings.chatfuel_bot_id,
        token=settings.chatfuel_token,
        default_block_id=settings.chatfuel_answer_block_id,
        base_url=settings.chatfuel_api_url,
        timeout=settings.chatfuel_timeout,
    )


def resolve_block_id(settings: Settings, route: Optional[str]) -> Optional[str]:
    if route and route in settings.chatfuel_block_routes:
        return settings.chatfuel_block_routes[route]
    return settings.chatfuel_answer_block_id


def process_turn(
    turn: Turn,
    settings: Optional[Settings] = None,
    upstream: Optional[DifyClient] = None,
    dispatcher: Optional[ChatfuelClient] = None,
) -> TurnOutcome:
    """Run one turn after it has been acknowledged: ask Dify, format, push.

    Runs detached from the inbound request, so every failure ends here as a
    log line; nothing is raised to the caller.
    """
    settings = settings or get_settings()
    outcome = TurnOutcome(conversation_id=turn.conversation_id or "")

    try:
        upstream = upstream or build_dify_client(settings)
    except ConfigurationMissing as exc:
        logger.warning("%s; skipping Dify call for user_id=%s", exc, turn.user_id)
        outcome.error = str(exc)
        return outcome

    try:
        answer = upstream.ask(
            turn.user_text,
            user_id=turn.user_id,
            conversation_id=turn.conversation_id,
            inputs=turn.inputs,
        )
        normalized = normalize(answer.answer_text)
        outcome.conversation_id = answer.conversation_id or ""

        try:
            dispatcher = dispatcher or build_chatfuel_client(settings)
        except ConfigurationMissing as exc:
            logger.warning("%s; can't send final answer to user_id=%s", exc, turn.user_id)
            outcome.error = str(exc)
            return outcome

        segments = segment(normalized.body_text, settings.segment_max_size) or [NO_ANSWER_TEXT]
        logger.info(
            "About to broadcast answer user_id=%s conversation_id=%s total_length=%s chunks=%s citations=%s",
            turn.user_id,
            outcome.conversation_id,
            len(normalized.body_text),
            len(segments),
            len(normalized.citations),
        )
        outcome.delivered = dispatcher.deliver(
            turn.user_id,
            segments,
            outcome.conversation_id,
            citation_block=normalized.citation_block or None,
            block_id=resolve_block_id(settings, turn.route),
        )
    except UpstreamError as exc:
        logger.error(
            "Error in background Dify flow: status=%s code=%s body=%s",
            exc.status,
            exc.code,
            exc.body,
        )
        outcome.error = str(exc)
    except DeliveryError as exc:
        logger.error(
            "Error in background Chatfuel broadcast: segment=%s status=%s body=%s",
            exc.segment_index + 1,
            exc.status,
            exc.body,
        )
        outcome.delivered = exc.segment_index
        outcome.error = str(exc)
    except Exception as exc:
        logger.exception("Background turn processing failed: %s", exc)
        outcome.error = str(exc)
    return outcome
