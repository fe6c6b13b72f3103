from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from config.settings import check_readiness, get_settings
from relay.core.handles import normalize_conversation_id
from relay.pipeline import Turn, process_turn


settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger("relay.app")

ACKNOWLEDGMENT = {"messages": [{"text": "Thinking… I'll reply shortly!"}]}


@asynccontextmanager
async def lifespan(app: FastAPI):
    report = check_readiness(get_settings())
    if not report.upstream_ready:
        logger.warning("Dify is not configured, missing: %s", ", ".join(report.missing_upstream))
    if not report.delivery_ready:
        logger.warning(
            "Chatfuel broadcast env vars are not fully set, missing: %s",
            ", ".join(report.missing_delivery),
        )
    yield


app = FastAPI(title="Chatfuel Dify Relay", version="1.0.0", lifespan=lifespan)

# CORS: allow local tools during development
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _coerce_inputs(value: Any) -> Dict[str, Any]:
    """Chatfuel attributes arrive as strings, so accept a JSON object string too."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return {}
    return dict(value) if isinstance(value, dict) else {}


class ChatfuelTurnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_text: Optional[Any] = Field(None, description="User's latest message")
    chatfuel_user_input: Optional[Any] = Field(
        None,
        alias="chatfuel user input",
        description="Chatfuel's built-in last user input attribute",
    )
    chatfuel_user_id: Optional[Any] = None
    messenger_user_id: Optional[Any] = None
    dify_conversation_id: Optional[Any] = Field(
        None, description="Conversation handle stored on the Chatfuel user"
    )
    inputs: Optional[Any] = Field(None, description="Extra Dify inputs merged with the channel tag")
    route: Optional[Any] = Field(None, description="Named answer block to deliver into")

    def to_turn(self) -> Optional[Turn]:
        user_id = self.chatfuel_user_id or self.messenger_user_id
        if not user_id:
            return None
        raw_text = self.user_text or self.chatfuel_user_input or ""
        return Turn(
            user_text=str(raw_text).strip(),
            user_id=str(user_id),
            conversation_id=normalize_conversation_id(self.dify_conversation_id),
            inputs=_coerce_inputs(self.inputs),
            route=str(self.route) if self.route not in (None, "") else None,
        )


@app.get("/", response_class=PlainTextResponse)
def index() -> str:
    return "Chatfuel ↔ Dify Render bridge is running."


@app.get("/health")
def health() -> Dict[str, Any]:
    report = check_readiness(get_settings())
    return {
        "status": "ok",
        "upstream_ready": report.upstream_ready,
        "delivery_ready": report.delivery_ready,
    }


@app.post("/chatfuel")
def chatfuel(req: ChatfuelTurnRequest, background_tasks: BackgroundTasks) -> Dict[str, Any]:
    turn = req.to_turn()
    if turn is None:
        logger.warning("Missing userId, can't send follow-up via broadcast.")
        return ACKNOWLEDGMENT

    logger.info(
        "Incoming turn: user_id=%s conversation_id=%s query_len=%s route=%s",
        turn.user_id,
        turn.conversation_id,
        len(turn.user_text),
        turn.route,
    )
    # Runs after the acknowledgment has been sent.
    background_tasks.add_task(process_turn, turn)
    return ACKNOWLEDGMENT


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
