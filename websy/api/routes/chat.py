"""Chat API routes."""

import logging
import time

from fastapi import APIRouter
from pydantic import BaseModel, Field

from websy.api.deps import Orchestrator
from websy.models.chat import Attachment, ChatMessage
from websy.models.key_pool import PoolTelemetry

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""

    message: str = Field(..., description="User's message")
    history: list[ChatMessage] = Field(default_factory=list, description="Prior messages")
    attachments: list[Attachment] = Field(default_factory=list)
    context_type: str = Field("general", description="Page the chat is scoped to")
    context_id: str | None = None
    actor_id: str = Field("system", description="User recorded on created records")


class ChatResponse(BaseModel):
    """Response body for the chat endpoint."""

    text: str
    telemetry: PoolTelemetry
    elapsed_ms: float


@router.post("", response_model=ChatResponse)
async def chat(orchestrator: Orchestrator, request: ChatRequest) -> ChatResponse:
    """Send a message and receive the assistant's answer."""
    started = time.perf_counter()
    result = await orchestrator.send_message(
        request.message,
        history=request.history,
        attachments=request.attachments,
        context_type=request.context_type,
        context_id=request.context_id,
        actor_id=request.actor_id,
    )
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
    logger.info(
        "Chat message processed",
        extra={"context_type": request.context_type, "elapsed_ms": elapsed_ms},
    )
    return ChatResponse(text=result.text, telemetry=result.telemetry, elapsed_ms=elapsed_ms)


@router.get("/pool", response_model=PoolTelemetry)
async def pool_status(orchestrator: Orchestrator) -> PoolTelemetry:
    """Current key pool telemetry."""
    return orchestrator.telemetry()


@router.post("/pool/reset", response_model=PoolTelemetry)
async def reset_pool(orchestrator: Orchestrator) -> PoolTelemetry:
    """Manually reset the key pool to its first credential."""
    telemetry = orchestrator.reset_pool()
    logger.info("Key pool reset requested via API")
    return telemetry
