"""
Chat API Endpoint.

Handles conversational messages for the booking assistant, plus
read-only session diagnostics.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.core.agent.dispatch import ChatReply, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


class ChatRequest(BaseModel):
    """Chat message request."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="User's message",
        examples=["I'd like to book a driving lesson"],
    )
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        description="Existing session ID for conversation continuity",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )


class ChatResponse(BaseModel):
    """Chat response."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str = Field(..., description="Assistant's reply")
    session_id: str = Field(
        ...,
        serialization_alias="sessionId",
        description="Session ID for continuing the conversation",
    )
    state: str = Field(..., description="Booking state after this turn")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


def _require_diagnostics() -> None:
    if not settings.diagnostics_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )


@router.post(
    "",
    response_model=ChatResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    summary="Send a chat message",
    description="Send a message to the booking assistant and get a reply.",
    responses={
        200: {"description": "Successful response"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
async def chat(request: ChatRequest) -> ChatResponse:
    """
    Process a chat message.

    - Blank messages get a fixed prompt (still 200)
    - A new sessionId is issued when none is sent
    - The dispatcher never raises; failures come back as an apology
    """
    dispatcher = get_dispatcher()
    result: ChatReply = await dispatcher.process(
        message=request.message,
        session_id=request.session_id,
    )

    return ChatResponse(
        reply=result.reply,
        session_id=result.session_id,
        state=result.state,
    )


@router.get(
    "/sessions",
    response_model=dict,
    summary="List live sessions",
    description="IDs of all sessions that have not expired. Diagnostics only.",
    include_in_schema=settings.diagnostics_enabled,
)
async def list_sessions() -> dict:
    """List live session IDs."""
    _require_diagnostics()
    dispatcher = get_dispatcher()
    session_ids = await dispatcher.list_sessions()
    return {"sessions": session_ids, "count": len(session_ids)}


@router.get(
    "/session/{session_id}",
    response_model=dict,
    summary="Get session data",
    description="Retrieve the current state of a conversation session.",
    include_in_schema=settings.diagnostics_enabled,
    responses={
        200: {"description": "Session data"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session(session_id: str) -> dict:
    """Get session information."""
    _require_diagnostics()
    dispatcher = get_dispatcher()
    session = await dispatcher.get_session(session_id)

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    return session.to_dict()


@router.delete(
    "/session/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a session",
    description="Drop a conversation session and everything collected in it.",
    include_in_schema=settings.diagnostics_enabled,
)
async def delete_session(session_id: str) -> None:
    """Remove a session."""
    _require_diagnostics()
    dispatcher = get_dispatcher()
    deleted = await dispatcher.delete_session(session_id)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
