"""
Dispatcher

Per-turn orchestrator. Serialises turns per session, routes idle
sessions through the Intent Router, hands booking turns to the Dialogue
Engine and persists or removes the session afterwards.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from app.core.agent.faq import KnowledgeResponder, get_knowledge_responder
from app.core.agent.router import IntentRouter, Route, get_router
from app.core.intelligence.session.manager import (
    SessionBusyError,
    SessionManager,
    get_session_manager,
)
from app.core.intelligence.session.models import SessionData
from app.core.intelligence.session.state import BookingState
from app.core.scheduling.engine import DialogueEngine, EngineResult
from app.core.scheduling.response import ResponseGenerator, get_response_generator

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """Reply to one inbound message."""

    reply: str
    session_id: str
    state: str

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "reply": self.reply,
            "sessionId": self.session_id,
            "state": self.state,
        }


class Dispatcher:
    """
    Main orchestrator for chat turns.

    Flow:
    1. Empty input -> prompt, nothing stored
    2. Acquire the session's turn lock
    3. Load or create the session
    4. Idle session -> Intent Router (booking, knowledge or cancel)
       otherwise -> Dialogue Engine
    5. Save the session; delete it when the booking ended or it is still idle
    6. Any unexpected error -> apology; stored session left unchanged
    """

    def __init__(
        self,
        engine: Optional[DialogueEngine] = None,
        router: Optional[IntentRouter] = None,
        knowledge: Optional[KnowledgeResponder] = None,
        session_manager: Optional[SessionManager] = None,
        responses: Optional[ResponseGenerator] = None,
    ):
        """Initialize dispatcher with lazy-loaded components."""
        self._knowledge = knowledge
        self._engine = engine
        self._router = router or get_router()
        self._session_mgr = session_manager
        self._responses = responses or get_response_generator()

    # === Lazy Initialization ===

    def _get_knowledge(self) -> KnowledgeResponder:
        if self._knowledge is None:
            self._knowledge = get_knowledge_responder()
        return self._knowledge

    def _get_engine(self) -> DialogueEngine:
        if self._engine is None:
            self._engine = DialogueEngine(knowledge=self._get_knowledge())
        return self._engine

    async def _get_session_manager(self) -> SessionManager:
        if self._session_mgr is None:
            self._session_mgr = await get_session_manager()
        return self._session_mgr

    # === Main Processing ===

    async def process(
        self,
        message: Optional[str],
        session_id: Optional[str] = None,
    ) -> ChatReply:
        """
        Process one chat message.

        Args:
            message: User's message (may be empty)
            session_id: Conversation ID; a new one is issued if omitted

        Returns:
            ChatReply; never raises
        """
        session_id = session_id or str(uuid4())
        text = (message or "").strip()

        if self._router.route(text).route == Route.EMPTY:
            return ChatReply(
                reply=self._responses.empty_input(),
                session_id=session_id,
                state=await self._stored_state(session_id),
            )

        try:
            session_mgr = await self._get_session_manager()
            async with session_mgr.turn(session_id):
                return await self._process_turn(session_mgr, session_id, text)

        except SessionBusyError:
            logger.warning(f"Session {session_id} busy, turn rejected")
            return ChatReply(
                reply="I'm still working on your previous message. Please send that again in a moment.",
                session_id=session_id,
                state=await self._stored_state(session_id),
            )

        except Exception as e:
            logger.exception(f"Error processing message: {e}")
            return ChatReply(
                reply=self._responses.apology(),
                session_id=session_id,
                state="error",
            )

    async def _process_turn(
        self,
        session_mgr: SessionManager,
        session_id: str,
        text: str,
    ) -> ChatReply:
        session = await session_mgr.get(session_id)
        stored = session is not None
        if session is None:
            session = SessionData(session_id=session_id, state=BookingState.IDLE)
        before = session.state

        try:
            result = await self._dispatch(session, text)
        except Exception as e:
            # Nothing was written; the stored session is the pre-turn one
            logger.exception(f"Session {session_id}: turn failed in {before.value}: {e}")
            return ChatReply(
                reply=self._responses.apology(),
                session_id=session_id,
                state=before.value,
            )

        if result.clear_session:
            await session_mgr.delete(session_id)
            logger.info(f"Session {session_id} ended ({result.state.value})")
        elif result.state == BookingState.IDLE:
            # Nothing collected yet; idle sessions are not kept
            if stored:
                await session_mgr.delete(session_id)
        else:
            session.message_count += 1
            await session_mgr.save(session)

        return ChatReply(reply=result.reply, session_id=session_id, state=result.state.value)

    async def _dispatch(self, session: SessionData, text: str) -> EngineResult:
        """Route idle sessions; everything else goes to the engine."""
        if session.state != BookingState.IDLE:
            return await self._get_engine().handle(session, text)

        route = self._router.route(text)

        if route.route == Route.CANCEL:
            return EngineResult(
                reply=self._responses.welcome(),
                state=BookingState.IDLE,
                clear_session=True,
            )

        if route.is_booking:
            return await self._get_engine().handle(session, text)

        answer = await self._get_knowledge().answer(text)
        return EngineResult(reply=answer, state=BookingState.IDLE)

    async def _stored_state(self, session_id: str) -> str:
        """State of the stored session, or idle if there is none."""
        session = await self.get_session(session_id)
        return session.state.value if session else BookingState.IDLE.value

    # === Session Management (diagnostics) ===

    async def get_session(self, session_id: str) -> Optional[SessionData]:
        """Get session by ID."""
        session_mgr = await self._get_session_manager()
        return await session_mgr.get(session_id)

    async def list_sessions(self) -> list[str]:
        """IDs of all live sessions."""
        session_mgr = await self._get_session_manager()
        return await session_mgr.list_session_ids()

    async def delete_session(self, session_id: str) -> bool:
        """Remove a session."""
        session_mgr = await self._get_session_manager()
        return await session_mgr.delete(session_id)


# Singleton
_dispatcher: Optional[Dispatcher] = None


def get_dispatcher() -> Dispatcher:
    """Get singleton Dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher()
    return _dispatcher
