"""
Agent Module

Turn orchestration for the booking assistant:
- Router: keyword gate for idle sessions
- Knowledge responder: Claude answers to general questions
- Dispatch: per-turn orchestrator (lock, route, engine, persist)
"""

from app.core.agent.router import IntentRouter, Route, RouteResult, get_router
from app.core.agent.faq import KnowledgeResponder, get_knowledge_responder
from app.core.agent.dispatch import ChatReply, Dispatcher, get_dispatcher

__all__ = [
    # Router
    "IntentRouter",
    "Route",
    "RouteResult",
    "get_router",
    # Knowledge
    "KnowledgeResponder",
    "get_knowledge_responder",
    # Dispatch
    "ChatReply",
    "Dispatcher",
    "get_dispatcher",
]
