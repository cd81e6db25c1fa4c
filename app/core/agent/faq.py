"""
Knowledge responder.

Answers general questions about the driving school (courses, prices,
policies) with Claude. Used for idle-session questions and for the
question escape mid-booking.
"""

import logging
from typing import Optional

from app.config import settings
from app.infra.claude import ClaudeClient, ClaudeClientError, get_claude_client

logger = logging.getLogger(__name__)


FAQ_SYSTEM_PROMPT = """You are the front desk assistant for {school_name}, a driving school.

YOUR PERSONALITY:
- Warm, brief and practical
- If you know the answer, give it directly
- If you don't know something, say so and suggest calling the office

WHAT YOU CAN ANSWER:
- Lesson length and what a lesson covers
- Course packages and road test preparation
- Lesson hours and booking process
- Cancellation and rescheduling policy
- What to bring to a lesson

SCHOOL INFORMATION:
- Lessons are {lesson_minutes} minutes, one-on-one in a dual-control car
- Lesson hours: every day, {start_hour}:00 to {end_hour}:00
- Booked lessons are pending until the instructor approves them
- Bring your learner's permit and glasses or contacts if you need them
- Please cancel at least 24 hours in advance

HOW TO RESPOND:
- One to three sentences, plain text, no lists
- Never invent prices or availability; say the office can confirm exact prices
- If the answer naturally leads to booking, mention they can say "book a lesson"
"""

FALLBACK_ANSWER = (
    "I'm not able to answer that right now, but our office team can help. "
    'If you\'d like to book a lesson, just say "book a lesson".'
)


class KnowledgeResponder:
    """Claude-backed answers to general questions."""

    def __init__(self, claude_client: Optional[ClaudeClient] = None):
        """Initialize responder.

        Args:
            claude_client: Optional Claude client (for testing)
        """
        self._client = claude_client

    async def _get_client(self) -> ClaudeClient:
        if self._client is None:
            self._client = await get_claude_client()
        return self._client

    def get_system_prompt(self) -> str:
        return FAQ_SYSTEM_PROMPT.format(
            school_name=settings.school_name,
            lesson_minutes=settings.lesson_duration_minutes,
            start_hour=settings.working_hours_start,
            end_hour=settings.working_hours_end,
        )

    async def answer(self, question: str) -> str:
        """Answer a question; never raises."""
        try:
            client = await self._get_client()
            response = await client.generate(
                prompt=question,
                system_prompt=self.get_system_prompt(),
                model=settings.claude_knowledge_model,
                max_tokens=300,
                temperature=0.3,
            )
        except ClaudeClientError as e:
            logger.warning(f"Knowledge responder failed: {e}")
            return FALLBACK_ANSWER
        except ValueError as e:
            logger.warning(f"Knowledge responder unavailable: {e}")
            return FALLBACK_ANSWER

        answer = response.content.strip()
        return answer or FALLBACK_ANSWER


# Singleton
_responder: Optional[KnowledgeResponder] = None


def get_knowledge_responder() -> KnowledgeResponder:
    """Get singleton KnowledgeResponder."""
    global _responder
    if _responder is None:
        _responder = KnowledgeResponder()
    return _responder
