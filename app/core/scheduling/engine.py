"""
Dialogue Engine - booking state machine.

Given a session and one inbound message, produces the reply and at most
one state transition. Escape rules run first (except at confirmation);
otherwise the handler for the current state decides.
"""

import difflib
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Protocol

from app.core.intelligence.extraction import (
    ExtractionAdapter,
    Resolved,
    TimeValue,
    get_extraction_adapter,
)
from app.core.intelligence.session.models import BookingData, SessionData
from app.core.intelligence.session.state import BookingState, can_transition
from app.core.scheduling.escapes import (
    EscapeAction,
    EscapeRule,
    is_cancellation,
    match_escape,
)
from app.core.scheduling.gateway import AvailabilityGateway, get_availability_gateway
from app.core.scheduling.models import BookingRequest, Instructor, Slot, number_slots
from app.core.scheduling.response import ResponseGenerator, get_response_generator

logger = logging.getLogger(__name__)


ACTION_OPTIONS = {
    "all_slots": ["1", "all slots", "all available", "see all", "show all", "any instructor", "all"],
    "instructor": ["2", "instructor", "specific instructor", "choose an instructor"],
}

TIME_CHECK_OPTIONS = {
    "see_all": ["1", "see all", "show all", "all slots", "list", "available slots", "all"],
    "specific_time": ["2", "specific time", "specific", "particular time", "pick a time", "choose a time"],
}

CONFIRM_OPTIONS = {
    "yes": [
        "yes", "y", "yeah", "yep", "yup", "sure", "confirm", "correct", "ok",
        "okay", "book it", "send it", "go ahead", "sounds good", "please do",
    ],
    "no": [
        "no", "n", "nope", "nah", "cancel", "don't", "do not", "stop", "wrong",
        "not", "never mind",
    ],
}

DIFFERENT_DATE_RE = re.compile(r"\b(?:different|another|other|new)\s+(?:date|day)\b")
SEE_ALL_RE = re.compile(r"\b(?:see|show|list)\s+(?:me\s+)?(?:all|the\s+slots|slots)\b|\ball\s+(?:slots|times)\b")


class InvalidTransitionError(Exception):
    """Raised when a handler attempts a transition the state table forbids."""
    pass


class KnowledgeResponder(Protocol):
    """Answers general questions about the school."""

    async def answer(self, question: str) -> str: ...


@dataclass
class EngineResult:
    """Outcome of one turn."""

    reply: str
    state: BookingState
    clear_session: bool = False  # Session is removed from the store


class DialogueEngine:
    """
    Booking dialogue state machine.

    Mutates the given session in place; the caller persists it, or
    deletes it when `clear_session` is set.
    """

    def __init__(
        self,
        extractor: Optional[ExtractionAdapter] = None,
        gateway: Optional[AvailabilityGateway] = None,
        responses: Optional[ResponseGenerator] = None,
        knowledge: Optional[KnowledgeResponder] = None,
    ):
        self._extractor = extractor
        self._gateway = gateway
        self._responses = responses or get_response_generator()
        self._knowledge = knowledge

        self._handlers: dict[
            BookingState, Callable[[SessionData, str], Awaitable[EngineResult]]
        ] = {
            BookingState.IDLE: self._handle_idle,
            BookingState.AWAITING_ACTION: self._handle_action,
            BookingState.AWAITING_INSTRUCTOR: self._handle_instructor,
            BookingState.AWAITING_DATE: self._handle_date,
            BookingState.AWAITING_TIME_CHECK: self._handle_time_check,
            BookingState.AWAITING_SLOT_SELECTION: self._handle_slot_selection,
            BookingState.AWAITING_SPECIFIC_TIME: self._handle_specific_time,
            BookingState.AWAITING_DATE_FOR_ALL_SLOTS: self._handle_date_for_all,
            BookingState.AWAITING_SLOT_SELECTION_FROM_ALL: self._handle_selection_from_all,
            BookingState.AWAITING_STUDENT_INFO: self._handle_student_info,
            BookingState.AWAITING_CONFIRMATION: self._handle_confirmation,
        }

    @property
    def extractor(self) -> ExtractionAdapter:
        if self._extractor is None:
            self._extractor = get_extraction_adapter()
        return self._extractor

    @property
    def gateway(self) -> AvailabilityGateway:
        if self._gateway is None:
            self._gateway = get_availability_gateway()
        return self._gateway

    @property
    def knowledge(self) -> KnowledgeResponder:
        if self._knowledge is None:
            from app.core.agent.faq import get_knowledge_responder

            self._knowledge = get_knowledge_responder()
        return self._knowledge

    # === Entry ===

    async def handle(self, session: SessionData, message: str) -> EngineResult:
        """Process one message for a live session.

        Raises:
            InvalidTransitionError: If a handler broke the state table
        """
        before = session.state

        if before not in (BookingState.IDLE, BookingState.AWAITING_CONFIRMATION):
            rule = match_escape(message)
            if rule is not None:
                logger.debug(f"Session {session.session_id}: escape rule '{rule.name}'")
                return await self._apply_escape(rule, session, message)

        handler = self._handlers.get(before)
        if handler is None:
            raise InvalidTransitionError(f"No handler for state {before.value}")

        result = await handler(session, message)

        if not can_transition(before, result.state):
            raise InvalidTransitionError(
                f"Invalid transition: {before.value} -> {result.state.value}"
            )
        return result

    def _transition(
        self,
        session: SessionData,
        new_state: BookingState,
        reply: str,
    ) -> EngineResult:
        """Move the session to `new_state` and build the turn result."""
        old_state = session.state
        if not can_transition(old_state, new_state):
            raise InvalidTransitionError(
                f"Invalid transition: {old_state.value} -> {new_state.value}"
            )

        if new_state != old_state:
            logger.info(
                f"Session {session.session_id}: {old_state.value} -> {new_state.value}"
            )
        session.state = new_state
        return EngineResult(reply=reply, state=new_state)

    def _stay(self, session: SessionData, reply: str) -> EngineResult:
        return EngineResult(reply=reply, state=session.state)

    def _end(self, session: SessionData, final_state: BookingState, reply: str) -> EngineResult:
        result = self._transition(session, final_state, reply)
        result.clear_session = True
        return result

    # === Escapes ===

    async def _apply_escape(
        self,
        rule: EscapeRule,
        session: SessionData,
        message: str,
    ) -> EngineResult:
        if rule.action == EscapeAction.CANCEL:
            return self._end(session, BookingState.CANCELLED, self._responses.restarted())

        if rule.action == EscapeAction.RESUME:
            return self._stay(session, await self.prompt_for(session))

        answer = await self.knowledge.answer(message)
        return self._stay(session, self._responses.with_resume_note(answer))

    async def prompt_for(self, session: SessionData) -> str:
        """The prompt for the session's current state, without side effects."""
        state = session.state
        data = session.data
        r = self._responses

        if state == BookingState.AWAITING_ACTION:
            return r.action_menu()
        if state == BookingState.AWAITING_INSTRUCTOR:
            instructors = await self.gateway.list_active_instructors()
            return r.instructor_list(instructors) if instructors else r.no_instructors()
        if state == BookingState.AWAITING_DATE:
            return r.date_prompt(data.instructor.name if data.instructor else None)
        if state == BookingState.AWAITING_TIME_CHECK:
            return r.time_check_prompt(data.date_formatted, data.instructor.name)
        if state == BookingState.AWAITING_SLOT_SELECTION:
            return r.format_slots(data.available_slots, data.date_formatted)
        if state == BookingState.AWAITING_SPECIFIC_TIME:
            return r.specific_time_prompt()
        if state == BookingState.AWAITING_DATE_FOR_ALL_SLOTS:
            return r.date_prompt()
        if state == BookingState.AWAITING_SLOT_SELECTION_FROM_ALL:
            return r.format_slots(
                data.all_available_slots, data.date_formatted, with_instructor=True
            )
        if state == BookingState.AWAITING_STUDENT_INFO:
            return r.missing_contact(not data.student_name, not data.student_phone)
        if state == BookingState.AWAITING_CONFIRMATION:
            return self._summary(data)
        return r.greeting()

    # === State handlers ===

    async def _handle_idle(self, session: SessionData, message: str) -> EngineResult:
        return self._transition(session, BookingState.AWAITING_ACTION, self._responses.greeting())

    async def _handle_action(self, session: SessionData, message: str) -> EngineResult:
        choice = await self.extractor.classify_intent(message, ACTION_OPTIONS)
        if not isinstance(choice, Resolved):
            return self._stay(session, self._responses.action_reprompt())

        if choice.value == "all_slots":
            return self._transition(
                session,
                BookingState.AWAITING_DATE_FOR_ALL_SLOTS,
                self._responses.date_prompt(),
            )

        instructors = await self.gateway.list_active_instructors()
        if not instructors:
            return self._stay(session, self._responses.no_instructors())
        return self._transition(
            session,
            BookingState.AWAITING_INSTRUCTOR,
            self._responses.instructor_list(instructors),
        )

    async def _handle_instructor(self, session: SessionData, message: str) -> EngineResult:
        instructors = await self.gateway.list_active_instructors()
        if not instructors:
            return self._stay(session, self._responses.no_instructors())

        instructor = match_instructor_name(message, instructors)
        if instructor is None:
            number = await self.extractor.extract_bounded_number(message, 1, len(instructors))
            if isinstance(number, Resolved):
                instructor = instructors[number.value - 1]

        if instructor is None:
            return self._stay(session, self._responses.instructor_reprompt(instructors))

        session.data.instructor = instructor
        return self._transition(
            session,
            BookingState.AWAITING_DATE,
            self._responses.date_prompt(instructor.name),
        )

    async def _handle_date(self, session: SessionData, message: str) -> EngineResult:
        resolved = await self.extractor.extract_date(message)
        if not isinstance(resolved, Resolved):
            return self._stay(session, self._responses.date_reprompt())

        value = resolved.value
        if value.date < self.extractor.today():
            return self._stay(session, self._responses.past_date(value.formatted))

        data = session.data
        data.date = value.iso
        data.date_formatted = value.formatted
        return self._transition(
            session,
            BookingState.AWAITING_TIME_CHECK,
            self._responses.time_check_prompt(value.formatted, data.instructor.name),
        )

    async def _handle_time_check(self, session: SessionData, message: str) -> EngineResult:
        stated = self.extractor.find_time(message)
        if isinstance(stated, Resolved):
            return await self._try_time(session, stated.value)

        choice = await self.extractor.classify_intent(message, TIME_CHECK_OPTIONS)
        if not isinstance(choice, Resolved):
            return self._stay(session, self._responses.time_check_reprompt())

        if choice.value == "see_all":
            return await self._show_instructor_slots(session)
        return self._transition(
            session,
            BookingState.AWAITING_SPECIFIC_TIME,
            self._responses.specific_time_prompt(),
        )

    async def _handle_slot_selection(self, session: SessionData, message: str) -> EngineResult:
        data = session.data
        slots = data.available_slots

        if DIFFERENT_DATE_RE.search(message.lower()):
            return self._back_to_date(session, BookingState.AWAITING_DATE)

        stated = self.extractor.find_time(message)
        if isinstance(stated, Resolved):
            slot = next((s for s in slots if s.start == stated.value.start), None)
            if slot is None:
                return self._stay(session, self._responses.slot_reprompt(len(slots)))
            return self._bind_slot(session, slot)

        number = await self.extractor.extract_bounded_number(message, 1, len(slots))
        if not isinstance(number, Resolved):
            return self._stay(session, self._responses.slot_reprompt(len(slots)))
        return self._bind_slot(session, slots[number.value - 1])

    async def _handle_specific_time(self, session: SessionData, message: str) -> EngineResult:
        lowered = message.lower()
        if DIFFERENT_DATE_RE.search(lowered):
            return self._back_to_date(session, BookingState.AWAITING_DATE)
        if SEE_ALL_RE.search(lowered):
            return await self._show_instructor_slots(session)

        resolved = await self.extractor.extract_time(message)
        if not isinstance(resolved, Resolved):
            resolved = await self.extractor.extract_time(message, lenient=True)
        if not isinstance(resolved, Resolved):
            return self._stay(session, self._responses.specific_time_reprompt())

        return await self._try_time(session, resolved.value)

    async def _handle_date_for_all(self, session: SessionData, message: str) -> EngineResult:
        resolved = await self.extractor.extract_date(message)
        if not isinstance(resolved, Resolved):
            return self._stay(session, self._responses.date_reprompt())

        value = resolved.value
        if value.date < self.extractor.today():
            return self._stay(session, self._responses.past_date(value.formatted))

        slots = number_slots(await self.gateway.list_free_slots_for_all(value.date))
        if not slots:
            return self._stay(session, self._responses.no_slots(value.formatted))

        data = session.data
        data.date = value.iso
        data.date_formatted = value.formatted
        data.all_available_slots = slots
        return self._transition(
            session,
            BookingState.AWAITING_SLOT_SELECTION_FROM_ALL,
            self._responses.format_slots(slots, value.formatted, with_instructor=True),
        )

    async def _handle_selection_from_all(
        self,
        session: SessionData,
        message: str,
    ) -> EngineResult:
        slots = session.data.all_available_slots

        if DIFFERENT_DATE_RE.search(message.lower()):
            return self._back_to_date(session, BookingState.AWAITING_DATE_FOR_ALL_SLOTS)

        stated = self.extractor.find_time(message)
        if isinstance(stated, Resolved):
            matching = [s for s in slots if s.start == stated.value.start]
            if len(matching) != 1:
                return self._stay(session, self._responses.slot_reprompt(len(slots)))
            return self._bind_slot(session, matching[0])

        number = await self.extractor.extract_bounded_number(message, 1, len(slots))
        if not isinstance(number, Resolved):
            return self._stay(session, self._responses.slot_reprompt(len(slots)))
        return self._bind_slot(session, slots[number.value - 1])

    async def _handle_student_info(self, session: SessionData, message: str) -> EngineResult:
        data = session.data
        contact = await self.extractor.extract_contact(message)

        # Partial details are kept and completed by later messages
        if isinstance(contact.name, Resolved):
            data.student_name = contact.name.value
        if isinstance(contact.phone, Resolved):
            data.student_phone = contact.phone.value

        if not (data.student_name and data.student_phone):
            return self._stay(
                session,
                self._responses.missing_contact(not data.student_name, not data.student_phone),
            )

        return self._transition(
            session,
            BookingState.AWAITING_CONFIRMATION,
            self._summary(data),
        )

    async def _handle_confirmation(self, session: SessionData, message: str) -> EngineResult:
        data = session.data

        if is_cancellation(message):
            answer = "no"
        else:
            choice = await self.extractor.classify_intent(message, CONFIRM_OPTIONS)
            # Anything that is not a clear yes cancels
            answer = choice.value if isinstance(choice, Resolved) else "no"

        if answer != "yes":
            return self._end(session, BookingState.CANCELLED, self._responses.cancelled())

        request = BookingRequest(
            instructor_email=data.instructor.email,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            student_name=data.student_name,
            student_phone=data.student_phone,
        )
        result = await self.gateway.submit_pending_booking(request)

        if not result.success:
            logger.warning(
                f"Session {session.session_id}: booking failed ({result.error_code})"
            )
            return self._stay(session, self._responses.booking_failed())

        return self._end(
            session,
            BookingState.COMPLETED,
            self._responses.booking_confirmed(
                data.instructor.name, data.date_formatted, data.start_time
            ),
        )

    # === Helpers ===

    async def _show_instructor_slots(self, session: SessionData) -> EngineResult:
        """List the chosen instructor's free slots, or send the user back to pick a date."""
        data = session.data
        day = _booking_day(data)
        slots = number_slots(await self.gateway.list_free_slots(data.instructor, day))

        if not slots:
            reply = self._responses.no_slots(data.date_formatted, data.instructor.name)
            self._clear_date(data)
            return self._transition(session, BookingState.AWAITING_DATE, reply)

        data.available_slots = slots
        return self._transition(
            session,
            BookingState.AWAITING_SLOT_SELECTION,
            self._responses.format_slots(slots, data.date_formatted),
        )

    async def _try_time(self, session: SessionData, value: TimeValue) -> EngineResult:
        """Check a requested time against hours and the instructor's calendar."""
        data = session.data

        if not self.gateway.fits_working_hours(value.start):
            return self._stay(session, self._responses.outside_hours(value.start))

        free = await self.gateway.is_time_free(
            data.instructor, _booking_day(data), value.start
        )
        if not free:
            return self._stay(
                session,
                self._responses.time_unavailable(value.start, data.date_formatted),
            )

        return self._bind_slot(session, Slot(start=value.start, end=value.end))

    def _bind_slot(self, session: SessionData, slot: Slot) -> EngineResult:
        data = session.data
        if slot.instructor is not None:
            data.instructor = slot.instructor
        data.start_time = slot.start
        data.end_time = slot.end
        return self._transition(
            session,
            BookingState.AWAITING_STUDENT_INFO,
            self._responses.student_info_prompt(slot.start, data.date_formatted),
        )

    def _back_to_date(self, session: SessionData, date_state: BookingState) -> EngineResult:
        self._clear_date(session.data)
        instructor = session.data.instructor
        name = instructor.name if date_state == BookingState.AWAITING_DATE and instructor else None
        if date_state == BookingState.AWAITING_DATE_FOR_ALL_SLOTS:
            session.data.instructor = None
        return self._transition(session, date_state, self._responses.date_prompt(name))

    def _clear_date(self, data: BookingData) -> None:
        data.date = None
        data.date_formatted = None
        data.start_time = None
        data.end_time = None
        data.available_slots = []
        data.all_available_slots = []

    def _summary(self, data: BookingData) -> str:
        return self._responses.confirm_booking(
            instructor_name=data.instructor.name,
            date_formatted=data.date_formatted,
            start=data.start_time,
            end=data.end_time,
            student_name=data.student_name,
            student_phone=data.student_phone,
        )


def _booking_day(data: BookingData) -> date:
    return date.fromisoformat(data.date)


def match_instructor_name(text: str, instructors: list[Instructor]) -> Optional[Instructor]:
    """Match free text to exactly one instructor by name.

    Tries the full name, then any first/last name, then close spellings.
    """
    lowered = " ".join(text.lower().split())
    words = re.findall(r"[a-z'-]+", lowered)

    full = [i for i in instructors if i.name.lower() in lowered]
    if len(full) == 1:
        return full[0]

    partial = [
        i for i in instructors
        if any(part in words for part in i.name.lower().split() if len(part) >= 3)
    ]
    if len(partial) == 1:
        return partial[0]

    fuzzy = [
        i for i in instructors
        if any(
            difflib.get_close_matches(part, words, n=1, cutoff=0.8)
            for part in i.name.lower().split()
            if len(part) >= 3
        )
    ]
    if len(fuzzy) == 1:
        return fuzzy[0]
    return None
