"""
Reply templates for the booking assistant.

Every reply the dialogue sends is built here so wording stays
consistent between first prompts and re-prompts.
"""

from typing import Optional

from app.config import settings
from app.core.scheduling.availability import parse_hhmm
from app.core.scheduling.models import Instructor, Slot


DATE_EXAMPLES = '"tomorrow", "next Monday", "after 3 days" or "March 15"'
TIME_EXAMPLES = '"2pm", "10:30 am" or "14:00"'
CONTACT_EXAMPLE = '"John Doe, 416-555-1234"'


def format_time(value: str) -> str:
    """Render HH:MM as a 12-hour clock time, e.g. '2:00 PM'."""
    parsed = parse_hhmm(value)
    hour = parsed.hour % 12 or 12
    suffix = "PM" if parsed.hour >= 12 else "AM"
    return f"{hour}:{parsed.minute:02d} {suffix}"


class ResponseGenerator:
    """Template replies for each step of the booking dialogue."""

    # === Entry ===

    def greeting(self, school_name: Optional[str] = None) -> str:
        name = school_name or settings.school_name
        return (
            f"Hi! I can book a driving lesson with {name} for you.\n"
            f"{self.action_menu()}"
        )

    def action_menu(self) -> str:
        return (
            "How would you like to start?\n"
            "1. See all available slots\n"
            "2. Choose an instructor"
        )

    def action_reprompt(self) -> str:
        return f"Sorry, I didn't catch that. Please reply 1 or 2.\n{self.action_menu()}"

    def welcome(self, school_name: Optional[str] = None) -> str:
        name = school_name or settings.school_name
        return (
            f"Hi! I'm the booking assistant for {name}. "
            'Say "book a lesson" whenever you want to schedule one.'
        )

    def empty_input(self) -> str:
        return "Please type a message so I can help you."

    # === Instructors ===

    def instructor_list(self, instructors: list[Instructor]) -> str:
        """Numbered instructor list."""
        lines = ["Which instructor would you like?"]
        for i, instructor in enumerate(instructors, 1):
            lines.append(f"{i}. {instructor.name}")
        lines.append("\nReply with a number or a name.")
        return "\n".join(lines)

    def instructor_reprompt(self, instructors: list[Instructor]) -> str:
        return f"Sorry, I couldn't match that to an instructor.\n{self.instructor_list(instructors)}"

    def no_instructors(self) -> str:
        return (
            "I'm sorry, I can't reach the instructor list right now. "
            "Please try again in a few minutes."
        )

    # === Dates ===

    def date_prompt(self, instructor_name: Optional[str] = None) -> str:
        lead = f"Great, {instructor_name} it is! " if instructor_name else ""
        return f"{lead}Which date would you like? For example {DATE_EXAMPLES}."

    def date_reprompt(self) -> str:
        return f"Sorry, I couldn't understand that date. Try {DATE_EXAMPLES}."

    def past_date(self, date_formatted: str) -> str:
        return f"{date_formatted} has already passed. Please choose today or a later date."

    # === Times and slots ===

    def time_check_prompt(self, date_formatted: str, instructor_name: str) -> str:
        return (
            f"Lessons with {instructor_name} on {date_formatted}. "
            "If you already have a time in mind, just tell me. Otherwise:\n"
            "1. See all available slots\n"
            "2. Pick a specific time"
        )

    def time_check_reprompt(self) -> str:
        return (
            "Please reply 1 to see all available slots, 2 to pick a specific time, "
            f"or just tell me a time like {TIME_EXAMPLES}."
        )

    def format_slots(
        self,
        slots: list[Slot],
        date_formatted: str,
        with_instructor: bool = False,
    ) -> str:
        """Numbered slot list, using each slot's display index."""
        lines = [f"Available slots on {date_formatted}:"]
        for slot in slots:
            label = f"{format_time(slot.start)} - {format_time(slot.end)}"
            if with_instructor and slot.instructor:
                label = f"{label} with {slot.instructor.name}"
            lines.append(f"{slot.index}. {label}")
        lines.append(f"\nReply with a number from 1 to {len(slots)}.")
        return "\n".join(lines)

    def no_slots(self, date_formatted: str, instructor_name: Optional[str] = None) -> str:
        who = f" with {instructor_name}" if instructor_name else ""
        return (
            f"I'm sorry, there are no free slots{who} on {date_formatted}. "
            "Please choose a different date."
        )

    def slot_reprompt(self, count: int) -> str:
        return f"Please choose a slot number between 1 and {count}."

    def specific_time_prompt(self) -> str:
        return f"What time would you like? For example {TIME_EXAMPLES}."

    def specific_time_reprompt(self) -> str:
        return (
            f"Sorry, I couldn't understand that time. Try {TIME_EXAMPLES}, "
            'or say "see all" to list the free slots.'
        )

    def outside_hours(self, start: str) -> str:
        return (
            f"{format_time(start)} is outside our lesson hours "
            f"({format_time(f'{settings.working_hours_start:02d}:00')} to "
            f"{format_time(f'{settings.working_hours_end:02d}:00')}). "
            "Please pick another time."
        )

    def time_unavailable(self, start: str, date_formatted: str) -> str:
        return (
            f"{format_time(start)} on {date_formatted} isn't available. "
            'Please pick another time, or say "see all" to list the free slots.'
        )

    # === Student details ===

    def student_info_prompt(self, start: str, date_formatted: str) -> str:
        return (
            f"{format_time(start)} on {date_formatted} is available! "
            f"Please send your full name and phone number, e.g. {CONTACT_EXAMPLE}."
        )

    def missing_contact(self, need_name: bool, need_phone: bool) -> str:
        if need_name and need_phone:
            return f"Please send your full name and phone number, e.g. {CONTACT_EXAMPLE}."
        if need_name:
            return "Thanks! Could you also send your full name (first and last)?"
        return "Thanks! What's the best 10-digit phone number to reach you?"

    # === Confirmation ===

    def confirm_booking(
        self,
        instructor_name: str,
        date_formatted: str,
        start: str,
        end: str,
        student_name: str,
        student_phone: str,
    ) -> str:
        """Booking summary awaiting a yes/no."""
        return "\n".join([
            "Please confirm your lesson:",
            f"- Instructor: {instructor_name}",
            f"- Date: {date_formatted}",
            f"- Time: {format_time(start)} - {format_time(end)}",
            f"- Student: {student_name}",
            f"- Phone: {student_phone}",
            "\nShall I send this request? (yes/no)",
        ])

    def booking_confirmed(self, instructor_name: str, date_formatted: str, start: str) -> str:
        return (
            f"Your lesson request with {instructor_name} on {date_formatted} "
            f"at {format_time(start)} has been sent! The instructor will approve it "
            "shortly. Thanks for booking with us."
        )

    def booking_failed(self) -> str:
        return (
            "I'm sorry, I couldn't submit your booking just now. "
            'Your details are saved, so reply "yes" to try again or "no" to cancel.'
        )

    def cancelled(self) -> str:
        return "No problem, your booking has been cancelled."

    def restarted(self) -> str:
        return (
            "Okay, I've cancelled that booking and cleared your details. "
            'Say "book a lesson" whenever you want to start again.'
        )

    # === Out-of-band ===

    def with_resume_note(self, answer: str) -> str:
        return f'{answer}\n\nWhenever you\'re ready, reply "continue" to pick up your booking.'

    def apology(self) -> str:
        return "I'm sorry, something went wrong on our side. Please try that again."


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
