"""Tagged extraction results."""

from dataclasses import dataclass, field
from datetime import date
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """Extraction produced a usable value."""

    value: T


@dataclass(frozen=True)
class Unresolved:
    """Extraction produced nothing usable; `reason` is for logs only."""

    reason: str = "no_match"


ExtractionResult = Union[Resolved[T], Unresolved]


@dataclass(frozen=True)
class DateValue:
    """A resolved calendar date with its human-readable echo."""

    date: date
    formatted: str

    @property
    def iso(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class TimeValue:
    """A lesson start and end, HH:MM 24-hour."""

    start: str
    end: str


@dataclass(frozen=True)
class ContactResult:
    """Student name and phone, each resolved independently."""

    name: ExtractionResult[str] = field(default_factory=Unresolved)
    phone: ExtractionResult[str] = field(default_factory=Unresolved)

    @property
    def complete(self) -> bool:
        """Both name and phone resolved."""
        return isinstance(self.name, Resolved) and isinstance(self.phone, Resolved)
