"""
Extraction module.

Deterministic parsers backed by the Claude oracle, returning
Resolved/Unresolved results.
"""

from .types import (
    ContactResult,
    DateValue,
    ExtractionResult,
    Resolved,
    TimeValue,
    Unresolved,
)
from .extractor import ExtractionAdapter, get_extraction_adapter

__all__ = [
    # Types
    "ContactResult",
    "DateValue",
    "ExtractionResult",
    "Resolved",
    "TimeValue",
    "Unresolved",
    # Adapter
    "ExtractionAdapter",
    "get_extraction_adapter",
]
