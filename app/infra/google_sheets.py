"""
Google Sheets instructor directory.

The directory sheet has one row per instructor:
name | email | calendar id | active (YES/NO)
"""

import asyncio
import logging
import time
from typing import Any, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from app.config import settings
from app.core.scheduling.gateway import CalendarBackendError
from app.core.scheduling.models import Instructor
from app.infra.google_calendar import GOOGLE_API_ERRORS

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


def row_to_instructor(row: list[str]) -> Optional[Instructor]:
    """Convert a sheet row; rows without name or email are skipped."""
    cells = [cell.strip() for cell in row] + [""] * (4 - len(row))
    name, email, calendar_id, active = cells[:4]
    if not name or not email:
        return None
    return Instructor(
        name=name,
        email=email,
        calendar_id=calendar_id,
        active=active.upper() == "YES",
    )


class SheetsInstructorDirectory:
    """Instructor directory read from a spreadsheet, cached briefly."""

    def __init__(
        self,
        service: Any = None,
        spreadsheet_id: Optional[str] = None,
        sheet_range: Optional[str] = None,
        cache_seconds: Optional[int] = None,
    ):
        self._service = service
        self._spreadsheet_id = spreadsheet_id or settings.instructors_spreadsheet_id
        self._range = sheet_range or settings.instructors_range
        self._cache_seconds = (
            settings.directory_cache_seconds if cache_seconds is None else cache_seconds
        )
        self._cached: Optional[list[Instructor]] = None
        self._cached_at = 0.0

    def _get_service(self) -> Any:
        if self._service is None:
            credentials = service_account.Credentials.from_service_account_file(
                settings.google_service_account_file, scopes=SCOPES
            )
            self._service = build(
                "sheets", "v4", credentials=credentials, cache_discovery=False
            )
        return self._service

    async def list_instructors(self) -> list[Instructor]:
        """All directory rows in sheet order, active or not."""
        if (
            self._cached is not None
            and time.monotonic() - self._cached_at < self._cache_seconds
        ):
            return list(self._cached)

        def _read() -> list[list[str]]:
            response = self._get_service().spreadsheets().values().get(
                spreadsheetId=self._spreadsheet_id,
                range=self._range,
            ).execute()
            return response.get("values", [])

        try:
            rows = await asyncio.to_thread(_read)
        except GOOGLE_API_ERRORS as e:
            raise CalendarBackendError(f"Instructor sheet read failed: {e}") from e

        instructors = [
            instructor
            for instructor in (row_to_instructor(row) for row in rows)
            if instructor is not None
        ]
        logger.debug(f"Loaded {len(instructors)} instructors from sheet")

        self._cached = instructors
        self._cached_at = time.monotonic()
        return list(instructors)
