"""
External calendar integration.

``CalendarProvider`` is the contract the booking flow depends on;
``GoogleCalendarProvider`` implements it on the Google Calendar v3 API.
The Google client library is synchronous, so calls run in a worker thread.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from scheduler_app.core.config import Settings
from scheduler_app.schemas.appointment import CalendarEventDetails, CalendarEventResult
from scheduler_app.schemas.availability import BusyInterval

logger = structlog.get_logger(__name__)


class CalendarError(Exception):
    """Raised when the calendar provider rejects or fails a request."""


@dataclass(frozen=True)
class CalendarCredential:
    access_token: str
    refresh_token: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> Optional["CalendarCredential"]:
        """Credential for a user record, or None if no calendar is linked."""
        if user is None or not user.calendar_access_token:
            return None
        return cls(
            access_token=user.calendar_access_token,
            refresh_token=user.calendar_refresh_token,
        )


class CalendarProvider(ABC):
    """Operations the service needs from an external calendar."""

    @abstractmethod
    async def create_event(
        self, credential: CalendarCredential, details: CalendarEventDetails
    ) -> CalendarEventResult:
        """
        Create an event in the credential owner's calendar.

        Creating the same ``details.event_id`` twice must return the existing
        event instead of a duplicate.

        Raises:
            CalendarError: if the provider call fails
        """

    @abstractmethod
    async def get_free_busy(
        self, credential: CalendarCredential, time_min: datetime, time_max: datetime
    ) -> list[BusyInterval]:
        """Busy intervals of the owner's calendar within ``[time_min, time_max)``."""

    @abstractmethod
    async def delete_event(self, credential: CalendarCredential, event_id: str) -> bool:
        """Delete an event. Returns False if it no longer exists."""


class GoogleCalendarProvider(CalendarProvider):
    """Google Calendar v3 implementation."""

    def __init__(self, settings: Settings):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.token_uri = settings.GOOGLE_TOKEN_URI
        self.calendar_id = settings.GOOGLE_CALENDAR_ID

    def _get_calendar_service(self, credential: CalendarCredential):
        """Build Google Calendar API service client."""
        credentials = Credentials(
            token=credential.access_token,
            refresh_token=credential.refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        return build("calendar", "v3", credentials=credentials, cache_discovery=False)

    @staticmethod
    def _to_result(event: dict) -> CalendarEventResult:
        entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
        video = next(
            (ep for ep in entry_points if ep.get("entryPointType") == "video"),
            entry_points[0] if entry_points else None,
        )
        return CalendarEventResult(
            event_id=event["id"],
            meeting_link=(video or {}).get("uri") or event.get("hangoutLink"),
        )

    def _create_event_sync(
        self, credential: CalendarCredential, details: CalendarEventDetails
    ) -> CalendarEventResult:
        service = self._get_calendar_service(credential)

        event = {
            "id": details.event_id,
            "summary": details.summary,
            "description": details.description or "",
            "start": {
                "dateTime": details.start.isoformat(),
                "timeZone": details.timezone,
            },
            "end": {
                "dateTime": details.end.isoformat(),
                "timeZone": details.timezone,
            },
            "attendees": [{"email": email} for email in details.attendees],
        }
        if details.conference_request_id:
            event["conferenceData"] = {
                "createRequest": {
                    "requestId": details.conference_request_id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }

        try:
            created_event = (
                service.events()
                .insert(
                    calendarId=self.calendar_id,
                    body=event,
                    conferenceDataVersion=1,
                )
                .execute()
            )
            logger.info("Created Google Calendar event", event_id=created_event.get("id"))
            return self._to_result(created_event)
        except HttpError as e:
            if e.resp.status == 409:
                # Created by an earlier attempt
                existing = (
                    service.events()
                    .get(calendarId=self.calendar_id, eventId=details.event_id)
                    .execute()
                )
                logger.info(
                    "Google Calendar event already exists", event_id=details.event_id
                )
                return self._to_result(existing)
            raise CalendarError(f"Failed to create calendar event: {e}") from e
        except GoogleAuthError as e:
            raise CalendarError(f"Calendar credentials rejected: {e}") from e

    def _get_free_busy_sync(
        self, credential: CalendarCredential, time_min: datetime, time_max: datetime
    ) -> list[BusyInterval]:
        service = self._get_calendar_service(credential)
        try:
            response = (
                service.freebusy()
                .query(
                    body={
                        "timeMin": time_min.isoformat(),
                        "timeMax": time_max.isoformat(),
                        "items": [{"id": self.calendar_id}],
                    }
                )
                .execute()
            )
        except (HttpError, GoogleAuthError) as e:
            raise CalendarError(f"Failed to fetch free/busy data: {e}") from e

        busy = response.get("calendars", {}).get(self.calendar_id, {}).get("busy", [])
        return [BusyInterval(start=b["start"], end=b["end"]) for b in busy]

    def _delete_event_sync(self, credential: CalendarCredential, event_id: str) -> bool:
        service = self._get_calendar_service(credential)
        try:
            service.events().delete(
                calendarId=self.calendar_id, eventId=event_id
            ).execute()
            logger.info("Deleted Google Calendar event", event_id=event_id)
            return True
        except HttpError as e:
            if e.resp.status in (404, 410):
                return False
            raise CalendarError(f"Failed to delete calendar event: {e}") from e
        except GoogleAuthError as e:
            raise CalendarError(f"Calendar credentials rejected: {e}") from e

    async def create_event(
        self, credential: CalendarCredential, details: CalendarEventDetails
    ) -> CalendarEventResult:
        return await asyncio.to_thread(self._create_event_sync, credential, details)

    async def get_free_busy(
        self, credential: CalendarCredential, time_min: datetime, time_max: datetime
    ) -> list[BusyInterval]:
        return await asyncio.to_thread(
            self._get_free_busy_sync, credential, time_min, time_max
        )

    async def delete_event(self, credential: CalendarCredential, event_id: str) -> bool:
        return await asyncio.to_thread(self._delete_event_sync, credential, event_id)
