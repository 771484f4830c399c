"""
Google Calendar Service

Thin wrapper around the Calendar v3 API for the user's primary calendar.
Supports both full listing over a time window and incremental listing
from a sync token, following page tokens until the change log is drained.

Write operations retry rate limits and server errors with backoff.
"""

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ...exceptions import SyncTokenExpiredError, ValidationError
from ...oauth.services.token_refresh import get_valid_access_token
from ...utils.retry_utils import get_status_code, retry_with_backoff
from ...utils.timezone_utils import to_iso, utc_now
from .event_mapper import CalendarEvent, google_to_local, local_to_google

logger = logging.getLogger(__name__)

CALENDAR_ID = 'primary'
DEFAULT_MAX_RESULTS = 250
FULL_SYNC_DAYS = 90


@dataclass
class EventPage:
    """Result of listing events"""
    events: List[Dict[str, Any]] = field(default_factory=list)
    cancelled_ids: List[str] = field(default_factory=list)
    next_sync_token: Optional[str] = None


def get_calendar_client(user_id: str):
    """Calendar API client authorized with the user's current access token"""
    credentials = Credentials(token=get_valid_access_token(user_id))
    return build('calendar', 'v3', credentials=credentials, cache_discovery=False)


def list_events(user_id: str,
                time_min: Optional[str] = None,
                time_max: Optional[str] = None,
                max_results: int = DEFAULT_MAX_RESULTS,
                sync_token: Optional[str] = None) -> EventPage:
    """
    List events from the primary calendar.

    With a sync token only changes since that token are returned, including
    cancelled events. The Calendar API does not accept a window or ordering
    together with a sync token, so those are only sent for full listings.

    Returns:
        EventPage with the raw Google events, ids of cancelled events and the
        sync token for the next incremental listing

    Raises:
        SyncTokenExpiredError: Google no longer accepts the sync token (410)
    """
    service = get_calendar_client(user_id)

    params: Dict[str, Any] = {
        'calendarId': CALENDAR_ID,
        'maxResults': max_results,
        'singleEvents': True,
    }
    if sync_token:
        params['syncToken'] = sync_token
    else:
        params['orderBy'] = 'startTime'
        if time_min:
            params['timeMin'] = time_min
        if time_max:
            params['timeMax'] = time_max

    page = EventPage()
    page_token = None

    while True:
        request_params = dict(params, pageToken=page_token) if page_token else params
        try:
            response = retry_with_backoff(lambda: service.events().list(**request_params).execute())
        except HttpError as e:
            if get_status_code(e) == 410:
                logger.warning(f"Sync token expired for user {user_id}, full sync required")
                raise SyncTokenExpiredError() from e
            raise

        for item in response.get('items', []):
            if item.get('status') == 'cancelled':
                if item.get('id'):
                    page.cancelled_ids.append(item['id'])
                continue
            if not item.get('id') or not item.get('summary'):
                continue
            page.events.append(item)

        page_token = response.get('nextPageToken')
        if not page_token:
            page.next_sync_token = response.get('nextSyncToken')
            break

    logger.info(
        f"Listed {len(page.events)} events and {len(page.cancelled_ids)} cancellations "
        f"for user {user_id} ({'incremental' if sync_token else 'full'})"
    )
    return page


def full_sync(user_id: str) -> EventPage:
    """List events from the last 90 days onward"""
    time_min = to_iso(utc_now() - datetime.timedelta(days=FULL_SYNC_DAYS))
    return list_events(user_id, time_min=time_min, max_results=DEFAULT_MAX_RESULTS)


def get_event(user_id: str, event_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a single event, or None if it does not exist"""
    service = get_calendar_client(user_id)
    try:
        return retry_with_backoff(
            lambda: service.events().get(calendarId=CALENDAR_ID, eventId=event_id).execute()
        )
    except HttpError as e:
        if get_status_code(e) == 404:
            return None
        raise


def create_event(user_id: str, event: CalendarEvent) -> CalendarEvent:
    """Create event in Google and return it mapped back with its Google id"""
    service = get_calendar_client(user_id)
    body = local_to_google(event)
    created = retry_with_backoff(
        lambda: service.events().insert(calendarId=CALENDAR_ID, body=body).execute()
    )
    logger.info(f"Created Google event {created.get('id')} for user {user_id}")
    return google_to_local(created, CALENDAR_ID, local_id=event.id).model_copy(
        update={'color': event.color, 'type': event.type}
    )


def update_event(user_id: str, event: CalendarEvent) -> CalendarEvent:
    """Push local changes of a mapped event to Google"""
    if not event.google_event_id:
        raise ValidationError("Event has no googleEventId")

    service = get_calendar_client(user_id)
    body = local_to_google(event)
    updated = retry_with_backoff(
        lambda: service.events().patch(
            calendarId=event.google_calendar_id or CALENDAR_ID,
            eventId=event.google_event_id,
            body=body,
        ).execute()
    )
    logger.info(f"Updated Google event {event.google_event_id} for user {user_id}")
    return google_to_local(updated, event.google_calendar_id or CALENDAR_ID, local_id=event.id).model_copy(
        update={'color': event.color, 'type': event.type}
    )


def delete_event(user_id: str, google_event_id: str, calendar_id: Optional[str] = None) -> None:
    """Delete an event from Google; an event that is already gone counts as deleted"""
    service = get_calendar_client(user_id)
    try:
        retry_with_backoff(
            lambda: service.events().delete(
                calendarId=calendar_id or CALENDAR_ID, eventId=google_event_id,
            ).execute()
        )
    except HttpError as e:
        if get_status_code(e) in (404, 410):
            logger.info(f"Google event {google_event_id} already deleted")
            return
        raise
    logger.info(f"Deleted Google event {google_event_id} for user {user_id}")
