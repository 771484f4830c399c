"""
Google Calendar Event Mapper

Converts between Google Calendar API event resources and the dashboard's
calendar events. Local events store wall-clock date and HH:MM times in
the configured calendar timezone.
"""

import datetime
import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ...config import config
from ...utils.timezone_utils import (
    combine_local,
    now_in_timezone,
    parse_date_string,
    parse_optional_date,
    utc_now_iso,
    utc_to_local,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_COLOR = '#3B82F6'
DEFAULT_TITLE = 'Untitled Event'
DEFAULT_DURATION = datetime.timedelta(hours=1)

EventType = Literal['meeting', 'task', 'reminder', 'event']
EventSource = Literal['local', 'google']
SyncStatus = Literal['synced', 'pending', 'error']

DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'
TIME_PATTERN = r'^\d{2}:\d{2}$'


class CalendarEvent(BaseModel):
    """A dashboard calendar event"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    description: Optional[str] = None
    date: str = Field(pattern=DATE_PATTERN)
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    color: str = DEFAULT_EVENT_COLOR
    type: EventType = 'event'

    source: EventSource = 'local'
    google_event_id: Optional[str] = None
    google_calendar_id: Optional[str] = None
    last_synced_at: Optional[str] = None
    sync_status: Optional[SyncStatus] = None
    etag: Optional[str] = None

    @field_validator('date')
    @classmethod
    def _valid_date(cls, value: str) -> str:
        try:
            datetime.datetime.strptime(value, '%Y-%m-%d')
        except ValueError:
            raise ValueError('date must be a valid YYYY-MM-DD date') from None
        return value

    @field_validator('start_time', 'end_time')
    @classmethod
    def _valid_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            datetime.datetime.strptime(value, '%H:%M')
        except ValueError:
            raise ValueError('time must be a valid HH:MM time') from None
        return value

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _split_google_time(value: Dict[str, Any]):
    """Return (date, HH:MM or None) for a Google start/end object"""
    if value.get('dateTime'):
        local = utc_to_local(parse_date_string(value['dateTime']))
        return local.strftime('%Y-%m-%d'), local.strftime('%H:%M')
    if value.get('date'):
        return value['date'], None
    return None, None


def google_to_local(google_event: Dict[str, Any],
                    calendar_id: str = 'primary',
                    local_id: Optional[str] = None) -> CalendarEvent:
    """
    Map a Google Calendar event to a local calendar event.

    Args:
        google_event: Event resource from the Calendar API
        calendar_id: Calendar the event belongs to
        local_id: Existing local id when the event is already mapped

    Returns:
        CalendarEvent marked as synced from Google
    """
    start_date, start_time = _split_google_time(google_event.get('start') or {})
    _, end_time = _split_google_time(google_event.get('end') or {})

    if start_date is None:
        start_date = now_in_timezone().strftime('%Y-%m-%d')

    return CalendarEvent(
        id=local_id or google_event['id'],
        title=google_event.get('summary') or DEFAULT_TITLE,
        description=google_event.get('description'),
        date=start_date,
        start_time=start_time,
        end_time=end_time,
        color=DEFAULT_EVENT_COLOR,
        type='meeting' if google_event.get('eventType') == 'default' else 'event',
        source='google',
        google_event_id=google_event['id'],
        google_calendar_id=calendar_id,
        last_synced_at=google_event.get('updated') or utc_now_iso(),
        sync_status='synced',
        etag=google_event.get('etag'),
    )


def local_to_google(event: CalendarEvent) -> Dict[str, Any]:
    """
    Map a local calendar event to a Google Calendar event resource.

    Timed events default to one hour when no end time is set. All-day events
    use an exclusive end date on the following day.
    """
    resource: Dict[str, Any] = {'summary': event.title}
    if event.description:
        resource['description'] = event.description

    if event.start_time:
        start = combine_local(event.date, event.start_time)
        if event.end_time:
            end = combine_local(event.date, event.end_time)
            if end <= start:
                end = start + DEFAULT_DURATION
        else:
            end = start + DEFAULT_DURATION

        resource['start'] = {'dateTime': start.isoformat(), 'timeZone': config.DEFAULT_TIMEZONE}
        resource['end'] = {'dateTime': end.isoformat(), 'timeZone': config.DEFAULT_TIMEZONE}
    else:
        day = datetime.date.fromisoformat(event.date)
        resource['start'] = {'date': day.isoformat()}
        resource['end'] = {'date': (day + datetime.timedelta(days=1)).isoformat()}

    return resource


def resolve_conflict(local_event: CalendarEvent, google_event: Dict[str, Any]) -> str:
    """
    Decide which side wins when both copies of an event changed (last write wins).

    Returns:
        'update-local' when Google's copy changed after the last sync,
        'update-google' otherwise
    """
    google_updated = parse_optional_date(google_event.get('updated'))
    last_synced = parse_optional_date(local_event.last_synced_at)

    if google_updated and (last_synced is None or google_updated > last_synced):
        return 'update-local'
    return 'update-google'
