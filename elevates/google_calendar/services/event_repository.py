"""
Local calendar event store.

Events for each user are kept in DATA_DIR/calendar-events/<userId>.json as
{"events": [...]}.
"""

import logging
import re
import uuid
from typing import Iterable, List, Optional

from ...config import config
from ...exceptions import NotFoundError, ValidationError
from ...utils.json_store import read_json, safe_component, store_lock, write_json
from .event_mapper import DATE_PATTERN, CalendarEvent

logger = logging.getLogger(__name__)

EVENTS_DIR = 'calendar-events'
MONTH_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


def _events_path(user_id):
    return config.data_path(EVENTS_DIR, f"{safe_component(user_id, 'user id')}.json")


def _load(user_id) -> List[CalendarEvent]:
    data = read_json(_events_path(user_id), default=lambda: {'events': []})
    return [CalendarEvent.model_validate(e) for e in data.get('events', [])]


def _save(user_id, events: List[CalendarEvent]) -> None:
    write_json(_events_path(user_id), {'events': [e.to_dict() for e in events]})


def new_event_id() -> str:
    return f"event-{uuid.uuid4().hex[:12]}"


def list_events(user_id: str, date: Optional[str] = None, month: Optional[str] = None) -> List[CalendarEvent]:
    """
    List events sorted by date and start time.

    Args:
        date: Only events on this day (YYYY-MM-DD)
        month: Only events in this month (YYYY-MM)

    Raises:
        ValidationError: If a filter is malformed
    """
    if date and not re.match(DATE_PATTERN, date):
        raise ValidationError(f"Invalid date filter: {date} (expected YYYY-MM-DD)")
    if month and not MONTH_PATTERN.match(month):
        raise ValidationError(f"Invalid month filter: {month} (expected YYYY-MM)")

    events = _load(user_id)
    if date:
        events = [e for e in events if e.date == date]
    if month:
        events = [e for e in events if e.date.startswith(month)]
    return sorted(events, key=lambda e: (e.date, e.start_time or ''))


def get_event(user_id: str, event_id: str) -> CalendarEvent:
    for event in _load(user_id):
        if event.id == event_id:
            return event
    raise NotFoundError(f"Event {event_id} not found")


def find_by_google_id(user_id: str, google_event_id: str) -> Optional[CalendarEvent]:
    for event in _load(user_id):
        if event.google_event_id == google_event_id:
            return event
    return None


def add_event(user_id: str, event: CalendarEvent) -> CalendarEvent:
    with store_lock:
        events = _load(user_id)
        events.append(event)
        _save(user_id, events)
    return event


def save_event(user_id: str, event: CalendarEvent) -> CalendarEvent:
    """Replace the stored event with the same id"""
    with store_lock:
        events = _load(user_id)
        for index, existing in enumerate(events):
            if existing.id == event.id:
                events[index] = event
                break
        else:
            raise NotFoundError(f"Event {event.id} not found")
        _save(user_id, events)
    return event


def update_event(user_id: str, event_id: str, updates: dict) -> CalendarEvent:
    """Merge camelCase updates into an event, keeping its id"""
    with store_lock:
        current = get_event(user_id, event_id)
        merged = {**current.to_dict(), **updates, 'id': event_id}
        return save_event(user_id, CalendarEvent.model_validate(merged))


def delete_event(user_id: str, event_id: str) -> CalendarEvent:
    with store_lock:
        events = _load(user_id)
        remaining = [e for e in events if e.id != event_id]
        if len(remaining) == len(events):
            raise NotFoundError(f"Event {event_id} not found")
        _save(user_id, remaining)
    return next(e for e in events if e.id == event_id)


def merge_synced_events(user_id: str, synced: Iterable[CalendarEvent]):
    """
    Merge events pulled from Google, matching on googleEventId.

    Returns:
        tuple: (added, updated) counts
    """
    added = updated = 0
    with store_lock:
        events = _load(user_id)
        index_by_google_id = {
            e.google_event_id: i for i, e in enumerate(events) if e.google_event_id
        }
        for event in synced:
            position = index_by_google_id.get(event.google_event_id)
            if position is None:
                index_by_google_id[event.google_event_id] = len(events)
                events.append(event)
                added += 1
            else:
                events[position] = event.model_copy(update={'id': events[position].id})
                updated += 1
        _save(user_id, events)
    return added, updated


def remove_by_google_ids(user_id: str, google_event_ids: Iterable[str]) -> List[CalendarEvent]:
    """Delete events whose Google counterpart was cancelled; returns the removed events"""
    ids = set(google_event_ids)
    if not ids:
        return []
    with store_lock:
        events = _load(user_id)
        removed = [e for e in events if e.google_event_id in ids]
        if removed:
            _save(user_id, [e for e in events if e.google_event_id not in ids])
    return removed

