"""
Google Calendar Sync Service

Pulls changes from Google into the local event store:

1. Incremental listing from the stored sync token when there is one; when
   Google reports the token as expired the sync falls back to a full listing
2. Pulled events are upserted locally and recorded in the mapping table;
   local edits still pending upload win when Google's copy is older
3. Cancelled events are removed locally together with their mappings
4. The new sync token is persisted for the next run

Progress is broadcast as 'calendar_sync_status' Socket.IO events.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ...extensions import emit_status
from ...exceptions import SyncTokenExpiredError
from ...utils.timezone_utils import utc_now_iso
from . import calendar_service, event_repository, sync_metadata_repository
from .event_mapper import CalendarEvent, google_to_local, resolve_conflict
from .sync_metadata_repository import EventMapping

logger = logging.getLogger(__name__)

SYNC_STATUS_EVENT = 'calendar_sync_status'


@dataclass
class SyncResult:
    success: bool
    events_added: int = 0
    events_updated: int = 0
    events_deleted: int = 0
    events: List[Dict[str, Any]] = field(default_factory=list)
    sync_token: Optional[str] = None
    synced_at: Optional[str] = None
    full_sync: bool = False
    error: Optional[str] = None

    def to_dict(self):
        data = asdict(self)
        return {
            'success': data['success'],
            'eventsAdded': data['events_added'],
            'eventsUpdated': data['events_updated'],
            'eventsDeleted': data['events_deleted'],
            'events': data['events'],
            'syncToken': data['sync_token'],
            'syncedAt': data['synced_at'],
            'fullSync': data['full_sync'],
            'error': data['error'],
        }


def _record_mapping(user_id: str, event: CalendarEvent) -> None:
    sync_metadata_repository.upsert_event_mapping(user_id, EventMapping(
        local_id=event.id,
        google_event_id=event.google_event_id,
        google_calendar_id=event.google_calendar_id or calendar_service.CALENDAR_ID,
        etag=event.etag,
        last_synced_at=event.last_synced_at,
    ))


def _list_changes(user_id: str):
    """Return (EventPage, full_sync) for the user's next sync"""
    metadata = sync_metadata_repository.load(user_id)
    if metadata.sync_token:
        try:
            return calendar_service.list_events(user_id, sync_token=metadata.sync_token), False
        except SyncTokenExpiredError:
            logger.info(f"Falling back to full sync for user {user_id}")
    return calendar_service.full_sync(user_id), True


def _apply_pulled_events(user_id: str, google_events: List[Dict[str, Any]]):
    """
    Upsert pulled events locally.

    Returns:
        tuple: (added, updated, list of resulting local events)
    """
    to_merge = []
    pushed = []

    for google_event in google_events:
        local = event_repository.find_by_google_id(user_id, google_event['id'])
        if local is not None and local.sync_status == 'pending' \
                and resolve_conflict(local, google_event) == 'update-google':
            pushed.append(local)
            continue

        local_id = local.id if local else sync_metadata_repository.get_local_id(user_id, google_event['id'])
        mapped = google_to_local(google_event, calendar_service.CALENDAR_ID, local_id=local_id)
        if local is not None:
            mapped = mapped.model_copy(update={'color': local.color, 'type': local.type})
        to_merge.append(mapped)

    added, updated = event_repository.merge_synced_events(user_id, to_merge)
    for event in to_merge:
        _record_mapping(user_id, event)

    for local in pushed:
        try:
            synced = calendar_service.update_event(user_id, local)
            event_repository.save_event(user_id, synced)
            _record_mapping(user_id, synced)
            updated += 1
        except Exception as e:
            logger.error(f"Failed to push pending event {local.id}: {e}", exc_info=True)
            event_repository.save_event(user_id, local.model_copy(update={'sync_status': 'error'}))

    return added, updated, to_merge


def sync_user_calendar(user_id: str) -> SyncResult:
    """
    Synchronize the user's primary Google Calendar into the local store.

    Raises:
        TokensNotFoundError / TokenRefreshError: the user is not connected
        HttpError: Google API failures that survived retries
    """
    emit_status(SYNC_STATUS_EVENT, {'userId': user_id, 'status': 'syncing'})

    try:
        page, full_sync = _list_changes(user_id)

        added, updated, merged = _apply_pulled_events(user_id, page.events)

        removed = event_repository.remove_by_google_ids(user_id, page.cancelled_ids)
        for event in removed:
            sync_metadata_repository.remove_event_mapping(user_id, event.id)

        if full_sync:
            sync_metadata_repository.mark_full_sync_complete(user_id, page.next_sync_token)
        elif page.next_sync_token:
            sync_metadata_repository.update_sync_token(user_id, page.next_sync_token)

    except Exception as e:
        emit_status(SYNC_STATUS_EVENT, {'userId': user_id, 'status': 'error', 'error': str(e)})
        raise

    synced_at = utc_now_iso()
    result = SyncResult(
        success=True,
        events_added=added,
        events_updated=updated,
        events_deleted=len(removed),
        events=[e.to_dict() for e in merged],
        sync_token=page.next_sync_token,
        synced_at=synced_at,
        full_sync=full_sync,
    )

    logger.info(
        f"Calendar sync for {user_id} complete ({'full' if full_sync else 'incremental'}): "
        f"{added} added, {updated} updated, {len(removed)} deleted"
    )
    emit_status(SYNC_STATUS_EVENT, {'userId': user_id, 'status': 'idle', 'syncedAt': synced_at})
    return result


def push_local_event(user_id: str, event: CalendarEvent) -> CalendarEvent:
    """Create a local event in Google, record the mapping and mark it synced"""
    synced = calendar_service.create_event(user_id, event)
    _record_mapping(user_id, synced)
    return synced


def push_local_update(user_id: str, event: CalendarEvent) -> CalendarEvent:
    """Send a local edit of a mapped event to Google"""
    synced = calendar_service.update_event(user_id, event)
    _record_mapping(user_id, synced)
    return synced


def remove_google_event(user_id: str, local_id: str, google_event_id: Optional[str] = None) -> None:
    """Delete the Google copy of a local event and drop its mapping"""
    mapping = sync_metadata_repository.get_mapping(user_id, local_id)
    google_event_id = google_event_id or (mapping.google_event_id if mapping else None)
    if google_event_id:
        calendar_id = mapping.google_calendar_id if mapping else None
        calendar_service.delete_event(user_id, google_event_id, calendar_id)
    sync_metadata_repository.remove_event_mapping(user_id, local_id)
