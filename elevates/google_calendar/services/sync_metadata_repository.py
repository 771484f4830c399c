"""
Calendar sync metadata.

Per-user record of the Google sync token, the last sync times and the
mapping between local event ids and Google event ids:

    DATA_DIR/calendar-sync/<userId>.json
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...config import config
from ...utils.json_store import read_json, safe_component, store_lock, write_json
from ...utils.timezone_utils import utc_now_iso

logger = logging.getLogger(__name__)

SYNC_DIR = 'calendar-sync'


class EventMapping(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    local_id: str
    google_event_id: str
    google_calendar_id: str = 'primary'
    etag: Optional[str] = None
    last_synced_at: Optional[str] = None


class SyncMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    last_full_sync: Optional[str] = None
    last_incremental_sync: Optional[str] = None
    sync_token: Optional[str] = None
    event_mappings: List[EventMapping] = Field(default_factory=list)


def _metadata_path(user_id):
    return config.data_path(SYNC_DIR, f"{safe_component(user_id, 'user id')}.json")


def load(user_id: str) -> SyncMetadata:
    """Load sync metadata, starting a fresh record when none exists"""
    data = read_json(_metadata_path(user_id), default=lambda: None)
    if data is None:
        return SyncMetadata(user_id=user_id)
    return SyncMetadata.model_validate(data)


def save(metadata: SyncMetadata) -> None:
    write_json(_metadata_path(metadata.user_id), metadata.model_dump(by_alias=True))


def delete(user_id: str) -> None:
    path = _metadata_path(user_id)
    if path.exists():
        path.unlink()
        logger.info(f"Deleted calendar sync metadata for user {user_id}")


def update_sync_token(user_id: str, sync_token: Optional[str]) -> SyncMetadata:
    """Store the next sync token and stamp the incremental sync time"""
    with store_lock:
        metadata = load(user_id)
        metadata.sync_token = sync_token
        metadata.last_incremental_sync = utc_now_iso()
        save(metadata)
        return metadata


def mark_full_sync_complete(user_id: str, sync_token: Optional[str] = None) -> SyncMetadata:
    with store_lock:
        metadata = load(user_id)
        now = utc_now_iso()
        metadata.last_full_sync = now
        metadata.last_incremental_sync = now
        if sync_token is not None:
            metadata.sync_token = sync_token
        save(metadata)
        return metadata


def upsert_event_mapping(user_id: str, mapping: EventMapping) -> None:
    """Insert or replace the mapping for mapping.local_id"""
    with store_lock:
        metadata = load(user_id)
        metadata.event_mappings = [
            m for m in metadata.event_mappings
            if m.local_id != mapping.local_id and m.google_event_id != mapping.google_event_id
        ]
        metadata.event_mappings.append(mapping)
        save(metadata)


def remove_event_mapping(user_id: str, local_id: str) -> None:
    with store_lock:
        metadata = load(user_id)
        metadata.event_mappings = [m for m in metadata.event_mappings if m.local_id != local_id]
        save(metadata)


def get_mapping(user_id: str, local_id: str) -> Optional[EventMapping]:
    for mapping in load(user_id).event_mappings:
        if mapping.local_id == local_id:
            return mapping
    return None


def get_google_event_id(user_id: str, local_id: str) -> Optional[str]:
    mapping = get_mapping(user_id, local_id)
    return mapping.google_event_id if mapping else None


def get_local_id(user_id: str, google_event_id: str) -> Optional[str]:
    for mapping in load(user_id).event_mappings:
        if mapping.google_event_id == google_event_id:
            return mapping.local_id
    return None
