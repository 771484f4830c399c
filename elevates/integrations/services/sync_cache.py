"""
Cached integration data and sync metadata.

Records pulled from a finance integration are cached as JSON under
DATA_DIR/integrations/<service>-cache/ and the outcome of the last sync is
kept in DATA_DIR/integrations/sync-metadata/<service>-sync.json. Per-user
integrations add a <userId> directory level to both.
"""

import logging
from typing import Any, Dict, Optional

from ...config import config
from ...utils.json_store import read_json, safe_component, write_json
from ...utils.timezone_utils import utc_now_iso

logger = logging.getLogger(__name__)

INTEGRATIONS_DIR = 'integrations'
METADATA_DIR = 'sync-metadata'


def _user_parts(user_id):
    return (safe_component(user_id, 'user id'),) if user_id else ()


def _cache_path(service, name, user_id=None):
    return config.data_path(INTEGRATIONS_DIR, f'{service}-cache', *_user_parts(user_id), f'{name}.json')


def _metadata_path(service, user_id=None):
    return config.data_path(INTEGRATIONS_DIR, METADATA_DIR, *_user_parts(user_id), f'{service}-sync.json')


def write_cache(service: str, name: str, data: Any, user_id: Optional[str] = None) -> None:
    write_json(_cache_path(service, name, user_id), data)


def read_cache(service: str, name: str, user_id: Optional[str] = None) -> Any:
    """Cached records, or None before the first sync"""
    return read_json(_cache_path(service, name, user_id), default=lambda: None)


def save_sync_metadata(service: str, counts: Dict[str, int], user_id: Optional[str] = None) -> Dict[str, Any]:
    metadata = {'lastSyncAt': utc_now_iso(), 'recordsCounts': counts}
    write_json(_metadata_path(service, user_id), metadata)
    logger.info(f"Recorded {service} sync: {counts}")
    return metadata


def load_sync_metadata(service: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    return read_json(_metadata_path(service, user_id), default=lambda: {'lastSyncAt': None, 'recordsCounts': None})


def last_sync_at(service: str, user_id: Optional[str] = None) -> Optional[str]:
    return load_sync_metadata(service, user_id).get('lastSyncAt')
