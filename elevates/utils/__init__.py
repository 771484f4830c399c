#!/usr/bin/env python3
"""
Elevates utilities package.
"""

from .timezone_utils import (
    get_system_timezone,
    now_in_timezone,
    utc_now,
    utc_now_iso,
    now_ms,
    to_iso,
    utc_to_local,
    parse_date_string,
    combine_local,
    current_period,
)
from .json_store import read_json, write_json, safe_component
from .retry_utils import retry_with_backoff

__all__ = [
    # Timezone utilities
    'get_system_timezone',
    'now_in_timezone',
    'utc_now',
    'utc_now_iso',
    'now_ms',
    'to_iso',
    'utc_to_local',
    'parse_date_string',
    'combine_local',
    'current_period',
    # JSON storage
    'read_json',
    'write_json',
    'safe_component',
    # Retry
    'retry_with_backoff',
]
