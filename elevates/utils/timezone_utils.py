#!/usr/bin/env python3
"""
Timezone utilities for consistent time handling across the system.
Calendar events are stored as wall-clock date/time in the configured
timezone; everything else is stored as UTC ISO-8601 strings.
"""

import datetime
import pytz
from typing import Optional

from ..config import config


def get_system_timezone() -> pytz.BaseTzInfo:
    """Get the configured calendar timezone."""
    return pytz.timezone(config.DEFAULT_TIMEZONE)


def now_in_timezone(timezone: Optional[str] = None) -> datetime.datetime:
    """Get current time in specified timezone."""
    tz = pytz.timezone(timezone) if timezone else get_system_timezone()
    return datetime.datetime.now(tz)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(pytz.utc)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and Z suffix"""
    return to_iso(utc_now())


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return int(utc_now().timestamp() * 1000)


def to_iso(dt: datetime.datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with Z suffix"""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def utc_to_local(dt: datetime.datetime, timezone: Optional[str] = None) -> datetime.datetime:
    """Convert UTC datetime to local timezone."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)

    target_tz = pytz.timezone(timezone) if timezone else get_system_timezone()
    return dt.astimezone(target_tz)


def parse_date_string(date_str: str, timezone: Optional[str] = None) -> datetime.datetime:
    """Parse date string and localize to specified timezone."""
    # Handle ISO format with Z suffix
    if date_str.endswith('Z'):
        date_str = date_str[:-1] + '+00:00'

    dt = datetime.datetime.fromisoformat(date_str)

    if dt.tzinfo is None:
        source_tz = pytz.timezone(timezone) if timezone else get_system_timezone()
        dt = source_tz.localize(dt)

    return dt


def parse_optional_date(date_str: Optional[str]) -> Optional[datetime.datetime]:
    """parse_date_string that returns None for empty or unparseable input"""
    if not date_str:
        return None
    try:
        return parse_date_string(date_str, 'UTC')
    except ValueError:
        return None


def combine_local(date_str: str, time_str: str, timezone: Optional[str] = None) -> datetime.datetime:
    """Build an aware datetime from 'YYYY-MM-DD' and 'HH:MM' in the calendar timezone"""
    naive = datetime.datetime.strptime(f"{date_str} {time_str}", '%Y-%m-%d %H:%M')
    tz = pytz.timezone(timezone) if timezone else get_system_timezone()
    return tz.localize(naive)


def current_period(timezone: Optional[str] = None) -> str:
    """Current reporting period as YYYY-MM"""
    return now_in_timezone(timezone).strftime('%Y-%m')
