"""
Pipeline Analytics

Aggregate statistics over a list of prospect dicts. Every function is
pure; callers pass in the prospects they want analysed.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from ...utils.timezone_utils import parse_optional_date, utc_now
from ..schemas import STAGES

logger = logging.getLogger(__name__)

PRIORITY_COLORS = [
    ('high', 'High', '#EF4444'),
    ('medium', 'Medium', '#F59E0B'),
    ('low', 'Low', '#64748B'),
]

FUNNEL_STAGES = [
    ('new-lead', 'New Lead'),
    ('invited', 'Invited'),
    ('connected', 'Connected'),
    ('first-message', 'First Message'),
    ('follow-up', 'Follow-up'),
    ('meeting-scheduled', 'Meeting'),
    ('proposal-sent', 'Proposal'),
    ('closed-won', 'Closed Won'),
]

TREND_COLUMNS = ['added', 'won', 'lost']
SECONDS_PER_DAY = 24 * 60 * 60


def get_stage_stats(prospects: List[Dict[str, Any]]) -> Dict[str, int]:
    stats = {stage: 0 for stage in STAGES}
    for prospect in prospects:
        stage = prospect.get('stage')
        if stage in stats:
            stats[stage] += 1
    return stats


def get_conversion_rate(prospects: List[Dict[str, Any]]) -> float:
    """Percentage of all prospects that are closed-won"""
    if not prospects:
        return 0.0
    won = sum(1 for p in prospects if p.get('stage') == 'closed-won')
    return won / len(prospects) * 100


def get_source_stats(prospects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    for prospect in prospects:
        source = prospect.get('source') or 'Unknown'
        counts[source] = counts.get(source, 0) + 1
    return [{'name': name, 'value': value} for name, value in counts.items()]


def get_priority_stats(prospects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {'name': label, 'value': sum(1 for p in prospects if p.get('priority') == key), 'color': color}
        for key, label, color in PRIORITY_COLORS
    ]


def get_follow_up_stats(prospects: List[Dict[str, Any]]) -> Dict[str, Any]:
    follow_ups = [fu for p in prospects for fu in p.get('followUps') or []]
    total = len(follow_ups)
    completed = sum(1 for fu in follow_ups if fu.get('completed'))
    return {
        'total': total,
        'completed': completed,
        'pending': total - completed,
        'completionRate': completed / total * 100 if total else 0.0,
    }


def get_conversion_funnel(prospects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Funnel counts with percentages relative to the new-lead stage"""
    stats = get_stage_stats(prospects)
    base = stats['new-lead']
    return [
        {
            'stage': label,
            'count': stats[stage],
            'percentage': stats[stage] / base * 100 if base > 0 else 0.0,
        }
        for stage, label in FUNNEL_STAGES
    ]


def get_trend_data(prospects: List[Dict[str, Any]], days: int = 30,
                   now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Daily counts of prospects added, won and lost over the last `days` days.

    Won and lost are dated by dateClosed. Days without activity are filled
    with zeros so the series always has `days` entries.
    """
    start = (pd.Timestamp(now or utc_now()) - pd.Timedelta(days=days)).normalize()
    keys = pd.date_range(start=start, periods=days, freq='D').strftime('%Y-%m-%d')

    rows = []
    for prospect in prospects:
        rows.append({'date': prospect.get('dateAdded'), 'kind': 'added'})
        if prospect.get('dateClosed'):
            if prospect.get('stage') == 'closed-won':
                rows.append({'date': prospect['dateClosed'], 'kind': 'won'})
            elif prospect.get('stage') == 'closed-lost':
                rows.append({'date': prospect['dateClosed'], 'kind': 'lost'})

    counts = pd.DataFrame(0, index=keys, columns=TREND_COLUMNS)
    if rows:
        events = pd.DataFrame(rows)
        events['date'] = pd.to_datetime(events['date'], errors='coerce', utc=True, format='ISO8601')
        events = events[events['date'].notna() & (events['date'] >= start)]
        if not events.empty:
            events['key'] = events['date'].dt.strftime('%Y-%m-%d')
            observed = pd.crosstab(events['key'], events['kind'])
            counts = observed.reindex(index=keys, columns=TREND_COLUMNS, fill_value=0)

    return [
        {'date': key, 'added': int(row.added), 'won': int(row.won), 'lost': int(row.lost)}
        for key, row in zip(keys, counts.itertuples(index=False))
    ]


def _stage_dates(prospect: Dict[str, Any]) -> List[tuple]:
    closed = prospect.get('dateClosed')
    return [
        ('new-lead', prospect.get('dateAdded')),
        ('invited', prospect.get('dateInvited')),
        ('connected', prospect.get('dateConnected')),
        ('first-message', prospect.get('dateFirstMessage')),
        ('meeting-scheduled', prospect.get('dateMeetingScheduled')),
        ('proposal-sent', prospect.get('dateProposalSent')),
        ('closed-won', closed),
        ('closed-lost', closed),
    ]


def get_average_time_in_stage(prospects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Average days between consecutive stage dates, per stage.

    Only adjacent pairs where both dates are known contribute.
    """
    totals = {stage: [0.0, 0] for stage in STAGES}

    for prospect in prospects:
        stages = [(stage, parse_optional_date(value)) for stage, value in _stage_dates(prospect)]
        for (stage, current), (_, following) in zip(stages, stages[1:]):
            if current and following:
                totals[stage][0] += (following - current).total_seconds() / SECONDS_PER_DAY
                totals[stage][1] += 1

    return [
        {'stage': stage, 'averageDays': math.floor(total / count + 0.5) if count else 0}
        for stage, (total, count) in totals.items()
    ]


def get_pipeline_analytics(prospects: List[Dict[str, Any]], days: int = 30) -> Dict[str, Any]:
    """Everything the analytics view needs in one payload"""
    return {
        'total': len(prospects),
        'stageStats': get_stage_stats(prospects),
        'conversionRate': get_conversion_rate(prospects),
        'sourceStats': get_source_stats(prospects),
        'priorityStats': get_priority_stats(prospects),
        'followUpStats': get_follow_up_stats(prospects),
        'conversionFunnel': get_conversion_funnel(prospects),
        'trendData': get_trend_data(prospects, days),
        'averageTimeInStage': get_average_time_in_stage(prospects),
    }
