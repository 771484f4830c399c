"""
Prospect Repository

All prospects live in a single document, DATA_DIR/prospects.json:

    {"prospects": [Prospect, ...]}

Every write validates the full record through the Prospect schema.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ...config import config
from ...exceptions import NotFoundError, ValidationError
from ...utils.json_store import read_json, store_lock, write_json
from ...utils.timezone_utils import parse_optional_date, utc_now_iso
from ..schemas import MAX_FOLLOW_UPS, STAGES, FollowUp, Prospect

logger = logging.getLogger(__name__)

PROSPECTS_FILE = 'prospects.json'

# Date field stamped when a prospect enters a stage
STAGE_DATE_FIELDS = {
    'invited': 'dateInvited',
    'connected': 'dateConnected',
    'first-message': 'dateFirstMessage',
    'meeting-scheduled': 'dateMeetingScheduled',
    'proposal-sent': 'dateProposalSent',
    'closed-won': 'dateClosed',
    'closed-lost': 'dateClosed',
}

PROTECTED_FIELDS = ('id', 'createdAt')


def _load() -> List[Dict[str, Any]]:
    return read_json(config.data_path(PROSPECTS_FILE), default=lambda: {'prospects': []}).get('prospects', [])


def _save(prospects: List[Dict[str, Any]]) -> None:
    write_json(config.data_path(PROSPECTS_FILE), {'prospects': prospects})


def _validated(record: Dict[str, Any]) -> Dict[str, Any]:
    return Prospect.model_validate(record).to_dict()


def _index_of(prospects: List[Dict[str, Any]], prospect_id: str) -> int:
    for i, prospect in enumerate(prospects):
        if prospect.get('id') == prospect_id:
            return i
    raise NotFoundError('Prospect not found')


def _matches(prospect: Dict[str, Any], query: str) -> bool:
    return any(query in (prospect.get(field) or '').lower() for field in ('name', 'company', 'email'))


def list_prospects(q: Optional[str] = None, stage: Optional[str] = None,
                   priority: Optional[str] = None) -> List[Dict[str, Any]]:
    """Prospects filtered by search text (name, company, email), stage and priority"""
    query = (q or '').strip().lower()
    results = []
    for prospect in _load():
        if query and not _matches(prospect, query):
            continue
        if stage and stage != 'all' and prospect.get('stage') != stage:
            continue
        if priority and priority != 'all' and prospect.get('priority') != priority:
            continue
        results.append(prospect)
    return results


def get_prospect(prospect_id: str) -> Dict[str, Any]:
    prospects = _load()
    return prospects[_index_of(prospects, prospect_id)]


def add_prospect(data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a prospect; id and timestamps are assigned here"""
    if not (data.get('name') or '').strip():
        raise ValidationError('Prospect name is required')

    now = utc_now_iso()
    record = {
        **data,
        'id': str(uuid.uuid4()),
        'dateAdded': data.get('dateAdded') or now,
        'followUps': data.get('followUps') or [],
        'tags': data.get('tags') or [],
        'createdAt': now,
        'updatedAt': now,
    }
    prospect = _validated(record)

    with store_lock:
        prospects = _load()
        prospects.append(prospect)
        _save(prospects)

    logger.info(f"Added prospect {prospect['id']} ({prospect['name']})")
    return prospect


def update_prospect(prospect_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Merge updates into a prospect; id and createdAt cannot change"""
    changes = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}

    with store_lock:
        prospects = _load()
        index = _index_of(prospects, prospect_id)
        prospect = _validated({**prospects[index], **changes, 'updatedAt': utc_now_iso()})
        prospects[index] = prospect
        _save(prospects)

    return prospect


def delete_prospect(prospect_id: str) -> None:
    with store_lock:
        prospects = _load()
        del prospects[_index_of(prospects, prospect_id)]
        _save(prospects)
    logger.info(f"Deleted prospect {prospect_id}")


def move_to_stage(prospect_id: str, stage: str) -> Dict[str, Any]:
    """Change stage and stamp the matching stage date"""
    if stage not in STAGES:
        raise ValidationError(f"Invalid stage: {stage}")

    updates = {'stage': stage}
    date_field = STAGE_DATE_FIELDS.get(stage)
    if date_field:
        updates[date_field] = utc_now_iso()

    return update_prospect(prospect_id, updates)


# === FOLLOW-UPS ===

def _follow_up_index(follow_ups: List[Dict[str, Any]], follow_up_id: str) -> int:
    for i, follow_up in enumerate(follow_ups):
        if follow_up.get('id') == follow_up_id:
            return i
    raise NotFoundError('Follow-up not found')


def add_follow_up(prospect_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    with store_lock:
        prospect = get_prospect(prospect_id)
        follow_ups = list(prospect.get('followUps', []))
        if len(follow_ups) >= MAX_FOLLOW_UPS:
            raise ValidationError(f"Maximum {MAX_FOLLOW_UPS} follow-ups allowed per prospect")

        follow_up = FollowUp.model_validate({
            'completed': False,
            **data,
            'id': str(uuid.uuid4()),
        }).to_dict()
        follow_ups.append(follow_up)
        update_prospect(prospect_id, {'followUps': follow_ups})

    return follow_up


def update_follow_up(prospect_id: str, follow_up_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    with store_lock:
        follow_ups = list(get_prospect(prospect_id).get('followUps', []))
        index = _follow_up_index(follow_ups, follow_up_id)
        follow_up = FollowUp.model_validate({**follow_ups[index], **updates, 'id': follow_up_id}).to_dict()
        follow_ups[index] = follow_up
        update_prospect(prospect_id, {'followUps': follow_ups})

    return follow_up


def delete_follow_up(prospect_id: str, follow_up_id: str) -> None:
    with store_lock:
        follow_ups = list(get_prospect(prospect_id).get('followUps', []))
        del follow_ups[_follow_up_index(follow_ups, follow_up_id)]
        update_prospect(prospect_id, {'followUps': follow_ups})


def complete_follow_up(prospect_id: str, follow_up_id: str) -> Dict[str, Any]:
    return update_follow_up(prospect_id, follow_up_id, {
        'completed': True,
        'completedDate': utc_now_iso(),
    })


def get_pending_follow_ups() -> List[Dict[str, Any]]:
    """Incomplete follow-ups across all prospects, earliest first"""
    pending = [
        {'prospect': prospect, 'followUp': follow_up}
        for prospect in _load()
        for follow_up in prospect.get('followUps', [])
        if not follow_up.get('completed')
    ]

    def sort_key(item):
        parsed = parse_optional_date(item['followUp'].get('date'))
        return (parsed is None, parsed.timestamp() if parsed else 0)

    return sorted(pending, key=sort_key)


# === BULK ===

def upsert_many(records: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int, int]:
    """
    Insert or update prospects by id.

    Existing follow-ups and createdAt are kept when an incoming record
    does not carry its own.

    Returns:
        (saved prospects, added count, updated count)
    """
    saved = []
    added = updated = 0

    with store_lock:
        prospects = _load()
        positions = {p.get('id'): i for i, p in enumerate(prospects)}

        for record in records:
            index = positions.get(record.get('id'))
            if index is None:
                prospect = _validated(record)
                positions[prospect['id']] = len(prospects)
                prospects.append(prospect)
                added += 1
            else:
                existing = prospects[index]
                merged = {**existing, **record, 'createdAt': existing.get('createdAt', record.get('createdAt'))}
                if not record.get('followUps'):
                    merged['followUps'] = existing.get('followUps', [])
                prospect = _validated(merged)
                prospects[index] = prospect
                updated += 1
            saved.append(prospect)

        _save(prospects)

    logger.info(f"Upserted {len(saved)} prospects ({added} added, {updated} updated)")
    return saved, added, updated
