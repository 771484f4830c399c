"""
Outreach Mapper

Translation between outreach-system records (snake_case, CSV-style
"True"/"False" flags) and pipeline prospects.
"""

import uuid
from typing import Any, Dict

from ...utils.timezone_utils import utc_now_iso

STATUS_TO_STAGE = {
    'Contacted': 'invited',
    'Replied': 'connected',
    'Meeting': 'meeting-scheduled',
    'Qualified': 'proposal-sent',
    'Won': 'closed-won',
    'Lost': 'closed-lost',
}

STAGE_TO_STATUS = {
    'new-lead': 'Contacted',
    'invited': 'Contacted',
    'connected': 'Replied',
    'first-message': 'Replied',
    'follow-up': 'Replied',
    'meeting-scheduled': 'Meeting',
    'proposal-sent': 'Qualified',
    'closed-won': 'Won',
    'closed-lost': 'Lost',
}

REPLIED_STATUSES = ('Replied', 'Meeting', 'Qualified')
IGNORED_TAGS = ('Outreach', 'Unknown')

# Column order for CSV exports
OUTREACH_FIELDS = [
    'prospect_id', 'first_name', 'last_name', 'email', 'company', 'title', 'industry',
    'list_source', 'campaign_name', 'date_added',
    'email_1_sent', 'email_1_opened', 'email_1_clicked', 'email_2_sent', 'email_2_opened',
    'email_3_sent', 'email_3_opened', 'email_4_sent',
    'replied', 'reply_date', 'reply_type',
    'meeting_booked', 'meeting_date', 'meeting_completed',
    'status', 'deal_value', 'deal_stage',
    'linkedin_connected', 'linkedin_engaged',
    'notes', 'next_step', 'next_step_date', 'last_updated',
]


def _flag(value: bool) -> str:
    return 'True' if value else 'False'


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes')
    return bool(value)


def status_to_stage(status: str) -> str:
    return STATUS_TO_STAGE.get(status, 'new-lead')


def determine_priority(record: Dict[str, Any]) -> str:
    """high for interested replies or booked meetings, low for Nurture, else medium"""
    if record.get('status') == 'Nurture':
        return 'low'
    if record.get('reply_type') == 'interested' or _truthy(record.get('meeting_booked')):
        return 'high'
    return 'medium'


def outreach_to_prospect(record: Dict[str, Any]) -> Dict[str, Any]:
    """Map one outreach-system record to a prospect dict"""
    now = utc_now_iso()
    status = record.get('status')
    name = f"{record.get('first_name') or ''} {record.get('last_name') or ''}".strip()

    return {
        'id': record.get('prospect_id') or f"prospect-{uuid.uuid4().hex[:12]}",
        'name': name or 'Unknown',
        'company': record.get('company') or '',
        'email': record.get('email') or '',
        'phone': record.get('phone') or None,
        'title': record.get('title') or None,
        'linkedinProfile': record.get('linkedin_url') or None,

        'stage': status_to_stage(status),
        'dateAdded': record.get('date_added') or record.get('email_1_sent') or now,
        'dateInvited': record.get('email_1_sent') or None,
        'dateConnected': record.get('reply_date') or None,
        'dateFirstMessage': record.get('email_1_sent') or None,
        'dateMeetingScheduled': record.get('meeting_date') or None,
        'dateClosed': (record.get('last_updated') or now) if status in ('Won', 'Lost') else None,

        'accepted': _truthy(record.get('replied')),
        'firstEmailDate': record.get('email_1_sent') or None,
        'followUp1Date': record.get('email_2_sent') or None,
        'followUp2Date': record.get('email_3_sent') or None,
        'followUp3Date': record.get('email_4_sent') or None,

        'followUps': [],
        'notes': record.get('notes') or '',
        'tags': [
            record.get('industry') or 'Unknown',
            record.get('campaign_name') or 'Outreach',
            record.get('list_source') or 'Unknown',
        ],
        'priority': determine_priority(record),
        'source': record.get('list_source') or record.get('source') or 'Outreach System',

        'createdAt': record.get('date_added') or now,
        'updatedAt': record.get('last_updated') or now,
    }


def prospect_to_outreach(prospect: Dict[str, Any]) -> Dict[str, Any]:
    """Map one prospect to an outreach-system record (CSV-compatible values)"""
    now = utc_now_iso()
    status = STAGE_TO_STATUS.get(prospect.get('stage'), 'Contacted')

    name_parts = (prospect.get('name') or '').split(' ')
    first_name = name_parts[0] if name_parts else ''
    last_name = ' '.join(name_parts[1:])

    reply_type = ''
    if prospect.get('priority') == 'high' and status in REPLIED_STATUSES:
        reply_type = 'interested'

    industry = next((t for t in prospect.get('tags') or [] if t not in IGNORED_TAGS), '')
    follow_ups = prospect.get('followUps') or []
    next_follow_up = follow_ups[0] if follow_ups else {}

    deal_stage = ''
    if status == 'Qualified':
        deal_stage = 'Discovery'
    elif status == 'Won':
        deal_stage = 'Closed-Won'

    return {
        'prospect_id': prospect.get('id') or f"prospect-{uuid.uuid4().hex[:12]}",
        'first_name': first_name,
        'last_name': last_name,
        'email': prospect.get('email') or '',
        'company': prospect.get('company') or '',
        'title': prospect.get('title') or '',
        'industry': industry,

        'list_source': prospect.get('source') or 'Elevates CRM',
        'campaign_name': 'CRM Import',
        'date_added': prospect.get('dateAdded') or prospect.get('createdAt') or now,

        'email_1_sent': prospect.get('dateInvited') or prospect.get('firstEmailDate') or '',
        'email_1_opened': _flag(prospect.get('accepted')),
        'email_1_clicked': 'False',
        'email_2_sent': prospect.get('followUp1Date') or '',
        'email_2_opened': 'False',
        'email_3_sent': prospect.get('followUp2Date') or '',
        'email_3_opened': 'False',
        'email_4_sent': prospect.get('followUp3Date') or '',

        'replied': _flag(status in REPLIED_STATUSES),
        'reply_date': prospect.get('dateConnected') or '',
        'reply_type': reply_type,

        'meeting_booked': _flag(status in ('Meeting', 'Qualified', 'Won')),
        'meeting_date': prospect.get('dateMeetingScheduled') or '',
        'meeting_completed': _flag(status in ('Qualified', 'Won')),

        'status': status,
        'deal_value': 0,
        'deal_stage': deal_stage,

        'linkedin_connected': _flag(prospect.get('linkedinProfile')),
        'linkedin_engaged': 'False',

        'notes': prospect.get('notes') or '',
        'next_step': next_follow_up.get('notes') or '',
        'next_step_date': next_follow_up.get('date') or '',
        'last_updated': prospect.get('updatedAt') or now,
    }
