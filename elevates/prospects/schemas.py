"""
Prospect Pipeline Schemas
"""

from typing import List, Literal, Optional, get_args

from pydantic import Field

from ..clients.schemas import CamelModel

ProspectStage = Literal[
    'new-lead',
    'invited',
    'connected',
    'first-message',
    'follow-up',
    'meeting-scheduled',
    'proposal-sent',
    'closed-won',
    'closed-lost',
]
FollowUpType = Literal['email', 'phone', 'linkedin', 'meeting', 'other']
ProspectPriority = Literal['low', 'medium', 'high']

STAGES = get_args(ProspectStage)
MAX_FOLLOW_UPS = 5


class FollowUp(CamelModel):
    id: str = Field(min_length=1)
    date: str
    type: FollowUpType
    notes: str = ''
    completed: bool = False
    completed_date: Optional[str] = None


class Prospect(CamelModel):
    id: str = Field(min_length=1)
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None
    linkedin_profile: Optional[str] = None
    twitter_profile: Optional[str] = None
    instagram_profile: Optional[str] = None
    other_profile: Optional[str] = None

    stage: ProspectStage = 'new-lead'
    date_added: str
    date_invited: Optional[str] = None
    date_connected: Optional[str] = None
    date_first_message: Optional[str] = None
    date_meeting_scheduled: Optional[str] = None
    date_proposal_sent: Optional[str] = None
    date_closed: Optional[str] = None

    accepted: Optional[bool] = None
    first_email_date: Optional[str] = None
    follow_up1_date: Optional[str] = Field(default=None, alias='followUp1Date')
    follow_up2_date: Optional[str] = Field(default=None, alias='followUp2Date')
    follow_up3_date: Optional[str] = Field(default=None, alias='followUp3Date')
    follow_up4_date: Optional[str] = Field(default=None, alias='followUp4Date')

    follow_ups: List[FollowUp] = Field(default_factory=list, max_length=MAX_FOLLOW_UPS)

    notes: str = ''
    tags: List[str] = Field(default_factory=list)
    priority: ProspectPriority = 'medium'
    source: Optional[str] = None

    created_at: str
    updated_at: str
