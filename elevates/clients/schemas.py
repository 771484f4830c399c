"""
Client Portfolio Schemas

Pydantic models for everything stored under DATA_DIR/clients. Field names
are snake_case in Python and camelCase on disk and over the API.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl
from pydantic.alias_generators import to_camel

ClientTier = Literal['enterprise', 'growth', 'starter']
ContractStatus = Literal['active', 'pending', 'expired', 'cancelled']
ContractHealth = Literal['healthy', 'at-risk', 'churning', 'expanding']
TaskStatus = Literal['pending', 'in-progress', 'completed', 'cancelled']
TaskPriority = Literal['low', 'medium', 'high', 'urgent']
MeetingType = Literal['call', 'video', 'in-person', 'review']
NoteCategory = Literal['general', 'issue', 'opportunity', 'feedback']
DocumentType = Literal['contract', 'proposal', 'report', 'presentation', 'other']
ActivityType = Literal[
    'client-created',
    'client-updated',
    'client-deleted',
    'task-created',
    'task-updated',
    'task-completed',
    'task-deleted',
    'meeting-scheduled',
    'meeting-completed',
    'meeting-cancelled',
    'note-created',
    'note-updated',
    'note-deleted',
    'document-uploaded',
    'document-deleted',
    'contact-updated',
    'contract-updated',
    'health-score-changed',
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode='json')


class ClientContact(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    role: Optional[str] = None


class ClientContract(CamelModel):
    value: float = Field(ge=0)
    start_date: str
    end_date: str
    status: ContractStatus


class ClientFinancials(CamelModel):
    arr: float = Field(ge=0)
    nrr: float = Field(ge=0, le=200)
    revenue_generated: float = Field(ge=0)
    total_investment: float = Field(gt=0)
    roi: Optional[float] = None
    health_score: float = Field(ge=0, le=100)


class ClientProfile(CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    logo: Optional[str] = None
    industry: str
    tier: ClientTier
    contact: ClientContact
    contract: ClientContract
    financials: ClientFinancials
    contract_health: ContractHealth
    tags: List[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class ClientTask(CamelModel):
    id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = 'pending'
    priority: TaskPriority
    due_date: Optional[str] = None
    assignee: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str
    updated_at: str


class ClientMeeting(CamelModel):
    id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: MeetingType
    date: str
    duration: float = Field(gt=0)  # minutes
    attendees: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    outcome: Optional[str] = None
    created_at: str


class ClientNote(CamelModel):
    id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: str
    category: NoteCategory
    created_at: str
    updated_at: str


class ClientDocument(CamelModel):
    id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: DocumentType
    path: Optional[str] = None
    url: Optional[HttpUrl] = None
    uploaded_at: str
    size: Optional[int] = None  # bytes


class ActivityEntry(CamelModel):
    id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    type: ActivityType
    description: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp: str


class ClientRegistryEntry(CamelModel):
    id: str = Field(min_length=1)
    name: str
    tier: ClientTier
    created_at: str


class ClientRegistry(CamelModel):
    clients: List[ClientRegistryEntry] = Field(default_factory=list)
    last_updated: str
