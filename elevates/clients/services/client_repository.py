"""
Client Repository

File-backed storage for the client portfolio. Layout under DATA_DIR/clients:

    index.json                registry {clients: [{id, name, tier, createdAt}], lastUpdated}
    <clientId>/profile.json   ClientProfile
    <clientId>/tasks.json     {tasks: [...]}
    <clientId>/meetings.json  {meetings: [...]}
    <clientId>/notes.json     {notes: [...]}
    <clientId>/documents.json {documents: [...]}
    <clientId>/activity.json  {activities: [...]}

New tasks, meetings, notes and documents are prepended so the newest
entries come first. Every mutation is recorded in the client's activity log.
"""

import logging
import re
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...config import config
from ...exceptions import ConflictError, NotFoundError, ValidationError
from ...utils.json_store import read_json, safe_component, store_lock, write_json
from ...utils.timezone_utils import utc_now_iso
from ..schemas import (
    ActivityEntry,
    ClientDocument,
    ClientMeeting,
    ClientNote,
    ClientProfile,
    ClientRegistry,
    ClientRegistryEntry,
    ClientTask,
)

logger = logging.getLogger(__name__)

CLIENTS_DIR = 'clients'
REGISTRY_FILE = 'index.json'
PROFILE_FILE = 'profile.json'

# file name -> top-level key
COLLECTIONS = {
    'tasks.json': 'tasks',
    'meetings.json': 'meetings',
    'notes.json': 'notes',
    'documents.json': 'documents',
    'activity.json': 'activities',
}


def generate_client_id(name: str) -> str:
    """Slugify a client name: 'Acme Corp.' -> 'acme-corp'"""
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def calculate_roi(revenue_generated: float, total_investment: float) -> float:
    """ROI percentage: ((revenue - investment) / investment) * 100, 0 without investment"""
    if total_investment <= 0:
        return 0.0
    return ((revenue_generated - total_investment) / total_investment) * 100


class ClientRepository:
    """Client portfolio CRUD over JSON files"""

    @property
    def root(self) -> Path:
        return config.data_path(CLIENTS_DIR)

    def _client_dir(self, client_id: str) -> Path:
        return self.root / safe_component(client_id, 'client id')

    def _require_client_dir(self, client_id: str) -> Path:
        client_dir = self._client_dir(client_id)
        if not client_dir.is_dir():
            raise NotFoundError('Client not found')
        return client_dir

    # === REGISTRY ===

    def _load_registry(self) -> ClientRegistry:
        data = read_json(self.root / REGISTRY_FILE, default=lambda: None)
        if data is None:
            return ClientRegistry(clients=[], last_updated=utc_now_iso())
        return ClientRegistry.model_validate(data)

    def _save_registry(self, registry: ClientRegistry) -> None:
        registry.last_updated = utc_now_iso()
        write_json(self.root / REGISTRY_FILE, registry.to_dict())

    # === COLLECTIONS ===

    def _read_collection(self, client_id: str, file_name: str) -> List[Dict[str, Any]]:
        client_dir = self._require_client_dir(client_id)
        key = COLLECTIONS[file_name]
        return read_json(client_dir / file_name, default=lambda: {key: []}).get(key, [])

    def _write_collection(self, client_id: str, file_name: str, items: List[Dict[str, Any]]) -> None:
        write_json(self._client_dir(client_id) / file_name, {COLLECTIONS[file_name]: items})

    def _prepend(self, client_id: str, file_name: str, item: Dict[str, Any]) -> None:
        with store_lock:
            items = self._read_collection(client_id, file_name)
            items.insert(0, item)
            self._write_collection(client_id, file_name, items)

    # === CLIENTS ===

    def list_clients(self) -> List[Dict[str, Any]]:
        """All clients; entries without a profile fall back to registry data"""
        clients = []
        for entry in self._load_registry().clients:
            profile_path = self.root / entry.id / PROFILE_FILE
            if profile_path.exists():
                clients.append(ClientProfile.model_validate(read_json(profile_path)).to_dict())
                continue

            logger.warning(f"Profile missing for client {entry.id}, using registry data")
            clients.append({
                'id': entry.id,
                'name': entry.name,
                'tier': entry.tier,
                'industry': 'Unknown',
                'contact': {'name': '', 'email': ''},
                'contract': {'value': 0, 'startDate': '', 'endDate': '', 'status': 'active'},
                'financials': {'arr': 0, 'nrr': 100, 'roi': 0, 'healthScore': 0},
                'contractHealth': 'healthy',
                'tags': [],
                'createdAt': entry.created_at,
                'updatedAt': entry.created_at,
            })
        return clients

    def create_client(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and store a new client profile with empty collections"""
        name = data.get('name') or ''
        client_id = data.get('id') or generate_client_id(name)
        if not client_id:
            raise ValidationError('Client name is required')

        now = utc_now_iso()
        profile = ClientProfile.model_validate({
            **data,
            'id': client_id,
            'createdAt': now,
            'updatedAt': now,
        })

        with store_lock:
            client_dir = self._client_dir(profile.id)
            if client_dir.exists():
                raise ConflictError(f"Client '{profile.id}' already exists")

            client_dir.mkdir(parents=True)
            write_json(client_dir / PROFILE_FILE, profile.to_dict())
            for file_name in COLLECTIONS:
                self._write_collection(profile.id, file_name, [])

            registry = self._load_registry()
            registry.clients.append(ClientRegistryEntry(
                id=profile.id, name=profile.name, tier=profile.tier, created_at=profile.created_at,
            ))
            self._save_registry(registry)

        logger.info(f"Created client {profile.id}")
        self.log_activity(profile.id, 'client-created', f"Client '{profile.name}' created")
        return profile.to_dict()

    def _load_profile(self, client_id: str) -> ClientProfile:
        profile_path = self._client_dir(client_id) / PROFILE_FILE
        if not profile_path.exists():
            raise NotFoundError('Client not found')
        return ClientProfile.model_validate(read_json(profile_path))

    def get_client(self, client_id: str) -> Dict[str, Any]:
        """Client profile with ROI calculated from its financials"""
        profile = self._load_profile(client_id)
        profile.financials.roi = calculate_roi(
            profile.financials.revenue_generated,
            profile.financials.total_investment,
        )
        return profile.to_dict()

    def update_client(self, client_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Merge updates into the profile; id and createdAt cannot change"""
        with store_lock:
            current = self._load_profile(client_id)
            merged = {
                **current.to_dict(),
                **updates,
                'id': current.id,
                'createdAt': current.created_at,
                'updatedAt': utc_now_iso(),
            }
            profile = ClientProfile.model_validate(merged)
            write_json(self._client_dir(client_id) / PROFILE_FILE, profile.to_dict())

            if profile.name != current.name or profile.tier != current.tier:
                registry = self._load_registry()
                for entry in registry.clients:
                    if entry.id == client_id:
                        entry.name = profile.name
                        entry.tier = profile.tier
                self._save_registry(registry)

        self.log_activity(client_id, 'client-updated', f"Client '{profile.name}' updated",
                          {'updatedFields': sorted(updates.keys())})
        return profile.to_dict()

    def delete_client(self, client_id: str) -> str:
        """Remove a client and all its files; returns the client's name"""
        with store_lock:
            client_dir = self._require_client_dir(client_id)
            profile_path = client_dir / PROFILE_FILE
            name = read_json(profile_path).get('name', client_id) if profile_path.exists() else client_id

            registry = self._load_registry()
            registry.clients = [c for c in registry.clients if c.id != client_id]
            self._save_registry(registry)

            shutil.rmtree(client_dir)

        logger.info(f"Deleted client {client_id}")
        return name

    # === TASKS ===

    def list_tasks(self, client_id: str) -> List[Dict[str, Any]]:
        return self._read_collection(client_id, 'tasks.json')

    def create_task(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now_iso()
        task = ClientTask.model_validate({
            'status': 'pending',
            **data,
            'id': _new_id('task'),
            'clientId': client_id,
            'createdAt': now,
            'updatedAt': now,
        })
        self._prepend(client_id, 'tasks.json', task.to_dict())
        self.log_activity(client_id, 'task-created', f"Task '{task.title}' created", {'taskId': task.id})
        return task.to_dict()

    def update_task(self, client_id: str, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge updates into a task.

        completedAt is stamped on the transition to completed, kept while the
        task stays completed and cleared when it is reopened.
        """
        with store_lock:
            tasks = self._read_collection(client_id, 'tasks.json')
            index = next((i for i, t in enumerate(tasks) if t['id'] == task_id), None)
            if index is None:
                raise NotFoundError('Task not found')

            current = tasks[index]
            now = utc_now_iso()
            merged = {**current, **updates, 'id': task_id, 'clientId': client_id,
                      'createdAt': current['createdAt'], 'updatedAt': now}

            was_completed = current.get('status') == 'completed'
            is_completed = merged.get('status') == 'completed'
            if is_completed and not was_completed:
                merged['completedAt'] = now
            elif is_completed:
                merged['completedAt'] = current.get('completedAt') or now
            else:
                merged.pop('completedAt', None)

            task = ClientTask.model_validate(merged)
            tasks[index] = task.to_dict()
            self._write_collection(client_id, 'tasks.json', tasks)

        if is_completed and not was_completed:
            self.log_activity(client_id, 'task-completed', f"Task '{task.title}' completed", {'taskId': task_id})
        else:
            self.log_activity(client_id, 'task-updated', f"Task '{task.title}' updated", {'taskId': task_id})
        return task.to_dict()

    def delete_task(self, client_id: str, task_id: str) -> None:
        with store_lock:
            tasks = self._read_collection(client_id, 'tasks.json')
            task = next((t for t in tasks if t['id'] == task_id), None)
            if task is None:
                raise NotFoundError('Task not found')
            self._write_collection(client_id, 'tasks.json', [t for t in tasks if t['id'] != task_id])

        self.log_activity(client_id, 'task-deleted', f"Task '{task.get('title')}' deleted", {'taskId': task_id})

    # === MEETINGS / NOTES / DOCUMENTS ===

    def list_meetings(self, client_id: str) -> List[Dict[str, Any]]:
        return self._read_collection(client_id, 'meetings.json')

    def create_meeting(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        meeting = ClientMeeting.model_validate({
            **data,
            'id': _new_id('meeting'),
            'clientId': client_id,
            'createdAt': utc_now_iso(),
        })
        self._prepend(client_id, 'meetings.json', meeting.to_dict())
        self.log_activity(client_id, 'meeting-scheduled', f"Meeting '{meeting.title}' scheduled",
                          {'meetingId': meeting.id, 'date': meeting.date})
        return meeting.to_dict()

    def list_notes(self, client_id: str) -> List[Dict[str, Any]]:
        return self._read_collection(client_id, 'notes.json')

    def create_note(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now_iso()
        note = ClientNote.model_validate({
            'category': 'general',
            **data,
            'id': _new_id('note'),
            'clientId': client_id,
            'createdAt': now,
            'updatedAt': now,
        })
        self._prepend(client_id, 'notes.json', note.to_dict())
        self.log_activity(client_id, 'note-created', f"Note '{note.title}' added", {'noteId': note.id})
        return note.to_dict()

    def list_documents(self, client_id: str) -> List[Dict[str, Any]]:
        return self._read_collection(client_id, 'documents.json')

    def create_document(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        document = ClientDocument.model_validate({
            **data,
            'id': _new_id('doc'),
            'clientId': client_id,
            'uploadedAt': utc_now_iso(),
        })
        self._prepend(client_id, 'documents.json', document.to_dict())
        self.log_activity(client_id, 'document-uploaded', f"Document '{document.name}' uploaded",
                          {'documentId': document.id})
        return document.to_dict()

    # === ACTIVITY ===

    def list_activity(self, client_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent activity entries first"""
        activities = self._read_collection(client_id, 'activity.json')
        activities.sort(key=lambda a: a.get('timestamp', ''), reverse=True)
        return activities[:limit]

    def log_activity(self, client_id: str, activity_type: str, description: str,
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record an activity entry; failures are logged and never abort the caller"""
        try:
            entry = ActivityEntry(
                id=_new_id('activity'),
                client_id=client_id,
                type=activity_type,
                description=description,
                metadata=metadata,
                timestamp=utc_now_iso(),
            )
            self._prepend(client_id, 'activity.json', entry.to_dict())
        except Exception as e:
            logger.error(f"Failed to log activity for client {client_id}: {e}", exc_info=True)


# Create singleton instance
client_repository = ClientRepository()
