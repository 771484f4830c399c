"""
Client Portfolio Routes

CRUD for client profiles and their tasks, meetings, notes, documents and
activity log.
"""

import logging

from flask import Blueprint, jsonify, request

from ...auth import enforce_session
from ...utils.http_utils import error_response, get_json_body
from ..services.client_repository import client_repository

logger = logging.getLogger(__name__)

# Create Blueprint for client routes
clients_bp = Blueprint('clients', __name__, url_prefix='/api/clients')
clients_bp.before_request(enforce_session)


# === CLIENTS ===

@clients_bp.route('', methods=['GET'])
def list_clients():
    """List all clients"""
    try:
        return jsonify({'success': True, 'clients': client_repository.list_clients()})
    except Exception as e:
        return error_response(e, 'fetching clients')


@clients_bp.route('', methods=['POST'])
def create_client():
    """Create a new client"""
    try:
        client = client_repository.create_client(get_json_body())
        return jsonify({'success': True, 'client': client}), 201
    except Exception as e:
        return error_response(e, 'creating client')


@clients_bp.route('/<client_id>', methods=['GET'])
def get_client(client_id):
    """Get a client with calculated ROI"""
    try:
        return jsonify({'success': True, 'client': client_repository.get_client(client_id)})
    except Exception as e:
        return error_response(e, 'fetching client')


@clients_bp.route('/<client_id>', methods=['PUT'])
def update_client(client_id):
    try:
        client = client_repository.update_client(client_id, get_json_body())
        return jsonify({'success': True, 'client': client})
    except Exception as e:
        return error_response(e, 'updating client')


@clients_bp.route('/<client_id>', methods=['DELETE'])
def delete_client(client_id):
    try:
        name = client_repository.delete_client(client_id)
        return jsonify({'success': True, 'message': f"Client '{name}' deleted successfully"})
    except Exception as e:
        return error_response(e, 'deleting client')


# === TASKS ===

@clients_bp.route('/<client_id>/tasks', methods=['GET'])
def list_tasks(client_id):
    try:
        return jsonify({'success': True, 'tasks': client_repository.list_tasks(client_id)})
    except Exception as e:
        return error_response(e, 'fetching tasks')


@clients_bp.route('/<client_id>/tasks', methods=['POST'])
def create_task(client_id):
    try:
        task = client_repository.create_task(client_id, get_json_body())
        return jsonify({'success': True, 'task': task}), 201
    except Exception as e:
        return error_response(e, 'creating task')


@clients_bp.route('/<client_id>/tasks/<task_id>', methods=['PUT'])
def update_task(client_id, task_id):
    try:
        task = client_repository.update_task(client_id, task_id, get_json_body())
        return jsonify({'success': True, 'task': task})
    except Exception as e:
        return error_response(e, 'updating task')


@clients_bp.route('/<client_id>/tasks/<task_id>', methods=['DELETE'])
def delete_task(client_id, task_id):
    try:
        client_repository.delete_task(client_id, task_id)
        return jsonify({'success': True, 'message': 'Task deleted successfully'})
    except Exception as e:
        return error_response(e, 'deleting task')


# === MEETINGS / NOTES / DOCUMENTS ===

@clients_bp.route('/<client_id>/meetings', methods=['GET'])
def list_meetings(client_id):
    try:
        return jsonify({'success': True, 'meetings': client_repository.list_meetings(client_id)})
    except Exception as e:
        return error_response(e, 'fetching meetings')


@clients_bp.route('/<client_id>/meetings', methods=['POST'])
def create_meeting(client_id):
    try:
        meeting = client_repository.create_meeting(client_id, get_json_body())
        return jsonify({'success': True, 'meeting': meeting}), 201
    except Exception as e:
        return error_response(e, 'creating meeting')


@clients_bp.route('/<client_id>/notes', methods=['GET'])
def list_notes(client_id):
    try:
        return jsonify({'success': True, 'notes': client_repository.list_notes(client_id)})
    except Exception as e:
        return error_response(e, 'fetching notes')


@clients_bp.route('/<client_id>/notes', methods=['POST'])
def create_note(client_id):
    try:
        note = client_repository.create_note(client_id, get_json_body())
        return jsonify({'success': True, 'note': note}), 201
    except Exception as e:
        return error_response(e, 'creating note')


@clients_bp.route('/<client_id>/documents', methods=['GET'])
def list_documents(client_id):
    try:
        return jsonify({'success': True, 'documents': client_repository.list_documents(client_id)})
    except Exception as e:
        return error_response(e, 'fetching documents')


@clients_bp.route('/<client_id>/documents', methods=['POST'])
def create_document(client_id):
    try:
        document = client_repository.create_document(client_id, get_json_body())
        return jsonify({'success': True, 'document': document}), 201
    except Exception as e:
        return error_response(e, 'creating document')


# === ACTIVITY ===

@clients_bp.route('/<client_id>/activity', methods=['GET'])
def list_activity(client_id):
    """Activity log, newest first (?limit=, default 50)"""
    try:
        limit = request.args.get('limit', default=50, type=int)
        return jsonify({'success': True, 'activities': client_repository.list_activity(client_id, limit)})
    except Exception as e:
        return error_response(e, 'fetching activity')
