"""
Calendar API Routes

Local calendar events plus two-way Google Calendar sync:
- /google/sync and /google/events act directly on the connected Google Calendar
- /events manages the local store, pushing changes to Google when connected
"""

import logging

from flask import Blueprint, g, jsonify, request

from ...auth import enforce_session
from ...exceptions import NotFoundError, ValidationError
from ...oauth.services.token_refresh import is_connected
from ...utils.http_utils import error_response, get_json_body
from ..services import event_repository, sync_metadata_repository, sync_service
from ..services.event_mapper import CalendarEvent

logger = logging.getLogger(__name__)

# Create Blueprint for calendar routes
calendar_bp = Blueprint('calendar', __name__, url_prefix='/api/calendar')
calendar_bp.before_request(enforce_session)

EVENT_FIELDS = ('title', 'description', 'date', 'startTime', 'endTime', 'color', 'type')


def _not_connected():
    return jsonify({'success': False, 'error': 'Google Calendar not connected'}), 401


def _event_from_body(data, event_id=None):
    if not data.get('title') or not data.get('date'):
        raise ValidationError('title and date are required')
    fields = {key: data[key] for key in EVENT_FIELDS if data.get(key) is not None}
    return CalendarEvent.model_validate({**fields, 'id': event_id or event_repository.new_event_id()})


# === GOOGLE CALENDAR ===

@calendar_bp.route('/google/sync', methods=['GET'])
def sync_google_calendar():
    """Pull changes from Google Calendar (incremental when possible)"""
    try:
        if not is_connected(g.user_id):
            return _not_connected()

        result = sync_service.sync_user_calendar(g.user_id)
        return jsonify(result.to_dict())

    except Exception as e:
        return error_response(e, 'syncing Google Calendar')


@calendar_bp.route('/google/events', methods=['POST'])
def create_google_event():
    """Create an event directly in Google Calendar"""
    try:
        if not is_connected(g.user_id):
            return _not_connected()

        event = _event_from_body(get_json_body())
        synced = sync_service.push_local_event(g.user_id, event)
        event_repository.add_event(g.user_id, synced)
        return jsonify({'success': True, 'event': synced.to_dict()}), 201

    except Exception as e:
        return error_response(e, 'creating Google Calendar event')


@calendar_bp.route('/google/events/<event_id>', methods=['PATCH'])
def update_google_event(event_id):
    """Update a mapped event in Google Calendar"""
    try:
        if not is_connected(g.user_id):
            return _not_connected()

        data = get_json_body()
        google_event_id = data.get('googleEventId') or \
            sync_metadata_repository.get_google_event_id(g.user_id, event_id)
        if not google_event_id:
            raise ValidationError('googleEventId is required')

        event = _event_from_body(data, event_id).model_copy(
            update={'google_event_id': google_event_id, 'source': 'google'}
        )
        synced = sync_service.push_local_update(g.user_id, event)

        try:
            event_repository.save_event(g.user_id, synced)
        except NotFoundError:
            event_repository.add_event(g.user_id, synced)

        return jsonify({'success': True, 'event': synced.to_dict()})

    except Exception as e:
        return error_response(e, 'updating Google Calendar event')


@calendar_bp.route('/google/events/<event_id>', methods=['DELETE'])
def delete_google_event(event_id):
    """Delete an event from Google Calendar"""
    try:
        if not is_connected(g.user_id):
            return _not_connected()

        google_event_id = request.args.get('googleEventId') or \
            sync_metadata_repository.get_google_event_id(g.user_id, event_id)
        if not google_event_id:
            raise ValidationError('googleEventId is required')

        sync_service.remove_google_event(g.user_id, event_id, google_event_id)

        try:
            event_repository.delete_event(g.user_id, event_id)
        except NotFoundError:
            logger.debug(f"Event {event_id} was not stored locally")

        return jsonify({'success': True})

    except Exception as e:
        return error_response(e, 'deleting Google Calendar event')


# === LOCAL EVENTS ===

@calendar_bp.route('/events', methods=['GET'])
def list_events():
    """List local events, optionally for one day (?date=) or month (?month=)"""
    try:
        events = event_repository.list_events(
            g.user_id,
            date=request.args.get('date'),
            month=request.args.get('month'),
        )
        return jsonify({'success': True, 'events': [e.to_dict() for e in events]})

    except Exception as e:
        return error_response(e, 'listing calendar events')


@calendar_bp.route('/events', methods=['POST'])
def create_event():
    """Create a local event, pushing it to Google when connected"""
    try:
        data = get_json_body()
        event = _event_from_body(data)

        if data.get('syncToGoogle', True) and is_connected(g.user_id):
            try:
                event = sync_service.push_local_event(g.user_id, event)
            except Exception as e:
                logger.error(f"Failed to push event to Google: {e}", exc_info=True)
                event = event.model_copy(update={'sync_status': 'error'})

        event_repository.add_event(g.user_id, event)
        return jsonify({'success': True, 'event': event.to_dict()}), 201

    except Exception as e:
        return error_response(e, 'creating calendar event')


@calendar_bp.route('/events/<event_id>', methods=['PUT'])
def update_event(event_id):
    """Update a local event; Google-backed events are pushed as well"""
    try:
        data = get_json_body()
        updates = {key: data[key] for key in EVENT_FIELDS if key in data}
        event = event_repository.update_event(g.user_id, event_id, updates)

        if event.google_event_id and is_connected(g.user_id):
            event = event_repository.save_event(g.user_id, event.model_copy(update={'sync_status': 'pending'}))
            try:
                event = sync_service.push_local_update(g.user_id, event)
            except Exception as e:
                logger.error(f"Failed to push update of {event_id} to Google: {e}", exc_info=True)
                event = event.model_copy(update={'sync_status': 'error'})
            event_repository.save_event(g.user_id, event)

        return jsonify({'success': True, 'event': event.to_dict()})

    except Exception as e:
        return error_response(e, 'updating calendar event')


@calendar_bp.route('/events/<event_id>', methods=['DELETE'])
def delete_event(event_id):
    """Delete a local event and its Google copy"""
    try:
        event = event_repository.get_event(g.user_id, event_id)
        if event.google_event_id and is_connected(g.user_id):
            sync_service.remove_google_event(g.user_id, event.id, event.google_event_id)

        event_repository.delete_event(g.user_id, event_id)
        return jsonify({'success': True})

    except Exception as e:
        return error_response(e, 'deleting calendar event')
