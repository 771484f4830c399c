"""
Prospect Pipeline Routes

CRUD, stage moves and follow-ups for the outreach pipeline, plus analytics
and the sync / export / import bridge to the outreach system.
"""

import logging

import pandas as pd
from flask import Blueprint, Response, jsonify, request

from ...auth import enforce_session
from ...exceptions import ValidationError
from ...utils.http_utils import error_response, get_json_body
from ...utils.timezone_utils import utc_now_iso
from ..services import prospect_repository
from ..services.outreach_client import fetch_outreach_prospects
from ..services.outreach_mapper import OUTREACH_FIELDS, outreach_to_prospect, prospect_to_outreach
from ..services.pipeline_analytics import get_pipeline_analytics

logger = logging.getLogger(__name__)

# Create Blueprint for prospect routes
prospects_bp = Blueprint('prospects', __name__, url_prefix='/api')
prospects_bp.before_request(enforce_session)


def _prospects_list(data):
    prospects = data.get('prospects')
    if not isinstance(prospects, list):
        raise ValidationError('Invalid request: prospects must be an array')
    return prospects


# === PROSPECTS ===

@prospects_bp.route('/prospects', methods=['GET'])
def list_prospects():
    """List prospects (?q=&stage=&priority=)"""
    try:
        prospects = prospect_repository.list_prospects(
            q=request.args.get('q'),
            stage=request.args.get('stage'),
            priority=request.args.get('priority'),
        )
        return jsonify({'success': True, 'prospects': prospects, 'count': len(prospects)})
    except Exception as e:
        return error_response(e, 'fetching prospects')


@prospects_bp.route('/prospects', methods=['POST'])
def create_prospect():
    try:
        prospect = prospect_repository.add_prospect(get_json_body())
        return jsonify({'success': True, 'prospect': prospect}), 201
    except Exception as e:
        return error_response(e, 'creating prospect')


@prospects_bp.route('/prospects/<prospect_id>', methods=['GET'])
def get_prospect(prospect_id):
    try:
        return jsonify({'success': True, 'prospect': prospect_repository.get_prospect(prospect_id)})
    except Exception as e:
        return error_response(e, 'fetching prospect')


@prospects_bp.route('/prospects/<prospect_id>', methods=['PUT'])
def update_prospect(prospect_id):
    try:
        prospect = prospect_repository.update_prospect(prospect_id, get_json_body())
        return jsonify({'success': True, 'prospect': prospect})
    except Exception as e:
        return error_response(e, 'updating prospect')


@prospects_bp.route('/prospects/<prospect_id>', methods=['DELETE'])
def delete_prospect(prospect_id):
    try:
        prospect_repository.delete_prospect(prospect_id)
        return jsonify({'success': True, 'message': 'Prospect deleted successfully'})
    except Exception as e:
        return error_response(e, 'deleting prospect')


@prospects_bp.route('/prospects/<prospect_id>/stage', methods=['POST'])
def move_prospect(prospect_id):
    """Move a prospect to another pipeline stage"""
    try:
        stage = get_json_body().get('stage')
        if not stage:
            raise ValidationError('stage is required')
        prospect = prospect_repository.move_to_stage(prospect_id, stage)
        return jsonify({'success': True, 'prospect': prospect})
    except Exception as e:
        return error_response(e, 'moving prospect')


# === FOLLOW-UPS ===

@prospects_bp.route('/prospects/<prospect_id>/follow-ups', methods=['POST'])
def add_follow_up(prospect_id):
    try:
        follow_up = prospect_repository.add_follow_up(prospect_id, get_json_body())
        return jsonify({'success': True, 'followUp': follow_up}), 201
    except Exception as e:
        return error_response(e, 'adding follow-up')


@prospects_bp.route('/prospects/<prospect_id>/follow-ups/<follow_up_id>', methods=['PATCH'])
def update_follow_up(prospect_id, follow_up_id):
    try:
        follow_up = prospect_repository.update_follow_up(prospect_id, follow_up_id, get_json_body())
        return jsonify({'success': True, 'followUp': follow_up})
    except Exception as e:
        return error_response(e, 'updating follow-up')


@prospects_bp.route('/prospects/<prospect_id>/follow-ups/<follow_up_id>', methods=['DELETE'])
def delete_follow_up(prospect_id, follow_up_id):
    try:
        prospect_repository.delete_follow_up(prospect_id, follow_up_id)
        return jsonify({'success': True, 'message': 'Follow-up deleted successfully'})
    except Exception as e:
        return error_response(e, 'deleting follow-up')


@prospects_bp.route('/prospects/<prospect_id>/follow-ups/<follow_up_id>/complete', methods=['POST'])
def complete_follow_up(prospect_id, follow_up_id):
    try:
        follow_up = prospect_repository.complete_follow_up(prospect_id, follow_up_id)
        return jsonify({'success': True, 'followUp': follow_up})
    except Exception as e:
        return error_response(e, 'completing follow-up')


@prospects_bp.route('/prospects/follow-ups/pending', methods=['GET'])
def pending_follow_ups():
    try:
        pending = prospect_repository.get_pending_follow_ups()
        return jsonify({'success': True, 'followUps': pending, 'count': len(pending)})
    except Exception as e:
        return error_response(e, 'fetching pending follow-ups')


# === ANALYTICS ===

@prospects_bp.route('/prospects/analytics', methods=['GET'])
def analytics():
    """Pipeline analytics over all stored prospects (?days= for the trend window)"""
    try:
        days = request.args.get('days', default=30, type=int)
        if days < 1 or days > 365:
            raise ValidationError('days must be between 1 and 365')
        prospects = prospect_repository.list_prospects()
        return jsonify({'success': True, 'analytics': get_pipeline_analytics(prospects, days)})
    except Exception as e:
        return error_response(e, 'calculating pipeline analytics')


# === OUTREACH SYNC ===

@prospects_bp.route('/prospects/sync', methods=['GET'])
def sync_status():
    """Describe the payload the sync endpoint accepts"""
    return jsonify({
        'status': 'ready',
        'endpoint': '/api/prospects/sync',
        'method': 'POST',
        'expectedFormat': {
            'prospects': [
                {
                    'prospect_id': 'string',
                    'first_name': 'string',
                    'last_name': 'string',
                    'email': 'string',
                    'company': 'string',
                    'title': 'string',
                    'status': 'Contacted | Replied | Meeting | Qualified | Won | Lost',
                }
            ]
        },
    })


@prospects_bp.route('/prospects/sync', methods=['POST'])
def sync_prospects():
    """Map outreach-system records to prospects and persist them"""
    try:
        records = _prospects_list(get_json_body())
        mapped = [outreach_to_prospect(record) for record in records]
        saved, added, updated = prospect_repository.upsert_many(mapped)

        logger.info(f"Synced {len(saved)} prospects from outreach ({added} new, {updated} updated)")
        return jsonify({
            'success': True,
            'message': f"Successfully synced {len(saved)} prospects",
            'prospects': saved,
            'syncedAt': utc_now_iso(),
        })
    except Exception as e:
        return error_response(e, 'syncing prospects')


def _export_response(prospects, export_format):
    records = [prospect_to_outreach(p) for p in prospects]

    if export_format == 'csv':
        csv_text = pd.DataFrame(records, columns=OUTREACH_FIELDS).to_csv(index=False)
        return Response(
            csv_text,
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=prospects-outreach.csv'},
        )

    return jsonify({
        'success': True,
        'count': len(records),
        'prospects': records,
        'exportedAt': utc_now_iso(),
    })


@prospects_bp.route('/prospects/export', methods=['GET'])
def export_stored_prospects():
    """Export stored prospects in outreach format (?format=json|csv)"""
    try:
        export_format = request.args.get('format', 'json')
        if export_format not in ('json', 'csv'):
            raise ValidationError('format must be json or csv')
        return _export_response(prospect_repository.list_prospects(), export_format)
    except Exception as e:
        return error_response(e, 'exporting prospects')


@prospects_bp.route('/prospects/export', methods=['POST'])
def export_posted_prospects():
    """Format a posted prospect list for the outreach system"""
    try:
        data = get_json_body()
        return _export_response(_prospects_list(data), data.get('format', 'json'))
    except Exception as e:
        return error_response(e, 'exporting prospects')


@prospects_bp.route('/import-outreach', methods=['GET'])
def import_outreach():
    """Pull prospects from the outreach system and persist them"""
    try:
        records = fetch_outreach_prospects()
        saved, added, updated = prospect_repository.upsert_many(
            [outreach_to_prospect(record) for record in records])
        logger.info(f"Imported {len(saved)} prospects ({added} new, {updated} updated)")
        return jsonify({'success': True, 'prospects': saved, 'count': len(saved)})
    except Exception as e:
        return error_response(e, 'importing prospects')
