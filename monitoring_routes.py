from flask import Blueprint, request, jsonify
import logging
from app import db
from auth import admin_required
from services.monitoring_service import MonitoringService, DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)

monitoring_bp = Blueprint('monitoring', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _internal_error(action, error):
    logger.error(f"Error trying to {action}: {str(error)}")
    db.session.rollback()
    return jsonify({
        'success': False,
        'error': 'INTERNAL_ERROR',
        'message': f'Failed to {action}'
    }), 500


@monitoring_bp.route('/ambulances', methods=['GET'])
@admin_required
def tracked_ambulances():
    """Ambulances with a known position for the live map"""
    try:
        return jsonify({'success': True, 'ambulances': MonitoringService().list_tracked_ambulances()})
    except Exception as e:
        return _internal_error('fetch ambulances', e)


@monitoring_bp.route('/ambulances/<int:ambulance_id>/location', methods=['POST'])
@admin_required
def update_location(ambulance_id):
    try:
        data = _json_body()
        success, error, ambulance = MonitoringService().update_location(ambulance_id, data)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'ambulance': ambulance.to_dict()})
    except Exception as e:
        return _internal_error('update ambulance location', e)


@monitoring_bp.route('/ambulances/<int:ambulance_id>/location-history', methods=['GET'])
@admin_required
def location_history(ambulance_id):
    try:
        limit = request.args.get('limit', DEFAULT_HISTORY_LIMIT, type=int)
        history = MonitoringService().location_history(ambulance_id, limit=max(limit, 1))
        if history is None:
            return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Ambulance not found'}), 404
        return jsonify({'success': True, 'locations': [location.to_dict() for location in history]})
    except Exception as e:
        return _internal_error('fetch location history', e)


@monitoring_bp.route('/active-rides', methods=['GET'])
@admin_required
def active_rides():
    try:
        rides = MonitoringService().active_rides()
        return jsonify({'success': True, 'rides': [booking.to_dict() for booking in rides]})
    except Exception as e:
        return _internal_error('fetch active rides', e)


@monitoring_bp.route('/status-overview', methods=['GET'])
@admin_required
def status_overview():
    try:
        return jsonify({'success': True, **MonitoringService().status_overview()})
    except Exception as e:
        return _internal_error('fetch status overview', e)
