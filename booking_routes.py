from flask import Blueprint, request, jsonify, g
import logging
from app import db
from auth import admin_required
from services.errors import ServiceError
from services.booking_service import BookingService

logger = logging.getLogger(__name__)

public_booking_bp = Blueprint('public_bookings', __name__)
admin_booking_bp = Blueprint('admin_bookings', __name__)


def _internal_error(action, error):
    logger.error(f"Error trying to {action}: {str(error)}")
    db.session.rollback()
    return jsonify({
        'success': False,
        'error': 'INTERNAL_ERROR',
        'message': f'Failed to {action}'
    }), 500


def _json_body():
    # Object bodies only; arrays and scalars read as empty
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@public_booking_bp.route('', methods=['POST'])
def create_public_booking():
    """Booking form submission; the phone must have passed OTP verification"""
    try:
        success, error, booking = BookingService().create_booking(_json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'booking': booking.to_dict()}), 201
    except Exception as e:
        return _internal_error('create booking', e)


@admin_booking_bp.route('', methods=['GET'])
@admin_required
def list_bookings():
    try:
        bookings = BookingService().list_bookings(status=request.args.get('status'))
        return jsonify({
            'success': True,
            'bookings': [booking.to_dict(include_events=True) for booking in bookings]
        })
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch bookings', e)


@admin_booking_bp.route('', methods=['POST'])
@admin_required
def create_booking():
    try:
        success, error, booking = BookingService().create_booking(_json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'booking': booking.to_dict()}), 201
    except Exception as e:
        return _internal_error('create booking', e)


@admin_booking_bp.route('/<int:booking_id>', methods=['GET'])
@admin_required
def get_booking(booking_id):
    try:
        booking = BookingService().get_booking(booking_id)
        if not booking:
            return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Booking not found'}), 404
        return jsonify({'success': True, 'booking': booking.to_dict(include_events=True)})
    except Exception as e:
        return _internal_error('fetch booking', e)


@admin_booking_bp.route('/<int:booking_id>', methods=['PATCH'])
@admin_required
def update_booking(booking_id):
    try:
        success, error, booking = BookingService().update_booking(booking_id, _json_body(), g.admin_email)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'booking': booking.to_dict()})
    except Exception as e:
        return _internal_error('update booking', e)


@admin_booking_bp.route('/<int:booking_id>/status', methods=['PATCH'])
@admin_required
def change_booking_status(booking_id):
    try:
        status = _json_body().get('status')
        if not status:
            return jsonify({'success': False, 'error': 'VALIDATION_ERROR', 'message': 'status is required'}), 400
        success, error, booking = BookingService().change_status(booking_id, status, g.admin_email)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'booking': booking.to_dict()})
    except Exception as e:
        return _internal_error('update booking status', e)


@admin_booking_bp.route('/<int:booking_id>/assign', methods=['PATCH'])
@admin_required
def assign_booking(booking_id):
    """Attach an available ambulance and driver"""
    try:
        data = _json_body()
        success, error, booking = BookingService().assign(
            booking_id, data.get('ambulance_id'), data.get('driver_id'), g.admin_email
        )
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'booking': booking.to_dict()})
    except Exception as e:
        return _internal_error('assign booking', e)


@admin_booking_bp.route('/<int:booking_id>', methods=['DELETE'])
@admin_required
def delete_booking(booking_id):
    try:
        success, error, _ = BookingService().delete_booking(booking_id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Booking deleted successfully'})
    except Exception as e:
        return _internal_error('delete booking', e)


@admin_booking_bp.route('/<int:booking_id>/events', methods=['GET'])
@admin_required
def booking_events(booking_id):
    try:
        events = BookingService().get_events(booking_id)
        if events is None:
            return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Booking not found'}), 404
        return jsonify({'success': True, 'events': [event.to_dict() for event in events]})
    except Exception as e:
        return _internal_error('fetch booking events', e)


@admin_booking_bp.route('/available/ambulances', methods=['GET'])
@admin_required
def assignable_ambulances():
    try:
        ambulances = BookingService().list_assignable_ambulances()
        return jsonify({'success': True, 'ambulances': [ambulance.to_dict() for ambulance in ambulances]})
    except Exception as e:
        return _internal_error('fetch available ambulances', e)


@admin_booking_bp.route('/available/drivers', methods=['GET'])
@admin_required
def assignable_drivers():
    try:
        drivers = BookingService().list_assignable_drivers()
        return jsonify({'success': True, 'drivers': [driver.to_dict() for driver in drivers]})
    except Exception as e:
        return _internal_error('fetch available drivers', e)
