"""
OTP Routes
Phone verification for the public booking form
"""

from flask import Blueprint, request, jsonify
import logging
from app import db
from services.errors import ServiceError
from services.otp_service import OtpService

logger = logging.getLogger(__name__)

otp_bp = Blueprint('otp', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _internal_error(action, error):
    logger.error(f"OTP {action} error: {str(error)}")
    db.session.rollback()
    return jsonify({
        'success': False,
        'error': 'INTERNAL_ERROR',
        'message': f'Failed to {action} OTP'
    }), 500


@otp_bp.route('/send', methods=['POST'])
def send_otp():
    """Issue a verification code for a phone number"""
    try:
        data = _json_body()
        success, error, result = OtpService().send(data.get('phone'))
        if not success:
            return error.to_response()

        response = {
            'success': True,
            'message': 'OTP sent successfully',
            'expires_in_minutes': result['expires_in_minutes']
        }
        if 'otp' in result:
            response['otp'] = result['otp']
        return jsonify(response)

    except Exception as e:
        return _internal_error('send', e)


@otp_bp.route('/verify', methods=['POST'])
def verify_otp():
    try:
        data = _json_body()
        success, error, result = OtpService().verify(data.get('phone'), data.get('otp'))
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Phone number verified', 'verified': True})

    except Exception as e:
        return _internal_error('verify', e)


@otp_bp.route('/status/<phone>', methods=['GET'])
def otp_status(phone):
    """Whether the phone may currently place a booking"""
    try:
        status = OtpService().check_status(phone)
        return jsonify({'success': True, 'verified': status['verified']})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('check', e)
