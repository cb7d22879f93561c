from functools import wraps
import logging
from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import (
    create_access_token, get_jwt_identity, get_jwt, verify_jwt_in_request
)
from werkzeug.security import check_password_hash, generate_password_hash
from app import db
from models import Admin

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

ADMIN_ROLES = ('admin', 'super_admin')


def hash_password(password):
    return generate_password_hash(password)


def issue_admin_token(admin):
    """Bearer token carrying the admin id plus email and role claims"""
    return create_access_token(
        identity=str(admin.id),
        additional_claims={'email': admin.email, 'role': admin.role}
    )


def get_current_admin():
    """Admin behind the verified token, or None"""
    identity = get_jwt_identity()
    try:
        admin = db.session.get(Admin, int(identity)) if identity else None
    except (TypeError, ValueError):
        admin = None
    return admin


def admin_required(f):
    """Require a valid admin bearer token; exposes the admin on flask.g"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt()
        admin = get_current_admin()
        if not admin or claims.get('role') not in ADMIN_ROLES:
            return jsonify({
                'success': False,
                'error': 'UNAUTHORIZED',
                'message': 'Admin access required'
            }), 401
        g.admin_email = admin.email
        return f(*args, **kwargs)
    return decorated_function


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange admin email and password for an access token"""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            return jsonify({'success': False, 'error': 'VALIDATION_ERROR', 'message': 'JSON data required'}), 400

        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''
        if not email or not password:
            return jsonify({
                'success': False,
                'error': 'VALIDATION_ERROR',
                'message': 'Email and password are required'
            }), 400

        admin = Admin.query.filter_by(email=email).first()
        if not admin or not check_password_hash(admin.password_hash, password):
            # Same answer for unknown email and wrong password
            logger.warning(f"Failed admin login for {email}")
            return jsonify({
                'success': False,
                'error': 'UNAUTHORIZED',
                'message': 'Invalid email or password'
            }), 401

        token = issue_admin_token(admin)
        logger.info(f"Admin logged in: {admin.email}")
        return jsonify({
            'success': True,
            'token': token,
            'admin': admin.to_dict()
        })

    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        return jsonify({'success': False, 'error': 'INTERNAL_ERROR', 'message': 'Login failed'}), 500


@auth_bp.route('/me', methods=['GET'])
@admin_required
def me():
    return jsonify({'success': True, 'admin': get_current_admin().to_dict()})
