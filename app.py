import os
import logging
from datetime import datetime, timedelta, timezone
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_compress import Compress
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    pass

db = SQLAlchemy(model_class=Base)
jwt = JWTManager()
compress = Compress()

def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')

def create_app(config_overrides=None):
    # Create the app
    app = Flask(__name__)
    # Enforce SESSION_SECRET requirement
    app.secret_key = os.environ.get("SESSION_SECRET")
    if not app.secret_key:
        raise RuntimeError("SESSION_SECRET environment variable is required but not set")
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # CORS Configuration (restricted origins)
    production_origins = os.environ.get('ALLOWED_ORIGINS', '').split(',')
    allowed_origins = [origin.strip() for origin in production_origins if origin.strip()]

    # Fallback to the admin panel dev server if no origins set
    if not allowed_origins:
        allowed_origins = ["http://localhost:5173", "http://127.0.0.1:5173"]

    CORS(app, origins=allowed_origins,
         supports_credentials=False,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"])

    app.config['COMPRESS_MIMETYPES'] = ['application/json']
    app.config['COMPRESS_LEVEL'] = 6
    app.config['COMPRESS_MIN_SIZE'] = 500

    # Configure the database - PostgreSQL in production, SQLite for development
    database_url = os.environ.get("DATABASE_URL") or "sqlite:///ambulance_dispatch.db"

    if database_url.startswith(("postgresql://", "postgres://")):
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        database_url = database_url.replace("postgresql://", "postgresql+psycopg2://", 1)

        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 280,  # Slightly less than 5 minutes to prevent stale connections
            "pool_pre_ping": True,
            "max_overflow": 15,
            "pool_timeout": 20,
            "connect_args": {
                "connect_timeout": 10,
                "application_name": "ambulance_dispatch",
            }
        }
    else:
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_pre_ping": True,
        }

    # JWT Configuration
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY') or app.secret_key
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=8)
    app.config['JWT_ALGORITHM'] = 'HS256'

    # Domain switches
    app.config['OTP_TEST_MODE'] = _env_flag('OTP_TEST_MODE')
    app.config['STRICT_DRIVER_CONFLICTS'] = _env_flag('STRICT_DRIVER_CONFLICTS')

    if config_overrides:
        app.config.update(config_overrides)

    from utils.logging_config import setup_logging, log_request_start, log_request_end
    if not app.config.get('TESTING'):
        setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    jwt.init_app(app)
    compress.init_app(app)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'success': False, 'error': 'UNAUTHORIZED', 'message': 'Missing authorization'}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'success': False, 'error': 'UNAUTHORIZED', 'message': 'Invalid token'}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({'success': False, 'error': 'UNAUTHORIZED', 'message': 'Token has expired'}), 401

    # Register blueprints
    from auth import auth_bp
    from otp_routes import otp_bp
    from booking_routes import public_booking_bp, admin_booking_bp
    from admin_routes import admin_bp
    from monitoring_routes import monitoring_bp

    app.register_blueprint(auth_bp, url_prefix='/admin')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(admin_booking_bp, url_prefix='/admin/bookings')
    app.register_blueprint(monitoring_bp, url_prefix='/admin/monitoring')
    app.register_blueprint(otp_bp, url_prefix='/otp')
    app.register_blueprint(public_booking_bp, url_prefix='/bookings')

    app.before_request(log_request_start)
    app.after_request(log_request_end)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'METHOD_NOT_ALLOWED', 'message': 'Method not allowed'}), 405

    # Check OTP system configuration on startup
    from utils.config_validator import get_otp_config_status
    logger.info(f"OTP Configuration: {get_otp_config_status()}")

    with app.app_context():
        import models  # noqa: F401
        db.create_all()

        # Only create demo data if explicitly enabled
        if _env_flag('DEMO_SEED'):
            from database_commands import seed_demo_data
            seed_demo_data()

    # Health check endpoint for deployment
    @app.route('/health')
    def health():
        """Simple health check endpoint for deployment readiness"""
        return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()}, 200

    return app
