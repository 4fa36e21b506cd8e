"""
Application Factory - QR Meeting Attendance

Builds the Flask application: configuration, logging, CORS, the manager
components, routes and JSON error handlers.
"""

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging

from .config import get_config
from .modules.database_manager import DatabaseManager
from .modules.qr_generator import QRGenerator
from .modules.auth_manager import AuthManager
from .modules.meeting_manager import MeetingManager
from .modules.attendance_manager import AttendanceManager
from .modules.member_manager import MemberManager
from .modules.report_generator import ReportGenerator
from .modules.geolocation import LocationResolver
from .routes import api

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'

logger = logging.getLogger(__name__)


def create_app(config_name=None, config_overrides=None, location_resolver=None):
    """
    Create and configure the application.

    Args:
        config_name (str): development, testing or production; defaults to FLASK_ENV
        config_overrides (dict): Values applied on top of the configuration class
        location_resolver: Replaces the network location lookup

    Returns:
        Flask: Configured application
    """
    config_class = get_config(config_name)

    app = Flask(__name__)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)
    config_class.init_app(app)
    app.json.sort_keys = False

    logging.basicConfig(level=app.config['LOG_LEVEL'], format=LOG_FORMAT)

    CORS(app, origins=app.config['CORS_ORIGINS'])

    # Initialize system components
    db_manager = DatabaseManager(app.config['DATABASE_PATH'])
    qr_generator = QRGenerator(
        code_length=app.config['SCAN_CODE_LENGTH'],
        max_attempts=app.config['SCAN_CODE_MAX_ATTEMPTS']
    )
    auth_manager = AuthManager(
        db_manager,
        secret=app.config['JWT_SECRET'],
        algorithm=app.config['JWT_ALGORITHM'],
        token_expiry=app.config['JWT_EXPIRY'],
        password_hash_method=app.config['PASSWORD_HASH_METHOD'],
        password_min_length=app.config['PASSWORD_MIN_LENGTH']
    )
    meeting_manager = MeetingManager(
        db_manager, qr_generator,
        default_allowed_radius=app.config['DEFAULT_ALLOWED_RADIUS']
    )
    if location_resolver is None:
        location_resolver = LocationResolver(
            lookup_url=app.config['LOCATION_LOOKUP_URL'],
            timeout=app.config['LOCATION_LOOKUP_TIMEOUT'],
            enabled=app.config['LOCATION_LOOKUP_ENABLED'],
            local_label=app.config['LOCAL_NETWORK_LABEL']
        )
    attendance_manager = AttendanceManager(db_manager, meeting_manager, location_resolver)
    member_manager = MemberManager(db_manager, auth_manager)
    report_generator = ReportGenerator(attendance_manager)

    if auth_manager.ensure_admin(app.config['ADMIN_NAME'], app.config['ADMIN_EMAIL'],
                                 app.config['ADMIN_PASSWORD']):
        logger.info(f"Seeded admin account {app.config['ADMIN_EMAIL']}")

    app.extensions['meeting_attendance'] = {
        'db_manager': db_manager,
        'qr_generator': qr_generator,
        'auth_manager': auth_manager,
        'meeting_manager': meeting_manager,
        'attendance_manager': attendance_manager,
        'member_manager': member_manager,
        'report_generator': report_generator
    }

    app.register_blueprint(api)
    register_error_handlers(app)

    return app


def register_error_handlers(app):
    """JSON bodies for HTTP errors and an opaque 500 for anything unexpected"""

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({
            'success': False,
            'message': e.description,
            'error_type': e.name.lower().replace(' ', '_')
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.error(f"Unhandled error: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'An internal error occurred',
            'error_type': 'system_error'
        }), 500
