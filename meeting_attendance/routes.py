"""
HTTP Routes - QR Meeting Attendance

JSON API consumed by the attendance dashboard. Every response carries ``success``
and ``message``; failures add ``error_type`` and, where the client branches on it,
a ``code`` such as ``LOCATION_REQUIRED``, ``OUT_OF_RANGE`` or ``SESSION_REPLACED``.
"""

from flask import Blueprint, Response, current_app, g, jsonify, request, send_file
from functools import wraps
import io
import logging

from .modules.errors import Rejection
from .modules.geolocation import get_client_ip

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def components():
    """The service's manager instances for the current app."""
    return current_app.extensions['meeting_attendance']


def respond(result, success_status=200):
    """Turn a manager result dictionary into a JSON response."""
    body = {key: value for key, value in result.items() if key != 'status_code'}
    if result.get('success'):
        return jsonify(body), success_status
    return jsonify(body), result.get('status_code', 400)


def request_data():
    """The JSON object body, or an empty dict for anything else."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def token_required(f):
    """Decorator to require a valid bearer token for protected routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get('Authorization', '')
        token = auth_header[7:].strip() if auth_header.startswith('Bearer ') else None

        result = components()['auth_manager'].authenticate(token)
        if not result['success']:
            return respond(result)

        g.current_member = result['member']
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Decorator to restrict a protected route to the given roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            result = components()['auth_manager'].authorize(g.current_member, roles)
            if not result['success']:
                logger.warning(
                    f"Member {g.current_member['id']} ({g.current_member['role']}) denied {request.path}"
                )
                return respond(result)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


# Service

@api.route('/')
def index():
    return 'QR Attendance API is running'


@api.route('/health')
def health():
    return jsonify({'status': 'OK'})


# Authentication

@api.route('/api/auth/register', methods=['POST'])
def register():
    """Self-registration; new accounts are members"""
    data = request_data()
    result = components()['auth_manager'].register(
        data.get('name'), data.get('email'), data.get('password')
    )
    return respond(result, 201)


@api.route('/api/auth/login', methods=['POST'])
def login():
    """Log in and replace any previous session"""
    data = request_data()
    result = components()['auth_manager'].login(
        data.get('email'), data.get('password'), ip_address=get_client_ip(request)
    )
    return respond(result)


@api.route('/api/auth/logout', methods=['POST'])
@token_required
def logout():
    return respond(components()['auth_manager'].logout(g.current_member['id']))


@api.route('/api/auth/me')
@token_required
def me():
    member = g.current_member
    return jsonify({
        'id': member['id'],
        'name': member['name'],
        'email': member['email'],
        'role': member['role']
    })


# Meetings

@api.route('/api/meetings', methods=['POST'])
@token_required
@roles_required('admin')
def create_meeting():
    parts = components()
    result = parts['meeting_manager'].create_meeting(request_data(), created_by=g.current_member['id'])
    if result['success']:
        result['qr_image'] = parts['qr_generator'].generate_qr_data_url(result['meeting']['scan_code'])
    return respond(result, 201)


@api.route('/api/meetings', methods=['GET'])
@token_required
def list_meetings():
    return jsonify(components()['meeting_manager'].get_all_meetings())


@api.route('/api/meetings/admin/stats')
@token_required
@roles_required('admin')
def meeting_stats():
    return jsonify(components()['meeting_manager'].get_dashboard_stats())


@api.route('/api/meetings/<int:meeting_id>', methods=['GET'])
@token_required
def get_meeting(meeting_id):
    parts = components()
    meeting = parts['meeting_manager'].get_meeting_by_id(meeting_id)
    if not meeting:
        return respond(Rejection.NOT_FOUND.to_result('Meeting not found'))

    return jsonify({
        'meeting': meeting,
        'qr_image': parts['qr_generator'].generate_qr_data_url(meeting['scan_code']),
        'attendee_count': parts['attendance_manager'].get_attendance_count(meeting_id)
    })


@api.route('/api/meetings/<int:meeting_id>', methods=['PUT'])
@token_required
@roles_required('admin')
def update_meeting(meeting_id):
    return respond(components()['meeting_manager'].update_meeting(meeting_id, request_data()))


@api.route('/api/meetings/<int:meeting_id>', methods=['DELETE'])
@token_required
@roles_required('admin')
def delete_meeting(meeting_id):
    return respond(components()['meeting_manager'].delete_meeting(meeting_id))


@api.route('/api/meetings/<int:meeting_id>/toggle', methods=['PATCH'])
@token_required
@roles_required('admin')
def toggle_meeting(meeting_id):
    return respond(components()['meeting_manager'].toggle_meeting(meeting_id))


@api.route('/api/meetings/<int:meeting_id>/set-location', methods=['PATCH'])
@token_required
@roles_required('admin', 'pr')
def set_meeting_location(meeting_id):
    """Set the geofence center from the caller's current GPS position"""
    data = request_data()
    return respond(components()['meeting_manager'].set_venue_location(
        meeting_id, data.get('latitude'), data.get('longitude')
    ))


# Attendance

@api.route('/api/attendance', methods=['POST'])
@token_required
def mark_attendance():
    """Process a scanned or typed meeting code"""
    data = request_data()
    result = components()['attendance_manager'].mark_attendance(
        data.get('scan_code') or data.get('qr_token'),
        g.current_member['id'],
        get_client_ip(request),
        latitude=data.get('latitude'),
        longitude=data.get('longitude')
    )
    return respond(result, 201)


@api.route('/api/attendance/stats')
@token_required
@roles_required('admin')
def attendance_stats():
    return jsonify(components()['attendance_manager'].get_attendance_stats())


@api.route('/api/attendance/meeting/<int:meeting_id>')
@token_required
@roles_required('admin', 'pr')
def meeting_attendance(meeting_id):
    return jsonify(components()['attendance_manager'].get_meeting_attendance(meeting_id))


@api.route('/api/attendance/my')
@token_required
def my_attendance():
    return jsonify(components()['attendance_manager'].get_member_history(g.current_member['id']))


@api.route('/api/attendance/count/<int:meeting_id>')
@token_required
def attendance_count(meeting_id):
    return jsonify({'count': components()['attendance_manager'].get_attendance_count(meeting_id)})


@api.route('/api/attendance/export/<int:meeting_id>')
@token_required
@roles_required('admin')
def export_csv(meeting_id):
    return _send_export(components()['report_generator'].export_csv(meeting_id))


@api.route('/api/attendance/export-excel/<int:meeting_id>')
@token_required
@roles_required('admin')
def export_excel(meeting_id):
    return _send_export(components()['report_generator'].export_excel(meeting_id))


def _send_export(result):
    if not result['success']:
        return respond(Rejection.NOT_FOUND.to_result(result['error']))

    return send_file(
        io.BytesIO(result['content']),
        mimetype=result['mimetype'],
        as_attachment=True,
        download_name=result['filename']
    )


# Members

@api.route('/api/members', methods=['GET'])
@token_required
@roles_required('admin')
def list_members():
    return jsonify(components()['member_manager'].get_all_members())


@api.route('/api/members/admin/stats')
@token_required
@roles_required('admin')
def member_stats():
    return jsonify(components()['member_manager'].get_member_stats())


@api.route('/api/members/<int:member_id>', methods=['GET'])
@token_required
@roles_required('admin')
def get_member(member_id):
    result = components()['member_manager'].get_member(member_id)
    if not result:
        return respond(Rejection.NOT_FOUND.to_result('Member not found'))
    return jsonify(result)


@api.route('/api/members', methods=['POST'])
@token_required
@roles_required('admin')
def create_member():
    return respond(components()['member_manager'].create_member(request_data()), 201)


@api.route('/api/members/<int:member_id>', methods=['PUT'])
@token_required
@roles_required('admin')
def update_member(member_id):
    return respond(components()['member_manager'].update_member(member_id, request_data()))


@api.route('/api/members/<int:member_id>', methods=['DELETE'])
@token_required
@roles_required('admin')
def delete_member(member_id):
    return respond(components()['member_manager'].delete_member(member_id, g.current_member['id']))


# QR images

@api.route('/api/qr/<token>')
def qr_image(token):
    """PNG QR code for an arbitrary token"""
    png = components()['qr_generator'].generate_qr_png(token)
    return Response(png, mimetype='image/png')
