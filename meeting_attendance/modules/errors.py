"""
Rejection Taxonomy Module - QR Meeting Attendance

Every expected, user-facing failure of the attendance service is a member of the
``Rejection`` enumeration. A rejection knows its error kind, the HTTP status it maps
to, a snake-case ``error_type`` for logs and clients, a default message, and for the
cases the dashboard branches on, a verbatim reason ``code``.

Managers never raise these; they return result dictionaries built with
``Rejection.to_result()`` and the route layer turns them into JSON responses.
"""

from enum import Enum
from typing import Any, Dict, Optional

# Reason codes the client branches its messaging on
LOCATION_REQUIRED = 'LOCATION_REQUIRED'
OUT_OF_RANGE = 'OUT_OF_RANGE'
SESSION_REPLACED = 'SESSION_REPLACED'


class ErrorKind(Enum):
    """Coarse classification of failures."""
    NOT_FOUND = 'not_found'
    STATE_CONFLICT = 'state_conflict'
    GEOFENCE_VIOLATION = 'geofence_violation'
    UNAUTHENTICATED = 'unauthenticated'
    SESSION_REPLACED = 'session_replaced'
    FORBIDDEN = 'forbidden'
    VALIDATION_ERROR = 'validation_error'
    CONFLICT = 'conflict'
    SYSTEM_ERROR = 'system_error'


class Rejection(Enum):
    """Named rejection outcomes with their HTTP mapping."""

    # error_type, kind, status, message, code
    MEETING_NOT_FOUND = ('meeting_not_found', ErrorKind.NOT_FOUND, 404, 'Invalid QR code', None)
    MEETING_INACTIVE = ('meeting_inactive', ErrorKind.STATE_CONFLICT, 403, 'Meeting is not active', None)
    NOT_STARTED = ('not_started', ErrorKind.STATE_CONFLICT, 403, 'Meeting has not started yet', None)
    EXPIRED = ('expired', ErrorKind.STATE_CONFLICT, 403, 'Meeting has ended, QR expired', None)
    LOCATION_REQUIRED = (
        'location_required', ErrorKind.GEOFENCE_VIOLATION, 400,
        'Location access is required. Please enable GPS and allow location permission.',
        'LOCATION_REQUIRED'
    )
    OUT_OF_RANGE = (
        'out_of_range', ErrorKind.GEOFENCE_VIOLATION, 403,
        'You are too far from the meeting venue', 'OUT_OF_RANGE'
    )
    DUPLICATE_DEVICE = (
        'duplicate_device', ErrorKind.STATE_CONFLICT, 400,
        'Attendance already marked from this device', None
    )
    ALREADY_MARKED = (
        'already_marked', ErrorKind.STATE_CONFLICT, 400,
        'Attendance already marked for this meeting', None
    )

    UNAUTHENTICATED = ('unauthenticated', ErrorKind.UNAUTHENTICATED, 401, 'Invalid token', None)
    IDENTITY_NOT_FOUND = ('identity_not_found', ErrorKind.NOT_FOUND, 401, 'User not found', None)
    SESSION_REPLACED = (
        'session_replaced', ErrorKind.SESSION_REPLACED, 401,
        'Session expired, logged in from another device', 'SESSION_REPLACED'
    )
    INVALID_CREDENTIALS = ('invalid_credentials', ErrorKind.UNAUTHENTICATED, 400, 'Invalid credentials', None)
    FORBIDDEN = ('forbidden', ErrorKind.FORBIDDEN, 403, 'Role not allowed', None)

    NOT_FOUND = ('not_found', ErrorKind.NOT_FOUND, 404, 'Not found', None)
    VALIDATION_ERROR = ('validation_error', ErrorKind.VALIDATION_ERROR, 400, 'Invalid request', None)
    CONFLICT = ('conflict', ErrorKind.CONFLICT, 400, 'Already exists', None)
    SYSTEM_ERROR = ('system_error', ErrorKind.SYSTEM_ERROR, 500, 'An internal error occurred', None)

    def __init__(self, error_type, kind, status_code, message, code):
        self.error_type = error_type
        self.kind = kind
        self.status_code = status_code
        self.default_message = message
        self.code = code

    def to_result(self, message: Optional[str] = None, **payload: Any) -> Dict[str, Any]:
        """
        Build a failure result dictionary for this rejection.

        Args:
            message (str): Overrides the default message
            **payload: Kind-specific fields, e.g. distance and allowed_radius

        Returns:
            Dict[str, Any]: Failure result
        """
        result = {
            'success': False,
            'message': message or self.default_message,
            'error_type': self.error_type,
            'status_code': self.status_code
        }
        if self.code:
            result['code'] = self.code
        result.update(payload)
        return result
