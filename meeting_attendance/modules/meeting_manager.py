"""
Meeting Manager Module - QR Meeting Attendance

This module handles meeting administration for the attendance service.

Features:
- Meeting creation with a unique 6-digit scan code
- Time window validation (end strictly after start)
- Optional geofence: venue center plus allowed radius
- Radius-only meetings whose venue is set later from the PR's phone
- Activation toggling, updates and cascading deletes
- Dashboard statistics
"""

from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Tuple
import logging
import math
import sqlite3

from .errors import Rejection
from .qr_generator import QRGenerator, ScanCodeExhausted

MEETING_TYPES = ('offline', 'online')


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.
    Naive values are taken to be UTC. Returns None when unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def serialize_meeting(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a meeting row into its JSON shape."""
    meeting = dict(row)
    meeting['is_active'] = bool(meeting['is_active'])
    meeting['geofence_enabled'] = meeting['latitude'] is not None and meeting['longitude'] is not None
    return meeting


class MeetingManager:
    """
    Meeting administration: creation, updates, geofence and activation state.
    """

    def __init__(self, database_manager, qr_generator: Optional[QRGenerator] = None,
                 default_allowed_radius: float = 500):
        """
        Initialize the meeting manager with database connection.

        Args:
            database_manager: Database manager instance
            qr_generator (QRGenerator): Scan code source
            default_allowed_radius (float): Radius in meters used when none is given
        """
        self.db = database_manager
        self.qr_generator = qr_generator or QRGenerator()
        self.default_allowed_radius = default_allowed_radius
        self.logger = logging.getLogger(__name__)

        self.logger.info("Meeting manager initialized")

    def create_meeting(self, meeting_data: Dict[str, Any], created_by: Optional[int] = None) -> Dict[str, Any]:
        """
        Create a new meeting.

        Args:
            meeting_data (Dict[str, Any]): title, type, start_time, end_time and
                optionally latitude, longitude, allowed_radius
            created_by (int): ID of the admin creating the meeting

        Returns:
            Dict[str, Any]: Creation result
        """
        title = (meeting_data.get('title') or '').strip()
        meeting_type = meeting_data.get('type')
        if not title or not meeting_type or not meeting_data.get('start_time') or not meeting_data.get('end_time'):
            return Rejection.VALIDATION_ERROR.to_result('All fields required')

        if meeting_type not in MEETING_TYPES:
            return Rejection.VALIDATION_ERROR.to_result(f"Type must be one of: {', '.join(MEETING_TYPES)}")

        window, error = self._validate_window(meeting_data['start_time'], meeting_data['end_time'])
        if error:
            return error
        start_time, end_time = window

        geofence, error = self._validate_geofence(
            meeting_data.get('latitude'),
            meeting_data.get('longitude'),
            meeting_data.get('allowed_radius')
        )
        if error:
            return error
        latitude, longitude, allowed_radius = geofence
        if allowed_radius is None:
            allowed_radius = self.default_allowed_radius

        # A concurrent insert can still take the code between the check and the write
        for _ in range(3):
            try:
                scan_code = self.qr_generator.generate_unique_scan_code(self.scan_code_exists)
                meeting_id = self.db.execute_update(
                    """INSERT INTO meetings (title, type, scan_code, start_time, end_time, is_active,
                                             created_by, latitude, longitude, allowed_radius,
                                             created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)""",
                    (title, meeting_type, scan_code, format_timestamp(start_time),
                     format_timestamp(end_time), created_by, latitude, longitude, allowed_radius)
                )
                break
            except sqlite3.IntegrityError as e:
                if 'scan_code' not in str(e):
                    raise
            except ScanCodeExhausted as e:
                self.logger.error(f"Meeting creation failed: {str(e)}")
                return Rejection.SYSTEM_ERROR.to_result('Failed to create meeting')
        else:
            return Rejection.SYSTEM_ERROR.to_result('Failed to create meeting')

        self.logger.info(f"Meeting created: {title} (ID: {meeting_id}, code: {scan_code})")

        return {
            'success': True,
            'message': 'Meeting created',
            'meeting': self.get_meeting_by_id(meeting_id)
        }

    def update_meeting(self, meeting_id: int, meeting_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partially update a meeting.

        Sending both ``latitude`` and ``longitude`` as null clears the venue center.

        Args:
            meeting_id (int): Meeting ID
            meeting_data (Dict[str, Any]): Fields to change

        Returns:
            Dict[str, Any]: Update result
        """
        meeting = self.get_meeting_by_id(meeting_id)
        if not meeting:
            return Rejection.NOT_FOUND.to_result('Meeting not found')

        updates = {}

        if meeting_data.get('title'):
            updates['title'] = str(meeting_data['title']).strip()
        if meeting_data.get('type'):
            if meeting_data['type'] not in MEETING_TYPES:
                return Rejection.VALIDATION_ERROR.to_result(f"Type must be one of: {', '.join(MEETING_TYPES)}")
            updates['type'] = meeting_data['type']

        window, error = self._validate_window(
            meeting_data.get('start_time') or meeting['start_time'],
            meeting_data.get('end_time') or meeting['end_time']
        )
        if error:
            return error
        updates['start_time'] = format_timestamp(window[0])
        updates['end_time'] = format_timestamp(window[1])

        has_latitude = 'latitude' in meeting_data
        has_longitude = 'longitude' in meeting_data
        if has_latitude or has_longitude:
            latitude = meeting_data.get('latitude')
            longitude = meeting_data.get('longitude')
            if latitude is None and longitude is None:
                updates['latitude'] = None
                updates['longitude'] = None
            else:
                geofence, error = self._validate_geofence(latitude, longitude, meeting_data.get('allowed_radius'))
                if error:
                    return error
                updates['latitude'], updates['longitude'], radius = geofence
                updates['allowed_radius'] = radius or meeting['allowed_radius'] or self.default_allowed_radius
        elif meeting_data.get('allowed_radius') is not None:
            radius, error = self._validate_radius(meeting_data['allowed_radius'])
            if error:
                return error
            updates['allowed_radius'] = radius

        assignments = ', '.join(f"{field} = ?" for field in updates)
        self.db.execute_update(
            f"UPDATE meetings SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*updates.values(), meeting_id)
        )

        self.logger.info(f"Meeting {meeting_id} updated: {', '.join(updates)}")

        return {
            'success': True,
            'message': 'Meeting updated',
            'meeting': self.get_meeting_by_id(meeting_id)
        }

    def delete_meeting(self, meeting_id: int) -> Dict[str, Any]:
        """Delete a meeting together with its attendance records."""
        if not self.get_meeting_by_id(meeting_id):
            return Rejection.NOT_FOUND.to_result('Meeting not found')

        with self.db.transaction() as conn:
            removed = conn.execute("DELETE FROM attendance WHERE meeting_id = ?", (meeting_id,)).rowcount
            conn.execute("DELETE FROM meetings WHERE id = ?", (meeting_id,))

        self.logger.info(f"Meeting {meeting_id} deleted with {removed} attendance records")
        return {'success': True, 'message': 'Meeting deleted'}

    def toggle_meeting(self, meeting_id: int) -> Dict[str, Any]:
        """Flip a meeting's active flag."""
        meeting = self.get_meeting_by_id(meeting_id)
        if not meeting:
            return Rejection.NOT_FOUND.to_result('Meeting not found')

        is_active = not meeting['is_active']
        self.db.execute_update(
            "UPDATE meetings SET is_active = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (1 if is_active else 0, meeting_id)
        )

        self.logger.info(f"Meeting {meeting_id} {'activated' if is_active else 'deactivated'}")

        return {
            'success': True,
            'message': f"Meeting {'Activated' if is_active else 'Deactivated'}",
            'meeting': self.get_meeting_by_id(meeting_id)
        }

    def set_venue_location(self, meeting_id: int, latitude, longitude) -> Dict[str, Any]:
        """
        Set the geofence center, typically from the PR's device at the venue.
        The meeting's existing radius is kept.
        """
        if latitude is None or longitude is None:
            return Rejection.VALIDATION_ERROR.to_result('Latitude and longitude are required')

        geofence, error = self._validate_geofence(latitude, longitude, None)
        if error:
            return error

        if not self.get_meeting_by_id(meeting_id):
            return Rejection.NOT_FOUND.to_result('Meeting not found')

        self.db.execute_update(
            "UPDATE meetings SET latitude = ?, longitude = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (geofence[0], geofence[1], meeting_id)
        )

        self.logger.info(f"Venue location set for meeting {meeting_id}")

        return {
            'success': True,
            'message': 'Venue location updated, geofence is now active',
            'meeting': self.get_meeting_by_id(meeting_id)
        }

    def get_all_meetings(self) -> List[Dict[str, Any]]:
        """All meetings, newest first, with the creator's name."""
        rows = self.db.execute_query("""
            SELECT m.*, c.name AS created_by_name, c.email AS created_by_email
            FROM meetings m
            LEFT JOIN members c ON m.created_by = c.id
            ORDER BY m.created_at DESC, m.id DESC
        """)
        return [serialize_meeting(row) for row in rows]

    def get_meeting_by_id(self, meeting_id) -> Optional[Dict[str, Any]]:
        row = self.db.execute_query(
            """SELECT m.*, c.name AS created_by_name, c.email AS created_by_email
               FROM meetings m
               LEFT JOIN members c ON m.created_by = c.id
               WHERE m.id = ?""",
            (meeting_id,),
            fetch_all=False
        )
        return serialize_meeting(row) if row else None

    def get_meeting_by_code(self, scan_code: str) -> Optional[Dict[str, Any]]:
        row = self.db.execute_query(
            "SELECT * FROM meetings WHERE scan_code = ?",
            (scan_code,),
            fetch_all=False
        )
        return serialize_meeting(row) if row else None

    def scan_code_exists(self, scan_code: str) -> bool:
        return self.db.execute_query(
            "SELECT 1 FROM meetings WHERE scan_code = ?",
            (scan_code,),
            fetch_all=False
        ) is not None

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """Totals for the admin dashboard plus the five most recent meetings."""
        totals = self.db.execute_query("""
            SELECT (SELECT COUNT(*) FROM meetings) AS total_meetings,
                   (SELECT COUNT(*) FROM meetings WHERE is_active = 1) AS active_meetings,
                   (SELECT COUNT(*) FROM attendance) AS total_attendance
        """, fetch_all=False)

        return {
            'total_meetings': totals['total_meetings'],
            'active_meetings': totals['active_meetings'],
            'total_attendance': totals['total_attendance'],
            'recent_meetings': self.get_all_meetings()[:5]
        }

    def _validate_window(self, start_value, end_value) -> Tuple[Optional[Tuple[datetime, datetime]], Optional[Dict[str, Any]]]:
        start_time = parse_timestamp(start_value)
        end_time = parse_timestamp(end_value)
        if start_time is None or end_time is None:
            return None, Rejection.VALIDATION_ERROR.to_result('Start and end time must be ISO 8601 timestamps')
        if end_time <= start_time:
            return None, Rejection.VALIDATION_ERROR.to_result('End time must be after start time')
        return (start_time, end_time), None

    def _validate_geofence(self, latitude, longitude, allowed_radius):
        """
        Validate venue coordinates and radius.

        Center coordinates must be given together or not at all; a radius may be
        given alone.

        Returns:
            Tuple: ((latitude, longitude, radius), None) or (None, failure result)
        """
        if (latitude is None) != (longitude is None):
            return None, Rejection.VALIDATION_ERROR.to_result('Latitude and longitude must be provided together')

        radius = None
        if allowed_radius is not None and allowed_radius != '':
            radius, error = self._validate_radius(allowed_radius)
            if error:
                return None, error

        if latitude is None:
            return (None, None, radius), None

        coordinates, error = parse_coordinates(latitude, longitude)
        if error:
            return None, error

        return (*coordinates, radius), None

    def _validate_radius(self, allowed_radius):
        try:
            radius = _to_float(allowed_radius)
        except (TypeError, ValueError):
            return None, Rejection.VALIDATION_ERROR.to_result('Allowed radius must be a number')
        if radius <= 0:
            return None, Rejection.VALIDATION_ERROR.to_result('Allowed radius must be positive')
        return radius, None


def parse_coordinates(latitude, longitude):
    """
    Convert a latitude/longitude pair to floats within their valid ranges.

    Returns:
        Tuple: ((latitude, longitude), None) or (None, failure result)
    """
    try:
        latitude = _to_float(latitude)
        longitude = _to_float(longitude)
    except (TypeError, ValueError):
        return None, Rejection.VALIDATION_ERROR.to_result('Latitude and longitude must be numbers')

    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        return None, Rejection.VALIDATION_ERROR.to_result('Latitude or longitude out of range')

    return (latitude, longitude), None


def _to_float(value) -> float:
    if isinstance(value, bool):
        raise TypeError('boolean is not a number')
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f'{value!r} is not a finite number')
    return number
