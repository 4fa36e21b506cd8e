"""
Attendance Manager Module - QR Meeting Attendance

This module handles attendance marking and attendance queries.

A scan is checked in a fixed order and the first failing check decides the single
rejection the member sees:

1. a meeting exists for the scan code
2. the meeting is active
3. the meeting has started (start time inclusive)
4. the meeting has not ended (end time inclusive)
5. if the meeting has a venue center, GPS coordinates were sent and lie within the
   allowed radius
6. this device has not already marked attendance for the meeting
7. the record is written; the database's uniqueness constraints settle races between
   concurrent scans and are reported as the matching duplicate rejection

Features:
- Scan eligibility evaluation and attendance recording
- Best-effort location resolution that never blocks marking
- Per-meeting listings, personal history and live counts
"""

from datetime import datetime, timezone
import logging
import sqlite3
from typing import Callable, Dict, List, Optional, Any

from .errors import Rejection
from .geolocation import distance_meters
from .meeting_manager import parse_coordinates, parse_timestamp, format_timestamp


def evaluate_eligibility(meeting: Optional[Dict[str, Any]], now: datetime,
                         device_id: str, latitude=None, longitude=None,
                         device_already_marked: Callable[[str, int], bool] = None) -> Optional[Dict[str, Any]]:
    """
    Decide whether a scan may produce an attendance record.

    Args:
        meeting (Dict[str, Any]): Meeting found for the scan code, or None
        now (datetime): Current instant
        device_id (str): Scanner's network address
        latitude, longitude: Scanner's GPS position, if sent
        device_already_marked: Predicate over (device_id, meeting_id)

    Returns:
        Optional[Dict[str, Any]]: None when eligible, otherwise the failure result
    """
    if meeting is None:
        return Rejection.MEETING_NOT_FOUND.to_result()

    if not meeting['is_active']:
        return Rejection.MEETING_INACTIVE.to_result()

    now = parse_timestamp(now)

    if now < parse_timestamp(meeting['start_time']):
        return Rejection.NOT_STARTED.to_result()

    if now > parse_timestamp(meeting['end_time']):
        return Rejection.EXPIRED.to_result()

    # A radius without a center does not enforce anything
    if meeting['latitude'] is not None and meeting['longitude'] is not None:
        if latitude is None or longitude is None:
            return Rejection.LOCATION_REQUIRED.to_result()

        distance = distance_meters(meeting['latitude'], meeting['longitude'], latitude, longitude)
        allowed_radius = meeting['allowed_radius']
        if distance > allowed_radius:
            return Rejection.OUT_OF_RANGE.to_result(
                f"You are too far from the meeting venue ({round(distance)}m away, "
                f"must be within {allowed_radius:g}m)",
                distance=round(distance, 1),
                allowed_radius=allowed_radius
            )

    if device_already_marked is not None and device_already_marked(device_id, meeting['id']):
        return Rejection.DUPLICATE_DEVICE.to_result()

    return None


class AttendanceManager:
    """
    Attendance marking and reporting for meetings.
    """

    def __init__(self, database_manager, meeting_manager,
                 location_resolver: Optional[Callable[[str], Optional[str]]] = None):
        """
        Initialize the attendance manager with database connection.

        Args:
            database_manager: Database manager instance
            meeting_manager: Meeting manager used to look up scan codes
            location_resolver: Maps a device address to a place name or None
        """
        self.db = database_manager
        self.meetings = meeting_manager
        self.location_resolver = location_resolver
        self.logger = logging.getLogger(__name__)

    def mark_attendance(self, scan_code: str, member_id: int, device_id: str,
                        latitude=None, longitude=None,
                        now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Process a scan and record attendance when eligible.

        Args:
            scan_code (str): Code read from the QR image or typed in
            member_id (int): Scanning member
            device_id (str): Scanner's network address
            latitude, longitude: Scanner's GPS position, if sent
            now (datetime): Current instant, defaults to the clock

        Returns:
            Dict[str, Any]: Result with the created attendance record on success
        """
        if not scan_code:
            return Rejection.VALIDATION_ERROR.to_result('QR token missing')

        if (latitude is None) != (longitude is None):
            latitude = longitude = None
        if latitude is not None:
            coordinates, error = parse_coordinates(latitude, longitude)
            if error:
                return error
            latitude, longitude = coordinates

        now = parse_timestamp(now) if now else datetime.now(timezone.utc)
        meeting = self.meetings.get_meeting_by_code(str(scan_code).strip())

        rejection = evaluate_eligibility(
            meeting, now, device_id, latitude, longitude,
            device_already_marked=self.exists_attendance_by_device
        )
        if rejection:
            self.logger.info(
                f"Scan rejected ({rejection['error_type']}): member {member_id}, "
                f"code {scan_code}, device {device_id}"
            )
            return rejection

        if self.exists_attendance(member_id, meeting['id']):
            return Rejection.ALREADY_MARKED.to_result()

        location = self._resolve_location(device_id)

        try:
            attendance_id = self.db.execute_update(
                """INSERT INTO attendance (member_id, meeting_id, location, device_ip,
                                           member_latitude, member_longitude, timestamp, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                (member_id, meeting['id'], location, device_id, latitude, longitude,
                 format_timestamp(now))
            )
        except sqlite3.IntegrityError as e:
            # Lost a race with a concurrent scan
            if 'device_ip' in str(e):
                return Rejection.DUPLICATE_DEVICE.to_result()
            if 'member_id' in str(e):
                return Rejection.ALREADY_MARKED.to_result()
            raise

        self.logger.info(
            f"Attendance recorded: member {member_id}, meeting {meeting['id']}, device {device_id}"
        )

        return {
            'success': True,
            'message': 'Attendance marked successfully',
            'attendance': self.get_attendance_by_id(attendance_id)
        }

    def _resolve_location(self, device_id: str) -> Optional[str]:
        if self.location_resolver is None:
            return None
        try:
            return self.location_resolver(device_id)
        except Exception as e:
            self.logger.warning(f"Location resolution failed for {device_id}: {str(e)}")
            return None

    def exists_attendance(self, member_id: int, meeting_id: int) -> bool:
        return self.db.execute_query(
            "SELECT 1 FROM attendance WHERE member_id = ? AND meeting_id = ?",
            (member_id, meeting_id),
            fetch_all=False
        ) is not None

    def exists_attendance_by_device(self, device_id: str, meeting_id: int) -> bool:
        return self.db.execute_query(
            "SELECT 1 FROM attendance WHERE device_ip = ? AND meeting_id = ?",
            (device_id, meeting_id),
            fetch_all=False
        ) is not None

    def get_attendance_by_id(self, attendance_id: int) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM attendance WHERE id = ?",
            (attendance_id,),
            fetch_all=False
        )

    def get_meeting_attendance(self, meeting_id: int) -> List[Dict[str, Any]]:
        """
        Attendance records of a meeting, newest first, with member and meeting details.

        Args:
            meeting_id (int): Meeting ID

        Returns:
            List[Dict[str, Any]]: Attendance records
        """
        return self.db.execute_query(
            """SELECT a.*, mb.name AS member_name, mb.email AS member_email, mb.role AS member_role,
                      mt.title AS meeting_title, mt.type AS meeting_type,
                      mt.start_time AS meeting_start_time, mt.end_time AS meeting_end_time
               FROM attendance a
               LEFT JOIN members mb ON a.member_id = mb.id
               LEFT JOIN meetings mt ON a.meeting_id = mt.id
               WHERE a.meeting_id = ?
               ORDER BY a.timestamp DESC, a.id DESC""",
            (meeting_id,)
        )

    def get_member_history(self, member_id: int) -> List[Dict[str, Any]]:
        """A member's own attendance, newest first, with meeting details."""
        return self.db.execute_query(
            """SELECT a.*, mt.title AS meeting_title, mt.type AS meeting_type,
                      mt.start_time AS meeting_start_time, mt.end_time AS meeting_end_time
               FROM attendance a
               LEFT JOIN meetings mt ON a.meeting_id = mt.id
               WHERE a.member_id = ?
               ORDER BY a.timestamp DESC, a.id DESC""",
            (member_id,)
        )

    def get_attendance_count(self, meeting_id: int) -> int:
        result = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM attendance WHERE meeting_id = ?",
            (meeting_id,),
            fetch_all=False
        )
        return result['count']

    def get_attendance_stats(self) -> List[Dict[str, Any]]:
        """Number of attendance records per meeting."""
        return self.db.execute_query(
            """SELECT meeting_id, COUNT(*) AS count
               FROM attendance
               GROUP BY meeting_id
               ORDER BY meeting_id"""
        )
