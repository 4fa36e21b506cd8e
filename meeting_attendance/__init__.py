# QR Meeting Attendance - App Package
"""
Flask service for QR-code based meeting attendance.

Members mark attendance by scanning or typing a meeting's 6-digit code, subject to
the meeting's time window, one scan per device, and an optional GPS geofence.
Admins create meetings, manage members and export attendance.
"""

__version__ = "1.0.0"
__description__ = "QR-code based meeting attendance service"

from .application import create_app

__all__ = ['create_app']
